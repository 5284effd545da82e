"""Compact status indicator shown next to sync-aware widgets."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


INDICATOR_META: Dict[str, Dict[str, str]] = {
    "offline": {"label": "Offline", "color": "#64748B"},   # slate-500
    "syncing": {"label": "Syncing", "color": "#4F46E5"},   # indigo-600
    "failed": {"label": "{count} failed", "color": "#EF4444"},  # red-500
    "queued": {"label": "{count} queued", "color": "#F59E0B"},  # amber-500
    "synced": {"label": "Synced", "color": "#22C55E"},     # green-500
}


@dataclass(frozen=True)
class Indicator:
    state: str
    label: str
    color: str
    can_retry: bool = False


def indicator_for(status) -> Indicator:
    """Pick the indicator for a status snapshot.

    Precedence is offline, syncing, failed, queued, synced. Only the
    ``failed`` state offers the manual retry action.
    """
    if not status.is_online:
        state, count = "offline", 0
    elif status.is_syncing:
        state, count = "syncing", status.queue_size
    elif status.failed_operations:
        state, count = "failed", status.failed_operations
    elif status.queue_size:
        state, count = "queued", status.queue_size
    else:
        state, count = "synced", 0
    meta = INDICATOR_META[state]
    return Indicator(
        state=state,
        label=meta["label"].format(count=count),
        color=meta["color"],
        can_retry=state == "failed",
    )


__all__ = ["INDICATOR_META", "Indicator", "indicator_for"]
