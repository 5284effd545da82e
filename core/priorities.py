"""Utility helpers for sync operation priorities."""
from __future__ import annotations

from typing import Dict

# Three bands only: "high" drains before "medium" before "low".
# ``rank`` is the dequeue order, lower runs first.
PRIORITY_META: Dict[str, Dict[str, object]] = {
    "high": {
        "rank": 0,
        "label": "High priority",
        "short": "High",
        "color": "#EF4444",    # red-500
    },
    "medium": {
        "rank": 1,
        "label": "Medium priority",
        "short": "Medium",
        "color": "#F59E0B",    # amber-500
    },
    "low": {
        "rank": 2,
        "label": "Low priority",
        "short": "Low",
        "color": "#0EA5E9",    # sky-500
    },
}

DEFAULT_PRIORITY = "medium"


def normalize_priority(value: str | None) -> str:
    """Validate a priority name, falling back to the default for ``None``."""
    if value is None:
        return DEFAULT_PRIORITY
    key = str(value).strip().lower()
    if key not in PRIORITY_META:
        raise ValueError(f"Unsupported priority: {value!r}")
    return key


def priority_rank(value: str) -> int:
    return int(PRIORITY_META[value]["rank"])


def priority_label(value: str, *, short: bool = False) -> str:
    meta = PRIORITY_META.get(value, PRIORITY_META[DEFAULT_PRIORITY])
    return str(meta["short" if short else "label"])


def priority_color(value: str) -> str:
    meta = PRIORITY_META.get(value, PRIORITY_META[DEFAULT_PRIORITY])
    return str(meta["color"])


__all__ = [
    "PRIORITY_META",
    "DEFAULT_PRIORITY",
    "normalize_priority",
    "priority_rank",
    "priority_label",
    "priority_color",
]
