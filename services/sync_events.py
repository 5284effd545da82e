"""Typed observer registry used to broadcast sync status snapshots."""

from __future__ import annotations

import logging
from typing import Callable, Generic, List, TypeVar


T = TypeVar("T")

logger = logging.getLogger("realgrind.sync")


class StatusEmitter(Generic[T]):
    """Synchronous fan-out of values to subscribed callbacks.

    ``subscribe`` returns an unsubscribe function that may be called any
    number of times. Callbacks may subscribe, unsubscribe or mutate the
    emitting object while being notified: ``emit`` walks a copy of the
    subscriber list.
    """

    def __init__(self) -> None:
        self._listeners: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        self._listeners.append(callback)
        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Status listener %r failed", listener)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


__all__ = ["StatusEmitter"]
