"""Exceptions raised around background sync operations."""
from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for sync failures recorded against an operation."""


class UnknownOperationKind(SyncError, LookupError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown sync operation type: {kind}")
        self.kind = kind


class SyncHandlerError(SyncError):
    def __init__(self, kind: str, status: Optional[int] = None, reason: str = "") -> None:
        message = f"{kind} failed"
        if status is not None:
            message += f" with {status}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.kind = kind
        self.status = status
        self.reason = reason


__all__ = ["SyncError", "UnknownOperationKind", "SyncHandlerError"]
