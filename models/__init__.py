"""ORM models exposed by the RealGrind sync service."""
from .sync_operation import SyncOperationRecord

__all__ = ["SyncOperationRecord"]
