"""SQLModel table for queued background sync operations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class SyncOperationRecord(SQLModel, table=True):
    __tablename__ = "syncoperation"

    id: str = Field(primary_key=True)
    kind: str = Field(index=True)
    payload: str = "{}"
    priority: str = Field(default="medium", index=True)
    status: str = Field(default="pending", index=True)
    retry_count: int = Field(default=0)
    seq: int = Field(default=0, index=True)
    last_error: Optional[str] = None
    enqueued_at: datetime = Field(default_factory=utc_now)


__all__ = ["SyncOperationRecord"]
