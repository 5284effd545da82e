from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlmodel import Session, select
from sqlalchemy import func

from datetime_utils import ensure_utc, utc_now
from models.sync_operation import SyncOperationRecord
from storage.db import get_session


PENDING = "pending"
IN_FLIGHT = "in-flight"
FAILED = "failed"

STATUSES = {PENDING, IN_FLIGHT, FAILED}


@dataclass
class SyncOperation:
    id: str
    kind: str
    payload: dict
    priority: str
    enqueued_at: datetime = field(default_factory=utc_now)
    retry_count: int = 0
    status: str = PENDING
    last_error: Optional[str] = None
    seq: int = 0
    # Monotonic clock value; the operation is not eligible before it.
    ready_at: float = 0.0


class SyncQueueStore:
    """Write-through persistence of the sync queue in SQLite."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory or get_session

    def save(self, op: SyncOperation) -> None:
        with self._session_factory() as session:
            record = session.get(SyncOperationRecord, op.id)
            if record is None:
                record = SyncOperationRecord(id=op.id, kind=op.kind)
            record.payload = json.dumps(op.payload, ensure_ascii=False, default=str)
            record.priority = op.priority
            record.status = op.status
            record.retry_count = op.retry_count
            record.seq = op.seq
            record.last_error = op.last_error[:1000] if op.last_error else None
            record.enqueued_at = op.enqueued_at
            session.add(record)
            session.commit()

    def remove(self, op_id: str) -> None:
        with self._session_factory() as session:
            record = session.get(SyncOperationRecord, op_id)
            if record:
                session.delete(record)
                session.commit()

    def clear(self) -> None:
        with self._session_factory() as session:
            for record in session.exec(select(SyncOperationRecord)).all():
                session.delete(record)
            session.commit()

    def load(self) -> List[SyncOperation]:
        """Return stored operations in submission order.

        Anything left ``in-flight`` by a previous process never reported a
        result, so it comes back as pending.
        """
        with self._session_factory() as session:
            stmt = select(SyncOperationRecord).order_by(SyncOperationRecord.seq.asc())
            rows = list(session.exec(stmt))

        result: List[SyncOperation] = []
        for row in rows:
            try:
                payload = json.loads(row.payload)
            except json.JSONDecodeError:
                payload = {}
            status = row.status if row.status in STATUSES else PENDING
            if status == IN_FLIGHT:
                status = PENDING
            result.append(
                SyncOperation(
                    id=row.id,
                    kind=row.kind,
                    payload=payload if isinstance(payload, dict) else {},
                    priority=row.priority,
                    enqueued_at=ensure_utc(row.enqueued_at) or utc_now(),
                    retry_count=row.retry_count,
                    status=status,
                    last_error=row.last_error,
                    seq=row.seq,
                )
            )
        return result

    def count(self, status: Optional[str] = None) -> int:
        with self._session_factory() as session:
            stmt = select(func.count()).select_from(SyncOperationRecord)
            if status is not None:
                stmt = stmt.where(SyncOperationRecord.status == status)
            return int(session.exec(stmt).one())


__all__ = [
    "PENDING",
    "IN_FLIGHT",
    "FAILED",
    "SyncOperation",
    "SyncQueueStore",
]
