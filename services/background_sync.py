from __future__ import annotations

import asyncio
import itertools
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from core.priorities import DEFAULT_PRIORITY, normalize_priority, priority_rank
from core.settings import BACKGROUND_SYNC, SYNC_LOG_PATH, RetryPolicy
from datetime_utils import to_rfc3339_utc, utc_now
from services.connectivity import ConnectivityMonitor
from services.sync_errors import UnknownOperationKind
from services.sync_events import StatusEmitter
from services.sync_queue_store import (
    FAILED,
    IN_FLIGHT,
    PENDING,
    SyncOperation,
    SyncQueueStore,
)


USER_STATS_SYNC = "user-stats-sync"
CONTEST_DATA_SYNC = "contest-data-sync"
PROBLEM_RECOMMENDATIONS_SYNC = "problem-recommendations-sync"
LEADERBOARD_SYNC = "leaderboard-sync"
CF_VERIFICATION_SYNC = "cf-verification-sync"

Handler = Callable[[Dict[str, Any]], Awaitable[None]]


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("realgrind.sync")
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        SYNC_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(SYNC_LOG_PATH, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def _describe(exc: BaseException) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


@dataclass(frozen=True)
class SyncStatus:
    is_online: bool
    is_syncing: bool
    queue_size: int
    last_sync: Optional[datetime]
    failed_operations: int

    def to_dict(self) -> dict:
        return {
            "isOnline": self.is_online,
            "isSyncing": self.is_syncing,
            "queueSize": self.queue_size,
            "lastSync": to_rfc3339_utc(self.last_sync),
            "failedOperations": self.failed_operations,
        }


class BackgroundSyncManager:
    """Priority queue of deferred sync operations drained on the event loop.

    Operations run one at a time. Each drain pass picks the eligible
    pending operation with the best priority (FIFO inside a band), awaits
    its handler and then either drops it (success), requeues it behind its
    band with exponential backoff, or parks it in the failed set once
    ``policy.max_retries`` retries are spent. A pass stops when the queue
    is empty or connectivity goes away; the next online transition starts
    a new one.

    Handler errors never leave this class. They are only visible through
    :meth:`get_status` and :meth:`on_status_change`.
    """

    def __init__(
        self,
        handlers: Optional[Mapping[str, Handler]] = None,
        *,
        policy: Optional[RetryPolicy] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        store: Optional[SyncQueueStore] = None,
        clock: Callable[[], float] = time.monotonic,
        enabled: Optional[bool] = None,
    ) -> None:
        self.enabled = BACKGROUND_SYNC.enabled if enabled is None else bool(enabled)
        self.policy = policy or BACKGROUND_SYNC.retry
        self.connectivity = connectivity or ConnectivityMonitor()
        self.store = store
        self.logger = _ensure_logger()
        self._clock = clock
        self._handlers: Dict[str, Handler] = dict(handlers or {})
        # Pending and in-flight operations, keyed by id.
        self._queue: Dict[str, SyncOperation] = {}
        self._failed: Dict[str, SyncOperation] = {}
        self._seq = itertools.count(1)
        self._draining = False
        self._last_sync: Optional[datetime] = None
        self._status_events: StatusEmitter[SyncStatus] = StatusEmitter()
        # Created per drain pass so it always belongs to the running loop.
        self._wakeup: Optional[asyncio.Event] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._unsubscribe_connectivity = self.connectivity.on_change(self._on_connectivity_change)
        if self.store is not None:
            self._restore()

    # ------------------------------------------------------------------
    # Public API
    def register_handler(self, kind: str, handler: Handler) -> None:
        self._handlers[kind] = handler

    def add_operation(
        self,
        kind: str,
        payload: Optional[Mapping[str, Any]] = None,
        priority: str = DEFAULT_PRIORITY,
    ) -> str:
        op = SyncOperation(
            id=f"{kind}-{uuid.uuid4().hex[:12]}",
            kind=kind,
            payload=dict(payload or {}),
            priority=normalize_priority(priority),
            seq=next(self._seq),
            ready_at=self._clock(),
        )
        self._queue[op.id] = op
        self._persist(op)
        self.logger.debug("Queued %s (%s priority)", op.id, op.priority)
        self._notify()
        self._wake()
        self._schedule_drain()
        return op.id

    def get_status(self) -> SyncStatus:
        return SyncStatus(
            is_online=self.connectivity.is_online,
            is_syncing=self._draining,
            queue_size=len(self._queue),
            last_sync=self._last_sync,
            failed_operations=len(self._failed),
        )

    def on_status_change(self, callback: Callable[[SyncStatus], None]) -> Callable[[], None]:
        return self._status_events.subscribe(callback)

    def pending_operations(self) -> List[SyncOperation]:
        """Queued operations in the order they would be drained."""
        return sorted(self._queue.values(), key=self._order_key)

    def failed_operations(self) -> List[SyncOperation]:
        return sorted(self._failed.values(), key=lambda op: op.seq)

    def retry_failed_operations(self) -> None:
        failed = self.failed_operations()
        self._failed.clear()
        now = self._clock()
        for op in failed:
            op.retry_count = 0
            op.status = PENDING
            op.seq = next(self._seq)
            op.ready_at = now
            self._queue[op.id] = op
            self._persist(op)
        if failed:
            self.logger.info("Retrying %d failed operation(s)", len(failed))
            self._notify()
        self._wake()
        self._schedule_drain()

    def clear_queue(self) -> None:
        dropped = len(self._queue) + len(self._failed)
        self._queue.clear()
        self._failed.clear()
        if self.store is not None:
            try:
                self.store.clear()
            except SQLAlchemyError as exc:
                self.logger.error("Failed to clear stored queue: %s", exc)
        self.logger.info("Cleared %d queued operation(s)", dropped)
        self._notify()
        self._wake()

    async def drain(self) -> None:
        """Run one drain pass; returns immediately if one is already active."""
        if not self.enabled or self._draining or not self._queue or not self.connectivity.is_online:
            return
        self._draining = True
        self._wakeup = asyncio.Event()
        self._notify()
        try:
            while self._queue and self.connectivity.is_online:
                op = self._next_eligible()
                if op is None:
                    if not await self._wait_for_ready():
                        break
                    continue
                await self._execute(op)
        finally:
            self._draining = False
            self._wakeup = None
            # Observers reacting to the idle snapshot may enqueue again and
            # must be able to schedule a fresh pass.
            if self._drain_task is not None and self._drain_task is asyncio.current_task():
                self._drain_task = None
            self._notify()

    async def wait_idle(self) -> None:
        """Wait for scheduled drain passes to finish."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.wait({self._drain_task})

    async def start(self, *, periodic_interval: Optional[float] = None, probe: bool = False) -> None:
        if not self.enabled:
            self.logger.info("Background sync disabled, %d operation(s) stay queued", len(self._queue))
            return
        interval = BACKGROUND_SYNC.periodic_interval_sec if periodic_interval is None else periodic_interval
        if interval and interval > 0:
            self._spawn(self._periodic_loop(interval))
        if probe:
            self._spawn(self.connectivity.run_probe())
        self.logger.info("Background sync started (%d queued)", len(self._queue))
        self._schedule_drain()

    async def close(self) -> None:
        tasks = list(self._background)
        if self._drain_task is not None:
            tasks.append(self._drain_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._background.clear()
        self._drain_task = None
        self._unsubscribe_connectivity()
        self._status_events.clear()
        self.logger.info("Background sync stopped")

    # ------------------------------------------------------------------
    # Drain helpers
    @staticmethod
    def _order_key(op: SyncOperation):
        return (priority_rank(op.priority), op.seq)

    def _next_eligible(self) -> Optional[SyncOperation]:
        now = self._clock()
        ready = [op for op in self._queue.values() if op.status == PENDING and op.ready_at <= now]
        if not ready:
            return None
        return min(ready, key=self._order_key)

    async def _wait_for_ready(self) -> bool:
        """Sleep until the next backoff expires or something wakes the loop."""
        waiting = [op.ready_at for op in self._queue.values() if op.status == PENDING]
        if not waiting:
            return False
        delay = max(0.0, min(waiting) - self._clock())
        wakeup = self._wakeup
        if wakeup is None:
            return False
        wakeup.clear()
        try:
            await asyncio.wait_for(wakeup.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        return True

    async def _execute(self, op: SyncOperation) -> None:
        op.status = IN_FLIGHT
        self._persist(op)
        handler = self._handlers.get(op.kind)
        if handler is None:
            self._fail_permanently(op, _describe(UnknownOperationKind(op.kind)))
            return

        self.logger.debug("Running %s (attempt %d)", op.id, op.retry_count + 1)
        try:
            call = handler(dict(op.payload))
            timeout = self.policy.handler_timeout_sec
            if timeout is not None:
                await asyncio.wait_for(call, timeout=timeout)
            else:
                await call
        except asyncio.CancelledError:
            if self._queue.get(op.id) is op:
                op.status = PENDING
                self._persist(op)
            raise
        except Exception as exc:
            self._on_failure(op, exc)
        else:
            self._on_success(op)

    def _on_success(self, op: SyncOperation) -> None:
        self._last_sync = utc_now()
        if self._queue.pop(op.id, None) is not None:
            self._forget(op.id)
        self.logger.debug("Synced %s", op.id)
        self._notify()

    def _on_failure(self, op: SyncOperation, exc: Exception) -> None:
        op.retry_count += 1
        op.last_error = _describe(exc)
        if self._queue.get(op.id) is not op:
            self.logger.info("Dropping result of %s, queue was cleared", op.id)
            return
        if op.retry_count > self.policy.max_retries:
            self._fail_permanently(op, op.last_error)
            return

        delay = self.policy.backoff(op.retry_count)
        op.status = PENDING
        op.seq = next(self._seq)
        op.ready_at = self._clock() + delay
        self._persist(op)
        self.logger.warning(
            "Background sync failed for %s, retrying in %.1fs: %s", op.kind, delay, op.last_error
        )
        self._notify()

    def _fail_permanently(self, op: SyncOperation, error: str) -> None:
        self._queue.pop(op.id, None)
        op.status = FAILED
        op.last_error = error
        self._failed[op.id] = op
        self._persist(op)
        self.logger.error("Background sync failed permanently for %s: %s", op.kind, error)
        self._notify()

    # ------------------------------------------------------------------
    # Scheduling
    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    def _schedule_drain(self) -> None:
        if not self.enabled or self._draining or not self._queue or not self.connectivity.is_online:
            return
        if self._drain_task is not None and not self._drain_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running event loop, drain deferred")
            return
        self._drain_task = loop.create_task(self.drain())

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _periodic_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self.connectivity.is_online and not self._draining:
                self.logger.debug("Periodic refresh")
                self.add_operation(USER_STATS_SYNC, {}, "low")
                self.add_operation(CONTEST_DATA_SYNC, {}, "low")

    def _on_connectivity_change(self, online: bool) -> None:
        self._wake()
        self._notify()
        if online:
            self._schedule_drain()

    # ------------------------------------------------------------------
    # Persistence
    def _restore(self) -> None:
        try:
            stored = self.store.load()
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load stored queue: %s", exc)
            return
        now = self._clock()
        for op in stored:
            op.ready_at = now
            if op.status == FAILED:
                self._failed[op.id] = op
            else:
                self._queue[op.id] = op
        if stored:
            self._seq = itertools.count(max(op.seq for op in stored) + 1)
            self.logger.info(
                "Restored %d queued and %d failed operation(s)", len(self._queue), len(self._failed)
            )

    def _persist(self, op: SyncOperation) -> None:
        if self.store is None:
            return
        try:
            self.store.save(op)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to save %s: %s", op.id, exc)

    def _forget(self, op_id: str) -> None:
        if self.store is None:
            return
        try:
            self.store.remove(op_id)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to remove %s: %s", op_id, exc)

    def _notify(self) -> None:
        self._status_events.emit(self.get_status())


__all__ = [
    "BackgroundSyncManager",
    "SyncStatus",
    "Handler",
    "USER_STATS_SYNC",
    "CONTEST_DATA_SYNC",
    "PROBLEM_RECOMMENDATIONS_SYNC",
    "LEADERBOARD_SYNC",
    "CF_VERIFICATION_SYNC",
]
