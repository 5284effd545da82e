"""Run the RealGrind background sync queue outside the browser."""
# realgrind/main.py
import os, sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
import argparse
import asyncio
import json

from core.settings import BACKGROUND_SYNC
from core.sync_indicator import indicator_for
from services.background_sync import BackgroundSyncManager
from services.connectivity import ConnectivityMonitor
from services.sync_handlers import build_http_handlers
from services.sync_queue_store import SyncQueueStore
from storage.db import init_db


def build_manager(base_url=None, *, persist=BACKGROUND_SYNC.persist_queue) -> BackgroundSyncManager:
    if persist:
        init_db()
    return BackgroundSyncManager(
        build_http_handlers(base_url),
        connectivity=ConnectivityMonitor(),
        store=SyncQueueStore() if persist else None,
    )


async def _run(args) -> int:
    manager = build_manager(args.base_url)
    try:
        if args.clear:
            manager.clear_queue()
        if args.retry_failed:
            manager.retry_failed_operations()
        if args.status:
            status = manager.get_status()
            print(json.dumps(status.to_dict(), indent=2))
            print(indicator_for(status).label)
            return 0
        if args.once:
            await manager.drain()
            await manager.wait_idle()
            print(indicator_for(manager.get_status()).label)
            return 1 if manager.get_status().failed_operations else 0

        await manager.start(probe=not args.no_probe)
        while True:
            await asyncio.sleep(3600)
    finally:
        await manager.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__ or "")
    parser.add_argument("--base-url", default=None, help="Root URL of the RealGrind web app.")
    parser.add_argument("--once", action="store_true", help="Drain the stored queue once and exit.")
    parser.add_argument("--status", action="store_true", help="Print the queue status and exit.")
    parser.add_argument("--retry-failed", action="store_true", help="Requeue permanently failed operations.")
    parser.add_argument("--clear", action="store_true", help="Drop every queued and failed operation.")
    parser.add_argument("--no-probe", action="store_true", help="Assume the network is always up.")
    args = parser.parse_args()

    try:
        raise SystemExit(asyncio.run(_run(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
