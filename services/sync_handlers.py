"""Default handlers: POST each operation payload to the app's sync routes."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import aiohttp

from core.settings import BACKGROUND_SYNC
from services.background_sync import (
    CF_VERIFICATION_SYNC,
    CONTEST_DATA_SYNC,
    LEADERBOARD_SYNC,
    PROBLEM_RECOMMENDATIONS_SYNC,
    USER_STATS_SYNC,
    Handler,
)
from services.sync_errors import SyncHandlerError


logger = logging.getLogger("realgrind.sync")

ENDPOINTS: Dict[str, str] = {
    USER_STATS_SYNC: "/api/sync/user",
    CONTEST_DATA_SYNC: "/api/sync/contests",
    PROBLEM_RECOMMENDATIONS_SYNC: "/api/problems/recommendations",
    LEADERBOARD_SYNC: "/api/sync/leaderboard",
    CF_VERIFICATION_SYNC: "/api/verify-cf/check",
}


def _clean(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Optional arguments travel as None; the routes expect them absent.
    return {key: value for key, value in payload.items() if value is not None}


def make_http_handler(
    kind: str,
    url: str,
    session_factory: Callable[[], Any] = aiohttp.ClientSession,
    headers: Optional[Dict[str, str]] = None,
) -> Handler:
    async def handler(payload: Dict[str, Any]) -> None:
        async with session_factory() as session:
            async with session.post(url, json=_clean(payload), headers=headers) as resp:
                if resp.status >= 400:
                    raise SyncHandlerError(kind, resp.status, resp.reason or "")
        logger.debug("%s -> %s ok", kind, url)

    handler.__name__ = f"sync_{kind.replace('-', '_')}"
    return handler


def build_http_handlers(
    base_url: Optional[str] = None,
    *,
    session_factory: Callable[[], Any] = aiohttp.ClientSession,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Handler]:
    """Return the handler map for every known operation kind."""
    root = (base_url or BACKGROUND_SYNC.api_base_url).rstrip("/")
    return {
        kind: make_http_handler(kind, root + path, session_factory, headers)
        for kind, path in ENDPOINTS.items()
    }


__all__ = ["ENDPOINTS", "build_http_handlers", "make_http_handler"]
