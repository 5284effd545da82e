"""Online/offline signal for the background sync queue.

The host pushes transitions with :meth:`ConnectivityMonitor.set_online`
(browser events, OS network callbacks, a web socket closing, ...). When no
such signal exists, :meth:`ConnectivityMonitor.run_probe` derives one by
periodically opening a TCP connection to a probe endpoint.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from core.settings import BACKGROUND_SYNC, ConnectivitySettings
from services.sync_events import StatusEmitter


logger = logging.getLogger("realgrind.sync")


class ConnectivityMonitor:
    def __init__(
        self,
        online: bool = True,
        settings: Optional[ConnectivitySettings] = None,
    ) -> None:
        self.settings = settings or BACKGROUND_SYNC.connectivity
        self._online = bool(online)
        self._changes: StatusEmitter[bool] = StatusEmitter()

    @property
    def is_online(self) -> bool:
        return self._online

    def on_change(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Register a callback fired on online/offline transitions only."""
        return self._changes.subscribe(callback)

    def set_online(self, online: bool) -> None:
        online = bool(online)
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        self._changes.emit(online)

    # ------------------------------------------------------------------
    # Probing
    async def probe(self) -> bool:
        """Try one TCP connect to the probe endpoint."""
        host = self.settings.probe_host
        if not host:
            return self._online
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, self.settings.probe_port),
                timeout=self.settings.probe_timeout_sec,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("Probe %s:%s failed: %s", host, self.settings.probe_port, exc)
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def run_probe(self) -> None:
        """Probe forever, updating the signal after every attempt."""
        logger.info(
            "Connectivity probe started (%s:%s every %.0fs)",
            self.settings.probe_host,
            self.settings.probe_port,
            self.settings.check_interval_sec,
        )
        while True:
            self.set_online(await self.probe())
            await asyncio.sleep(self.settings.check_interval_sec)


__all__ = ["ConnectivityMonitor"]
