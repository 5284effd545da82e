"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "RealGrind"


DATA_DIR = get_default_data_dir(APP_NAME)
STORAGE_DIR = DATA_DIR / "storage"
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, STORAGE_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = STORAGE_DIR / "sync.db"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_sec: float = 1.0
    multiplier: float = 2.0
    max_delay_sec: float = 30.0
    # None keeps handler calls unbounded.
    handler_timeout_sec: Optional[float] = None

    def backoff(self, retry_count: int) -> float:
        """Seconds to wait before attempt number ``retry_count + 1``."""
        delay = self.base_delay_sec * (self.multiplier ** max(retry_count, 0))
        return max(0.0, min(self.max_delay_sec, delay))


@dataclass(frozen=True)
class ConnectivitySettings:
    probe_host: str = "codeforces.com"
    probe_port: int = 443
    probe_timeout_sec: float = 5.0
    check_interval_sec: float = 30.0


@dataclass(frozen=True)
class BackgroundSyncSettings:
    enabled: bool = True
    api_base_url: str = "http://localhost:3000"
    periodic_interval_sec: int = 5 * 60
    persist_queue: bool = True
    retry: RetryPolicy = RetryPolicy()
    connectivity: ConnectivitySettings = ConnectivitySettings()


BACKGROUND_SYNC = BackgroundSyncSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "STORAGE_DIR",
    "LOG_DIR",
    "DB_PATH",
    "SYNC_LOG_PATH",
    "RetryPolicy",
    "ConnectivitySettings",
    "BackgroundSyncSettings",
    "BACKGROUND_SYNC",
    "get_default_data_dir",
]
