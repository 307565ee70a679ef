"""Centralized configuration for the TaxJar record sync."""
from __future__ import annotations

from dataclasses import dataclass, field
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
    """Return an OS-specific user data directory for ``app_name``.

    ``TAXJAR_SYNC_DATA_DIR`` in ``env`` overrides the platform default.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    override = environ.get("TAXJAR_SYNC_DATA_DIR")
    if override:
        return Path(override).expanduser()

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


APP_NAME = "TaxJarSync"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "queue.db"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class QueueSettings:
    table_name: str = "taxjar_record_queue"
    batch_table_name: str = "taxjar_sync_batch"
    max_retries: int = 3
    batch_size: int = 25


QUEUE = QueueSettings()


@dataclass(frozen=True)
class TaxJarSettings:
    api_url: str = "https://api.taxjar.com/v2/"
    api_token: str = field(default_factory=lambda: os.environ.get("TAXJAR_API_TOKEN", ""))
    timeout_sec: int = 30
    provider: str = "api"
    user_agent: str = f"{APP_NAME}/1.0"
    reportable_countries: tuple[str, ...] = ("US",)


TAXJAR = TaxJarSettings()


@dataclass(frozen=True)
class LogSettings:
    path: Path = SYNC_LOG_PATH
    max_bytes: int = 1_000_000
    backup_count: int = 3
    level: str = "INFO"


LOGGING = LogSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "SYNC_LOG_PATH",
    "QUEUE",
    "TAXJAR",
    "LOGGING",
    "get_default_data_dir",
]
