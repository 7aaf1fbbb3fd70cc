"""Process-wide logging setup for the fiction API."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ihfiction.adapters.settings import env_str, int_env

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class LoggingSettings:
    """Resolved logging knobs; file output is size-bounded."""

    level: int
    log_path: Path
    max_bytes: int
    backup_count: int
    access_level: int

    @classmethod
    def from_env(cls) -> LoggingSettings:
        return cls(
            level=_level("IHFICTION_LOG_LEVEL", logging.INFO),
            log_path=Path(env_str("IHFICTION_LOG_PATH", "work/logs/ihfiction.log")),
            max_bytes=int_env(
                "IHFICTION_LOG_MAX_BYTES",
                5 * 1024 * 1024,
                minimum=64 * 1024,
                maximum=100 * 1024 * 1024,
            ),
            backup_count=int_env("IHFICTION_LOG_BACKUP_COUNT", 10, minimum=1, maximum=120),
            access_level=_level("IHFICTION_ACCESS_LOG_LEVEL", logging.WARNING),
        )


def _level(name: str, default: int) -> int:
    level_name = os.environ.get(name, "").strip().upper()
    value = getattr(logging, level_name, default) if level_name else default
    return value if isinstance(value, int) else default


def configure_runtime_logging(settings: LoggingSettings | None = None) -> None:
    """Attach console and rotating file handlers to the root logger, once."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    resolved = settings or LoggingSettings.from_env()

    resolved.log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(
            filename=resolved.log_path,
            maxBytes=resolved.max_bytes,
            backupCount=resolved.backup_count,
            encoding="utf-8",
        ),
    ]
    root = logging.getLogger()
    root.setLevel(resolved.level)
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(resolved.access_level)
    _CONFIGURED = True
