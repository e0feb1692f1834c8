"""Process-wide ``visiongate`` logger: stderr plus a rotating file when ``log_dir`` is set."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from visiongate.config.settings import settings


LOGGER_NAME = "visiongate"
LOG_FILE_NAME = "visiongate.log"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(raw: str) -> int:
    level = logging.getLevelName(str(raw or "info").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _file_handler() -> RotatingFileHandler | None:
    if not settings.log_dir:
        return None
    log_dir = Path(settings.log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=settings.log_file_max_bytes,
            backupCount=settings.log_file_backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        # read-only filesystem in containers: keep stderr only
        logging.getLogger(__name__).warning("file logging disabled dir=%s error=%s", log_dir, exc)
        return None


def _build_logger() -> logging.Logger:
    configured = logging.getLogger(LOGGER_NAME)
    if configured.handlers:
        return configured

    level = _resolve_level(settings.log_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    file_handler = _file_handler()
    if file_handler is not None:
        handlers.append(file_handler)

    configured.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        configured.addHandler(handler)
    configured.propagate = False
    return configured


logger = _build_logger()
