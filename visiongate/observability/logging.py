"""Pipeline event lines on the project logger."""

from __future__ import annotations

import logging

from visiongate.util.logger import logger


def log_event(event: str, *, level: int = logging.INFO, **fields: object) -> None:
    if not logger.isEnabledFor(level):
        return
    rendered = " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)
    logger.log(level, "event=%s %s", event, rendered)
