from __future__ import annotations

import json
import logging

from app.till.core.config import settings


def configure_logging() -> None:
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")


def log_json(logger: logging.Logger, payload: dict, *, level: int = logging.INFO) -> None:
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))


def log_event(logger: logging.Logger, event: str, **fields) -> None:
    """Emit a domain event as a single JSON line.

    ``None`` values are dropped so log lines only carry what is known.
    """
    payload = {"event": event}
    payload.update({key: value for key, value in fields.items() if value is not None})
    log_json(logger, payload)
