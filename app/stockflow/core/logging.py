from __future__ import annotations

import json
import logging

from app.stockflow.core.config import settings


def configure_logging() -> None:
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO), format="%(message)s")


def log_json(logger: logging.Logger, payload: dict, *, level: int = logging.INFO) -> None:
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields) -> None:
    log_json(logger, {"event": event, **fields}, level=level)
