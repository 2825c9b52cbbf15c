from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .config import LogConfig

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Emit one structured log record as a JSON object.

    When `exc` is given the error type and message are added to the payload;
    records at ERROR and above also carry the traceback.
    """

    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        if value is not None:
            payload[key] = value
    if exc is not None:
        payload["error"] = str(exc)
        payload["error_type"] = type(exc).__name__
    message = json.dumps(payload, default=str, ensure_ascii=False)
    exc_info = exc if exc is not None and level >= logging.ERROR else None
    logger.log(level, message, exc_info=exc_info)


def setup_rotating_logger(name: str, config: "LogConfig") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(config.level)
    if getattr(logger, "_crossbot_configured", False):
        return logger

    formatter = logging.Formatter(_LOG_FORMAT)
    config.path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        config.path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    logger.propagate = False
    logger._crossbot_configured = True  # type: ignore[attr-defined]
    return logger
