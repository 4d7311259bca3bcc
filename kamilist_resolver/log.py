import os
import sys
import json
import logging
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

ROOT_LOGGER_NAME = "kamilist"

logger = logging.getLogger(ROOT_LOGGER_NAME)


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach stdout and (optionally) rotating file handlers to the ``kamilist``
    logger. Safe to call more than once; handlers are only added once.

    Connector loggers (``sources.*``) are routed through the same handlers.
    """
    level_name = (level or os.environ.get("RESOLVER_LOG_LEVEL") or "INFO").upper()
    log_file = log_file or os.environ.get("RESOLVER_LOG_FILE") or None
    resolved_level = getattr(logging, level_name, logging.INFO)

    for name in (ROOT_LOGGER_NAME, "sources"):
        target = logging.getLogger(name)
        target.setLevel(resolved_level)

        if not any(getattr(h, "_kamilist_stream", False) for h in target.handlers):
            stream_handler = logging.StreamHandler(sys.stdout)
            stream_handler.setFormatter(logging.Formatter('%(message)s'))  # Keep stdout clean
            stream_handler._kamilist_stream = True
            target.addHandler(stream_handler)

        if log_file:
            log_path = os.path.abspath(log_file)
            if not any(getattr(h, "baseFilename", None) == log_path for h in target.handlers):
                log_dir = os.path.dirname(log_path)
                if log_dir:
                    os.makedirs(log_dir, exist_ok=True)
                file_handler = RotatingFileHandler(log_path, maxBytes=10*1024*1024, backupCount=5)
                file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                target.addHandler(file_handler)

    return logger


def log_event(target: Optional[logging.Logger], event: str, **fields: Any) -> None:
    """Write a structured event as one JSON line at INFO level."""
    target = target or logger
    if not target.isEnabledFor(logging.INFO):
        return
    payload = {"event": event}
    payload.update(fields)
    target.info(json.dumps(payload, ensure_ascii=True, separators=(',', ':'), default=str))
