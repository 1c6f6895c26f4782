"""
Structured logging setup

Library modules log through ``logging.getLogger(__name__)``; hosts call
``configure_logging()`` once at startup to route those records through
structlog.

Environment:
    ENV: "production" renders JSON lines, anything else a console layout
    LOG_LEVEL: root level name (default INFO)
    LOG_FILE_PATH: optional rotating log file
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Optional

import structlog

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

QUIET_LOGGERS = ("httpx", "httpcore")


def _shared_processors() -> List:
    # Applied to structlog and foreign (stdlib) records alike
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _renderer(env: str):
    if env == "production":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def _file_handler(log_file_path: str) -> logging.Handler:
    path = Path(log_file_path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=str(path),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )


def configure_logging(log_file_path: Optional[str] = None):
    """
    Route stdlib and structlog records through one structlog formatter.

    Replaces any handlers already on the root logger with a stdout handler,
    plus a rotating file handler when ``log_file_path`` or LOG_FILE_PATH is set.

    Returns:
        A structlog logger for the caller
    """
    env = os.getenv("ENV", "development").lower()
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    shared = _shared_processors()
    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(env),
        ],
    )

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file_path = log_file_path or os.getenv("LOG_FILE_PATH")
    if log_file_path:
        handlers.append(_file_handler(log_file_path))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger(__name__)
