"""
Structured logging context

Thin helpers over structlog contextvars. Anything bound here is merged into
every log record emitted in the same task, including records from plain
``logging`` loggers once configure_logging() has run.
"""

import time
from contextlib import contextmanager
from typing import Any, Optional

import structlog
from structlog.contextvars import bind_contextvars, bound_contextvars, unbind_contextvars

QUERY_CONTEXT_KEYS = ("query_id", "keyword", "region")


def bind_query_context(query: Any, **extra):
    """
    Tag subsequent logs with the active listing query.

    Binds ``query_id`` (the query fingerprint) plus ``keyword`` and ``region``
    when set; ``extra`` pairs are bound alongside.
    """
    context = {"query_id": query.fingerprint()}
    if query.keyword:
        context["keyword"] = query.keyword
    if query.region:
        context["region"] = query.region
    context.update(extra)
    bind_contextvars(**context)


def unbind_context(*keys: str):
    unbind_contextvars(*keys)


@contextmanager
def log_context(**context_vars):
    """
    Bind ``context_vars`` for the duration of the block.

    Values that were bound before the block are restored afterwards.

        with log_context(page=3, load_mode="append"):
            logger.info("loading")
    """
    with bound_contextvars(**context_vars):
        yield


@contextmanager
def log_performance(operation_name: str, logger: Optional[Any] = None):
    """Log ``<operation>_started`` and ``<operation>_completed`` with the elapsed milliseconds"""
    log = logger or structlog.get_logger()
    started = time.perf_counter()
    log.info(f"{operation_name}_started", operation=operation_name)
    try:
        yield
    finally:
        log.info(
            f"{operation_name}_completed",
            operation=operation_name,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
