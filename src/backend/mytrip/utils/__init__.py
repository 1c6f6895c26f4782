"""Identifier normalization and logging context helpers."""

from .ids import normalize_content_id
from .logging_context import (
    bind_query_context,
    unbind_context,
    log_context,
    log_performance,
    QUERY_CONTEXT_KEYS,
)

__all__ = [
    "normalize_content_id",
    "bind_query_context",
    "unbind_context",
    "log_context",
    "log_performance",
    "QUERY_CONTEXT_KEYS",
]
