"""Observability helpers for the token validator.

Structured loggers on top of the standard library hierarchy, with an opt-in
console or JSON handler for the package logger.

Example:
    >>> from ms_id_token.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("ms_id_token.jwks.fetched", key_count=4)
"""

from ms_id_token.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    sanitize_for_logging,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "sanitize_for_logging",
]
