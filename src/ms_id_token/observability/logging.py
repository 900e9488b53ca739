"""Structured logging for the token validator.

Loggers returned by ``get_logger`` are structlog wrappers around the
standard library logger of the same name, so the host application's
``logging`` setup decides what is emitted and where. Nothing here runs at
import time: the root logger and the global structlog configuration are
left alone.

Hosts that want ready-made output call ``configure_logging``. It attaches
one console or JSON handler to the ``ms_id_token`` package logger only.

Environment Variables:
    MS_ID_TOKEN_LOG_FORMAT: "json" for JSON lines, "console" for colored output
    MS_ID_TOKEN_LOG_LEVEL: Package log level (DEBUG, INFO, WARNING, ERROR)

Example:
    >>> from ms_id_token.observability.logging import configure_logging, get_logger
    >>>
    >>> configure_logging(log_format="json", log_level="DEBUG")
    >>> logger = get_logger("ms_id_token.jwks")
    >>> logger.info("ms_id_token.jwks.fetched", key_count=3)
"""

import logging
import os
import sys
from typing import Any, Optional

import structlog
from structlog.typing import Processor

PACKAGE_LOGGER_NAME = "ms_id_token"

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"

ENV_LOG_FORMAT = "MS_ID_TOKEN_LOG_FORMAT"
ENV_LOG_LEVEL = "MS_ID_TOKEN_LOG_LEVEL"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Key substrings (case-insensitive) that mark personal or secret claim values
_SENSITIVE_KEY_PATTERNS = frozenset(
    {"password", "token", "secret", "authorization", "email", "name", "upn"}
)

# Event fields travel to the stdlib record as ``extra`` attributes.
_LOGGER_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.stdlib.render_to_log_kwargs,
]

_installed_handler: Optional[logging.Handler] = None


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Redact personal and secret values from a claims dict before logging.

    Keys matching (case-insensitive) password, token, secret, authorization,
    email, name or upn have their values replaced with REDACTED_PLACEHOLDER.
    Nested dicts and lists of dicts are handled recursively.

    Example:
        >>> sanitize_for_logging({"sub": "abc", "preferred_username": "alice@example.com"})
        {'sub': 'abc', 'preferred_username': '***REDACTED***'}
    """
    if not data:
        return {}
    result: dict[str, Any] = {}
    for k, v in data.items():
        if _is_sensitive_key(k):
            result[k] = REDACTED_PLACEHOLDER
        elif isinstance(v, dict):
            result[k] = sanitize_for_logging(v)
        elif isinstance(v, list):
            result[k] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item for item in v
            ]
        else:
            result[k] = v
    return result


def _build_formatter(log_format: str) -> structlog.stdlib.ProcessorFormatter:
    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.ExtraAdder(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(
    log_format: Optional[str] = None,
    log_level: Optional[str] = None,
) -> logging.Logger:
    """Send the package's log events to stdout.

    Calling it again replaces the handler installed by the previous call.
    Handlers the host attached itself are kept.

    Args:
        log_format: "json" or "console". Defaults to env var or "console".
        log_level: Minimum level for ``ms_id_token.*``. Defaults to env var or "INFO".

    Returns:
        The configured ``ms_id_token`` package logger.
    """
    global _installed_handler

    log_format = (log_format or os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)).lower()
    log_level = (log_level or os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    if _installed_handler is not None:
        package_logger.removeHandler(_installed_handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter(log_format))
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, log_level))
    # Own handler now; do not duplicate lines through the host's root handlers.
    package_logger.propagate = False

    _installed_handler = handler
    return package_logger


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structured logger backed by ``logging.getLogger(name)``.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("ms_id_token.validator.accepted", sub="abc")
    """
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=_LOGGER_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in all subsequent events of this context.

    Example:
        >>> bind_context(request_id="req_123")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
