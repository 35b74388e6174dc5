"""structlog setup for restlink log events.

Every outbound call logs a start event and then exactly one of finished,
failed or error, all carrying the call's method, URI, forwarded headers and
the downstream event id. Token refreshes log their own events. This module
owns how those events are rendered.

Output goes through the stdlib ``logging`` root handler so restlink events
interleave with the host application's own logs:

- ``console``: colored key/value lines for local development
- ``json``: one JSON object per line for log shippers

Environment Variables:
    RESTLINK_LOG_FORMAT: "json" or "console" (default)
    RESTLINK_LOG_LEVEL: DEBUG, INFO (default), WARNING, ERROR, CRITICAL
    RESTLINK_SERVICE_NAME: value of the ``service`` field on every event
    RESTLINK_DEBUG: "true"/"1" keeps request and response bodies whole in
        log events; otherwise they are cut to MAX_LOGGED_BODY_LENGTH

Example:
    >>> from restlink.observability.logging import configure_logging, get_logger
    >>>
    >>> configure_logging(log_format="json")
    >>> log = get_logger("orders.client")
    >>> log.info("restlink.client.request_started", method="GET", uri="http://svc/orders")
"""

import logging
import os
import sys
from collections.abc import Mapping
from typing import Any

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "restlink"

ENV_LOG_FORMAT = "RESTLINK_LOG_FORMAT"
ENV_LOG_LEVEL = "RESTLINK_LOG_LEVEL"
ENV_SERVICE_NAME = "RESTLINK_SERVICE_NAME"
ENV_DEBUG = "RESTLINK_DEBUG"

# Replaces values that must never reach a log sink (credentials, hidden headers)
REDACTED_PLACEHOLDER = "***REDACTED***"

MAX_LOGGED_BODY_LENGTH = 2048

# Substrings of a key (lowercased) that mark its value as a credential
_SENSITIVE_KEY_PARTS = ("password", "token", "secret", "key", "authorization", "auth")

_TRUTHY = ("true", "1", "yes", "on")

_configured = False


def _env(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def _looks_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in _SENSITIVE_KEY_PARTS)


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return sanitize_for_logging(value)
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def sanitize_for_logging(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy ``data`` with credential-looking values replaced.

    A key is treated as a credential when it contains (case-insensitively)
    password, token, secret, key, authorization or auth. Nested mappings and
    mappings inside lists are handled too. Keys keep their order.

    Example:
        >>> sanitize_for_logging({"X-Trace-Id": "abc", "Authorization": "Bearer x"})
        {'X-Trace-Id': 'abc', 'Authorization': '***REDACTED***'}
    """
    return {
        key: REDACTED_PLACEHOLDER if _looks_sensitive(str(key)) else _redact(value)
        for key, value in data.items()
    }


def is_debug_mode() -> bool:
    """True when RESTLINK_DEBUG is set to a truthy value."""
    return os.environ.get(ENV_DEBUG, "").strip().lower() in _TRUTHY


def truncate_for_logging(text: str | None, limit: int = MAX_LOGGED_BODY_LENGTH) -> str | None:
    """Shorten a request/response body for a log event (whole in debug mode)."""
    if text is None or len(text) <= limit or is_debug_mode():
        return text
    return f"{text[:limit]}... ({len(text) - limit} more characters)"


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
) -> None:
    """Route structlog events through a stdlib handler on stdout.

    Runs once per process unless ``force`` is set; arguments left as None
    fall back to the RESTLINK_* environment variables, then to the defaults.

    Args:
        log_format: "json" or "console".
        log_level: Minimum level name for the root logger.
        service_name: Bound as ``service`` on every event.
        force: Reconfigure even if logging was already set up.
    """
    global _configured

    if _configured and not force:
        return

    log_format = (log_format or _env(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)).lower()
    log_level = (log_level or _env(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    service_name = service_name or _env(ENV_SERVICE_NAME, DEFAULT_SERVICE_NAME)

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level))

    structlog.contextvars.bind_contextvars(service=service_name)
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for ``name``; configures logging with defaults on first use."""
    if not _configured:
        configure_logging()
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach fields (e.g. ``trace_id``) to every later event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop every field bound with bind_context()."""
    structlog.contextvars.clear_contextvars()
