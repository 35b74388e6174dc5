"""Observability module for restlink.

Structured logging for outbound request events: console output with colors
for development, JSON output for production, context binding and log-safe
redaction helpers.

Example:
    >>> from restlink.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("restlink.client.request_started", method="GET", uri="http://svc/items")
"""

from restlink.observability.logging import (
    MAX_LOGGED_BODY_LENGTH,
    REDACTED_PLACEHOLDER,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
    truncate_for_logging,
)

__all__ = [
    "MAX_LOGGED_BODY_LENGTH",
    "REDACTED_PLACEHOLDER",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
    "truncate_for_logging",
]
