"""restlink error taxonomy.

This module defines the error hierarchy for the outbound REST client layer,
providing structured error handling with specific error codes and context
information.

Transport failures (``httpx`` exceptions, ``TimeoutError`` from an expired
deadline) are not wrapped: they are logged and re-raised unchanged.
"""
from __future__ import annotations

from typing import Any


class RestLinkError(Exception):
    """Base exception for all restlink errors.

    Attributes:
        code: Error code following the restlink:<area>/<name> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(RestLinkError):
    """Raised when the client is constructed or used with missing configuration.

    Covers a blank base URI on a single-endpoint client, a relative request URI
    with no base address to resolve it against, and missing authentication
    settings. Never retried.
    """

    def __init__(self, setting: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="restlink:config/missing",
            message=message,
            details={"setting": setting, **(details or {})},
        )
        self.setting = setting


class ResponseError(RestLinkError):
    """Raised when a downstream service answers with a non-success status code.

    Raised after at most one refresh-and-retry on 401, so a 401 seen here means
    the retried request was rejected too.

    Attributes:
        status_code: HTTP status code of the final response
        response_data: Raw response body text
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        response_data: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="restlink:response/status",
            message=message,
            details={"status_code": status_code, **(details or {})},
        )
        self.status_code = status_code
        self.response_data = response_data


class SecurityTokenError(RestLinkError):
    """Raised when the registered refresh handler reports an explicit token error.

    Attributes:
        error: Error code reported by the token endpoint (e.g. invalid_client)
    """

    def __init__(
        self,
        message: str = "Could not retrieve token.",
        error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details_dict: dict[str, Any] = {}
        if error is not None:
            details_dict["error"] = error
        if details:
            details_dict.update(details)
        super().__init__(code="restlink:auth/token", message=message, details=details_dict)
        self.error = error


class DiscoveryEndpointError(RestLinkError):
    """Raised when the OpenID Connect discovery document cannot be obtained.

    Attributes:
        endpoint: Authentication endpoint that was queried
    """

    def __init__(
        self,
        endpoint: str,
        message: str,
        cause: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="restlink:auth/discovery",
            message=message,
            details={"endpoint": endpoint, **(details or {})},
        )
        self.endpoint = endpoint
        self.cause = cause


class RequestCancelledError(RestLinkError):
    """Raised when a request is aborted through its cancellation token."""

    def __init__(self, message: str = "The request was cancelled.") -> None:
        super().__init__(code="restlink:transport/cancelled", message=message)
