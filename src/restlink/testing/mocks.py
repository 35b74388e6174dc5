"""Stub transport and log capture for restlink tests.

This module provides StubTransport: an ``httpx.MockTransport`` that replays
scripted responses and records every request it receives, plus a helper
that builds a structlog logger whose events land in a ``LogCapture``.

Features:
    - Scripted responses consumed in order, then a default response.
    - Request recording for assertions on URL, headers and body.
    - Configurable delay or one-shot failure for timeout and error-path tests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
import structlog
from structlog.testing import LogCapture
from structlog.typing import FilteringBoundLogger


class StubTransport(httpx.MockTransport):
    """Mock transport returning scripted responses.

    Attributes:
        requests: Every request received, in order (read-only by convention).
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: list[dict[str, Any]] = []
        self._default_response: dict[str, Any] = {"status_code": 200}
        self._delay_seconds: float = 0.0
        self._failure: BaseException | None = None
        super().__init__(self._handle)

    def add_response(
        self,
        status_code: int = 200,
        *,
        json: Any = None,
        text: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> StubTransport:
        """Queue a response for the next unanswered request.

        Args:
            status_code: HTTP status code.
            json: Body encoded as JSON (ignored when ``text`` is given).
            text: Raw body text.
            headers: Response headers.

        Returns:
            The transport, so calls can be chained.
        """
        self._responses.append(
            {"status_code": status_code, "json": json, "text": text, "headers": headers}
        )
        return self

    def set_default_response(
        self,
        status_code: int = 200,
        *,
        json: Any = None,
        text: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Response used once the scripted responses are exhausted."""
        self._default_response = {
            "status_code": status_code,
            "json": json,
            "text": text,
            "headers": headers,
        }

    def set_delay(self, seconds: float) -> None:
        """Sleep before answering. Useful for timeout tests."""
        self._delay_seconds = max(0.0, seconds)

    def set_failure(self, exception: BaseException | None) -> None:
        """Raise ``exception`` on the next request. Clears after raise."""
        self._failure = exception

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def clear(self) -> None:
        """Clear recorded requests, scripted responses, delay and failure."""
        self.requests.clear()
        self._responses.clear()
        self._default_response = {"status_code": 200}
        self._delay_seconds = 0.0
        self._failure = None

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self._failure is not None:
            exc = self._failure
            self._failure = None
            raise exc

        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)

        script = self._responses.pop(0) if self._responses else self._default_response
        return _build_response(request, **script)


def _build_response(
    request: httpx.Request,
    status_code: int,
    json: Any = None,
    text: str | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    if text is not None:
        return httpx.Response(status_code, text=text, headers=headers, request=request)
    if json is not None:
        return httpx.Response(status_code, json=json, headers=headers, request=request)
    return httpx.Response(status_code, headers=headers, request=request)


def make_capturing_logger() -> tuple[FilteringBoundLogger, LogCapture]:
    """Build a logger whose events are collected in a LogCapture.

    The logger does not depend on the global structlog configuration, so
    it can be handed to RestClient or TokenCache through their ``log``
    argument.

    Example:
        >>> log, capture = make_capturing_logger()
        >>> client = RestClient(transport=stub, log=log)
        >>> await client.get("http://svc/items")
        >>> [e["event"] for e in capture.entries]
        ['restlink.client.request_started', 'restlink.client.request_finished']
    """
    capture = LogCapture()
    log = structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        cache_logger_on_first_use=False,
    )
    return log, capture


def events_named(capture: LogCapture, event: str) -> list[dict[str, Any]]:
    """Captured entries for one event name."""
    return [entry for entry in capture.entries if entry["event"] == event]


__all__ = ["StubTransport", "events_named", "make_capturing_logger"]
