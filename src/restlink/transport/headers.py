"""Forwarding of inbound request headers to downstream calls.

The inbound web framework is not a dependency: the client reads inbound
headers through a ``HeaderSource``. Two sources are provided:

- StaticHeaderSource: a fixed mapping (case-insensitive lookups).
- ContextHeaderSource: reads headers bound to the current asyncio task with
  ``inbound_headers(...)``, which an application sets once per inbound
  request (e.g. from its own middleware).

Example:
    >>> with inbound_headers({"X-Trace-Id": "abc"}):
    ...     await client.get("items", list[Item])  # X-Trace-Id forwarded
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional, Protocol, runtime_checkable

import httpx

from restlink.models.constants import AUTHORIZATION_HEADER, BEARER_SCHEME
from restlink.models.options import HeaderOptions
from restlink.observability import REDACTED_PLACEHOLDER, sanitize_for_logging

_inbound_headers: ContextVar[Optional[httpx.Headers]] = ContextVar(
    "restlink_inbound_headers", default=None
)


@runtime_checkable
class HeaderSource(Protocol):
    """Read-only view of the headers of the inbound call being served."""

    def lookup(self, name: str) -> str | None:
        """Return the inbound value of ``name`` or None."""
        ...


class StaticHeaderSource:
    """Header source over a fixed mapping."""

    def __init__(self, headers: Mapping[str, str] | httpx.Headers | None = None) -> None:
        self._headers = httpx.Headers(headers or {})

    def lookup(self, name: str) -> str | None:
        return self._headers.get(name)


class ContextHeaderSource:
    """Header source reading the headers bound by ``inbound_headers()``."""

    def lookup(self, name: str) -> str | None:
        headers = _inbound_headers.get()
        if headers is None:
            return None
        return headers.get(name)


@contextmanager
def inbound_headers(headers: Mapping[str, str] | httpx.Headers) -> Iterator[None]:
    """Bind inbound headers to the current context for ContextHeaderSource."""
    token = _inbound_headers.set(httpx.Headers(headers))
    try:
        yield
    finally:
        _inbound_headers.reset(token)


class HeaderForwardingPolicy:
    """Selects, attaches and renders forwarded headers for one client.

    Args:
        options: Configured header names and the log flag.
        source: Inbound header source; None disables forwarding.
    """

    def __init__(self, options: HeaderOptions, source: HeaderSource | None = None) -> None:
        self.options = options
        self.source = source

    def collect(self) -> dict[str, str]:
        """Configured headers present with a non-empty inbound value, in configured order."""
        if self.source is None:
            return {}
        forwarded: dict[str, str] = {}
        for name in self.options.forwarded_headers:
            value = self.source.lookup(name)
            if value:
                forwarded[name] = value
        return forwarded

    @staticmethod
    def apply(headers: httpx.Headers, forwarded: Mapping[str, str]) -> None:
        """Add forwarded headers unless the request already carries them."""
        for name, value in forwarded.items():
            if name in headers:
                continue
            headers[name] = value

    def render(self, forwarded: Mapping[str, str]) -> dict[str, str]:
        """Forwarded headers as a log field; values hidden if logging is disabled."""
        if not self.options.log_forwarded_headers:
            return {name: REDACTED_PLACEHOLDER for name in forwarded}
        return sanitize_for_logging(forwarded)

    def inbound_bearer_token(self) -> str | None:
        """Bearer credential of the inbound call, if it carried one."""
        if self.source is None:
            return None
        value = self.source.lookup(AUTHORIZATION_HEADER)
        if not value:
            return None
        scheme, _, token = value.strip().partition(" ")
        if scheme.lower() != BEARER_SCHEME.lower() or not token.strip():
            return None
        return token.strip()
