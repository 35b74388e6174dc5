"""restlink HTTP transport layer.

This module provides the outbound REST client and its building blocks:
- httpx for the shared async connection pool
- Per-call cancellation tokens for deadlines
- Forwarding of inbound headers to downstream calls
- URI normalization and resolution against a base address

Public exports:
    RestClient: Async REST client over a shared httpx.AsyncClient
    ServiceClient: RestClient bound to one service base URI
    RestResponse: Response envelope with the deserialized result
    CancellationToken: Deadline and cancel switch for one call
    HeaderSource: Protocol for reading inbound headers
    StaticHeaderSource: Header source over a fixed mapping
    ContextHeaderSource: Header source bound per asyncio task
    HeaderForwardingPolicy: Selects and renders forwarded headers
    inbound_headers: Context manager binding inbound headers
    normalize_base_uri: Ensure a base URI ends with "/"
    resolve_uri: Resolve a request URI against a base

Example:
    >>> from restlink.transport import ServiceClient
    >>> async with ServiceClient("http://inventory.internal/v1") as client:
    ...     response = await client.get("items/42", Item)
    ...     item = response.result_object
"""

from restlink.transport.cancellation import CancellationToken, Timeout, timeout_seconds
from restlink.transport.client import NO_BODY, RestClient, ServiceClient
from restlink.transport.headers import (
    ContextHeaderSource,
    HeaderForwardingPolicy,
    HeaderSource,
    StaticHeaderSource,
    inbound_headers,
)
from restlink.transport.response import RestResponse
from restlink.transport.uri import is_absolute_uri, normalize_base_uri, resolve_uri

__all__ = [
    "NO_BODY",
    "CancellationToken",
    "ContextHeaderSource",
    "HeaderForwardingPolicy",
    "HeaderSource",
    "RestClient",
    "RestResponse",
    "ServiceClient",
    "StaticHeaderSource",
    "Timeout",
    "inbound_headers",
    "is_absolute_uri",
    "normalize_base_uri",
    "resolve_uri",
    "timeout_seconds",
]
