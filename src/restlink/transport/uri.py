"""Base address normalization and request URI resolution."""

from __future__ import annotations

import httpx

from restlink.errors import ConfigurationError


def normalize_base_uri(base_uri: str | None) -> str:
    """Ensure a base address ends with exactly the one trailing ``/`` it needs.

    A base that already ends with ``/`` is returned unchanged, so the
    operation is idempotent.

    Raises:
        ConfigurationError: The base URI is missing, empty or whitespace.

    Example:
        >>> normalize_base_uri("http://host/a")
        'http://host/a/'
        >>> normalize_base_uri("http://host/a/")
        'http://host/a/'
    """
    if base_uri is None or not base_uri.strip():
        raise ConfigurationError("base_uri", "The base uri is not set.")
    if base_uri.endswith("/"):
        return base_uri
    return base_uri + "/"


def is_absolute_uri(uri: str | httpx.URL) -> bool:
    """True for a URI with both a scheme and a host."""
    return httpx.URL(uri).is_absolute_url


def resolve_uri(uri: str | httpx.URL, base: str | httpx.URL | None = None) -> httpx.URL:
    """Resolve a request URI against a base address.

    Absolute URIs are returned as they are and the base is ignored. Relative
    ones are joined onto the base following RFC 3986, so with base
    ``http://svc/api/`` the URI ``items`` becomes ``http://svc/api/items``
    and ``/items`` becomes ``http://svc/items``.

    Raises:
        ConfigurationError: The URI is relative and there is no base.
    """
    url = httpx.URL(uri)
    if url.is_absolute_url:
        return url
    if base is None or not str(base):
        raise ConfigurationError(
            "base_uri",
            f"Cannot resolve relative uri '{uri}': the client has no base uri.",
        )
    return httpx.URL(base).join(url)
