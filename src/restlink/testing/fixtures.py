"""Pytest fixtures and context managers for restlink tests.

Fixtures (use with pytest, load with ``pytest_plugins = ["restlink.testing.fixtures"]``):
    token_cache: Fresh TokenCache without a handler.
    log_capture: (logger, LogCapture) pair from make_capturing_logger().
    stub_transport: Fresh StubTransport.
    service_client: ServiceClient wired to the three fixtures above (async).

Context managers:
    test_client(): Async context manager yielding a ServiceClient over a StubTransport.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import pytest
from structlog.testing import LogCapture
from structlog.typing import FilteringBoundLogger

from restlink.auth.token_cache import TokenCache
from restlink.testing.mocks import StubTransport, make_capturing_logger
from restlink.transport.client import ServiceClient

DEFAULT_TEST_BASE_URI = "http://downstream.test/api/"


@pytest.fixture
def token_cache() -> TokenCache:
    """Create a TokenCache isolated from the process-wide one.

    Returns:
        A TokenCache with no handler registered.
    """
    return TokenCache()


@pytest.fixture
def log_capture() -> tuple[FilteringBoundLogger, LogCapture]:
    """Provide a logger and the LogCapture receiving its events."""
    return make_capturing_logger()


@pytest.fixture
def stub_transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
async def service_client(
    stub_transport: StubTransport,
    token_cache: TokenCache,
    log_capture: tuple[FilteringBoundLogger, LogCapture],
) -> AsyncIterator[ServiceClient]:
    """Provide a ServiceClient over ``stub_transport`` (async fixture).

    The client uses the ``token_cache`` fixture and logs into ``log_capture``,
    so a test can script responses, register a handler and inspect events.

    Yields:
        ServiceClient pointing at DEFAULT_TEST_BASE_URI.
    """
    log, _ = log_capture
    async with ServiceClient(
        DEFAULT_TEST_BASE_URI,
        transport=stub_transport,
        token_cache=token_cache,
        log=log,
    ) as client:
        yield client


@asynccontextmanager
async def test_client(
    base_uri: str = DEFAULT_TEST_BASE_URI,
    transport: StubTransport | None = None,
    **kwargs: Any,
) -> AsyncIterator[ServiceClient]:
    """Async context manager that provides a ServiceClient for the scope.

    Args:
        base_uri: Service base URI.
        transport: Stub transport; a fresh one when omitted.
        **kwargs: Passed to ServiceClient (options, header_source, ...).

    Example:
        >>> stub = StubTransport().add_response(json={"id": 1})
        >>> async with test_client(transport=stub, token_cache=TokenCache()) as client:
        ...     response = await client.get("items/1", dict)
    """
    kwargs.setdefault("token_cache", TokenCache())
    async with ServiceClient(
        base_uri, transport=transport or StubTransport(), **kwargs
    ) as client:
        yield client


__all__ = [
    "DEFAULT_TEST_BASE_URI",
    "log_capture",
    "service_client",
    "stub_transport",
    "test_client",
    "token_cache",
]
