"""restlink testing utilities for easier test authoring.

This package provides pytest fixtures, a stub transport and log capture
helpers to reduce boilerplate when testing code that calls services
through RestClient.

Modules:
    fixtures: Pytest fixtures (token_cache, log_capture, stub_transport,
              service_client) and the test_client() context manager.
    mocks: StubTransport with scripted responses and request recording;
           make_capturing_logger() for asserting on log events.

Example:
    >>> from restlink.testing import StubTransport, make_capturing_logger
    >>> from restlink.testing.fixtures import test_client
"""

from restlink.testing.mocks import StubTransport, events_named, make_capturing_logger
from restlink.transport.headers import StaticHeaderSource

__all__ = [
    "StaticHeaderSource",
    "StubTransport",
    "events_named",
    "make_capturing_logger",
]
