"""Unit tests for the process-wide token cache.

Covers the fast path, expiry, single-flight refresh under concurrency,
forced refresh, handler errors and reset.
"""

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest

from restlink.auth.token_cache import CachedToken, TokenCache, TokenResponse, get_token_cache
from restlink.errors import SecurityTokenError
from restlink.testing import events_named, make_capturing_logger
from tests.factories import create_counting_handler


class FakeClock:
    """Settable wall clock."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))) as c:
        yield c


async def test_no_handler_returns_none(http_client: httpx.AsyncClient) -> None:
    cache = TokenCache()

    assert cache.has_handler is False
    assert await cache.get_token(http_client) is None


async def test_token_is_cached_until_expiry(http_client: httpx.AsyncClient) -> None:
    clock = FakeClock()
    handler, calls = create_counting_handler("t1", "t2", expires_in=60)
    cache = TokenCache(handler, clock=clock)

    first = await cache.get_token(http_client)
    clock.now += 59
    second = await cache.get_token(http_client)
    clock.now += 1
    third = await cache.get_token(http_client)

    assert first is second
    assert first.access_token == "t1"
    assert first.expires_at == 1_060.0
    assert third.access_token == "t2"
    assert calls[0] == 2


async def test_concurrent_callers_share_one_refresh(http_client: httpx.AsyncClient) -> None:
    calls = 0
    release = asyncio.Event()

    async def slow_handler(client: httpx.AsyncClient) -> TokenResponse:
        nonlocal calls
        calls += 1
        await release.wait()
        return TokenResponse(access_token=f"token-{calls}", expires_in=3600)

    cache = TokenCache(slow_handler)
    waiters = [asyncio.ensure_future(cache.get_token(http_client)) for _ in range(20)]
    await asyncio.sleep(0.01)
    release.set()
    tokens = await asyncio.gather(*waiters)

    assert calls == 1
    assert {token.access_token for token in tokens} == {"token-1"}


async def test_force_refresh_bypasses_valid_token(http_client: httpx.AsyncClient) -> None:
    handler, calls = create_counting_handler("t1", "t2")
    cache = TokenCache(handler)

    await cache.get_token(http_client)
    refreshed = await cache.get_token(http_client, force_refresh=True)

    assert refreshed.access_token == "t2"
    assert cache.token is refreshed
    assert calls[0] == 2


async def test_handler_receives_shared_client(http_client: httpx.AsyncClient) -> None:
    seen: list[httpx.AsyncClient] = []

    async def handler(client: httpx.AsyncClient) -> TokenResponse:
        seen.append(client)
        return TokenResponse(access_token="t", expires_in=10)

    await TokenCache(handler).get_token(http_client)

    assert seen == [http_client]


async def test_error_result_raises_security_token_error(http_client: httpx.AsyncClient) -> None:
    async def handler(client: httpx.AsyncClient) -> TokenResponse:
        return TokenResponse(error="invalid_client", error_description="bad secret")

    cache = TokenCache(handler)

    with pytest.raises(SecurityTokenError) as exc_info:
        await cache.get_token(http_client)

    assert exc_info.value.message == "Could not retrieve token."
    assert exc_info.value.error == "invalid_client"
    assert exc_info.value.details["error_description"] == "bad secret"
    assert cache.token is None


async def test_missing_access_token_is_an_error(http_client: httpx.AsyncClient) -> None:
    async def handler(client: httpx.AsyncClient) -> TokenResponse:
        return TokenResponse(expires_in=60)

    with pytest.raises(SecurityTokenError):
        await TokenCache(handler).get_token(http_client)


async def test_handler_exception_logs_critical_and_returns_none(
    http_client: httpx.AsyncClient,
) -> None:
    log, capture = make_capturing_logger()

    async def handler(client: httpx.AsyncClient) -> TokenResponse:
        raise RuntimeError("identity provider down")

    cache = TokenCache(handler, log=log)

    assert await cache.get_token(http_client) is None
    errors = events_named(capture, "restlink.auth.token_request_error")
    assert len(errors) == 1
    assert errors[0]["log_level"] == "critical"
    assert errors[0]["error_type"] == "RuntimeError"
    assert errors[0]["exc_info"] is True


async def test_refresh_emits_request_and_receive_events(http_client: httpx.AsyncClient) -> None:
    log, capture = make_capturing_logger()
    handler, _ = create_counting_handler("t1")
    cache = TokenCache(handler, log=log)

    await cache.get_token(http_client)
    await cache.get_token(http_client)

    assert [entry["event"] for entry in capture.entries] == [
        "restlink.auth.token_requested",
        "restlink.auth.token_received",
    ]
    assert capture.entries[1]["is_error"] is False


async def test_reset_forces_next_refresh(http_client: httpx.AsyncClient) -> None:
    handler, calls = create_counting_handler("t1", "t2")
    cache = TokenCache(handler)

    await cache.get_token(http_client)
    cache.reset()

    assert cache.token is None
    assert (await cache.get_token(http_client)).access_token == "t2"
    assert calls[0] == 2


async def test_reset_refresh_handler(http_client: httpx.AsyncClient) -> None:
    handler, _ = create_counting_handler("t1")
    cache = TokenCache()
    cache.set_refresh_handler(handler)
    assert cache.has_handler

    cache.reset_refresh_handler()

    assert await cache.get_token(http_client) is None


def test_cached_token_expiry() -> None:
    token = CachedToken(access_token="t", expires_at=100.0)

    assert not token.is_expired(99.9)
    assert token.is_expired(100.0)


def test_default_cache_is_shared() -> None:
    assert get_token_cache() is get_token_cache()


def test_contended_refresh_across_event_loops() -> None:
    calls = 0

    async def handler(client: httpx.AsyncClient) -> TokenResponse:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0)
        return TokenResponse(access_token=f"token-{calls}", expires_in=0)

    cache = TokenCache(handler)

    async def burst() -> list[CachedToken | None]:
        async with httpx.AsyncClient() as client:
            return await asyncio.gather(*(cache.get_token(client) for _ in range(5)))

    first = asyncio.run(burst())
    second = asyncio.run(burst())

    assert all(token is not None for token in first + second)
    assert calls == 10
