"""Process-wide bearer token cache with single-flight refresh.

Every RestClient that is not handed its own cache shares the default
TokenCache returned by ``get_token_cache()``. The cache holds one token and
its expiry, and refreshes it through a registered async refresh handler:

    async def handler(http_client: httpx.AsyncClient) -> TokenResponse: ...

At most one handler call is in flight per cache and event loop. Concurrent
callers that find the token missing or expired queue on an ``asyncio.Lock``
kept for their running loop, and all but the first find a fresh token when
they get the lock. The cache can be used from several loops in turn (for
example successive ``asyncio.run`` calls).

Example:
    >>> cache = get_token_cache()
    >>> cache.set_refresh_handler(create_client_credentials_handler(settings))
    >>> token = await cache.get_token(http_client)
    >>> headers = {"Authorization": f"Bearer {token.access_token}"}
"""

from __future__ import annotations

import asyncio
import threading
import time
import weakref
from collections.abc import Awaitable, Callable
from typing import Optional

import httpx
import structlog
from pydantic import Field

from restlink.errors import SecurityTokenError
from restlink.models.base import RestLinkBaseModel
from restlink.observability import get_logger

logger = get_logger(__name__)


class TokenResponse(RestLinkBaseModel):
    """Result of a refresh handler call.

    Either ``access_token`` + ``expires_in`` are set, or ``error`` is.

    Attributes:
        access_token: The opaque access token string.
        expires_in: Token lifetime in seconds.
        token_type: Token type, typically "Bearer".
        error: Error code reported by the token endpoint.
        error_description: Optional human-readable error description.
    """

    access_token: Optional[str] = None
    expires_in: float = Field(default=0, ge=0)
    token_type: str = "Bearer"
    error: Optional[str] = None
    error_description: Optional[str] = None

    @property
    def is_error(self) -> bool:
        """True when the handler reported an error or returned no token."""
        return self.error is not None or not self.access_token


class CachedToken(RestLinkBaseModel):
    """Bearer token with its absolute expiry (Unix timestamp)."""

    access_token: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


RefreshHandler = Callable[[httpx.AsyncClient], Awaitable[TokenResponse]]


class TokenCache:
    """Cached bearer token refreshed through a single registered handler.

    Args:
        handler: Optional refresh handler to register immediately.
        clock: Wall clock returning Unix time; injectable for tests.
        log: Optional structlog logger; defaults to the module logger.
    """

    def __init__(
        self,
        handler: RefreshHandler | None = None,
        *,
        clock: Callable[[], float] = time.time,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._handler = handler
        self._clock = clock
        self._log = log if log is not None else logger
        self._token: CachedToken | None = None
        # asyncio.Lock binds to the loop that first waits on it, so one per loop
        self._refresh_locks = weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]()
        self._state_lock = threading.Lock()

    @property
    def token(self) -> CachedToken | None:
        """Currently cached token, fresh or not."""
        return self._token

    @property
    def has_handler(self) -> bool:
        return self._handler is not None

    def set_refresh_handler(self, handler: RefreshHandler) -> None:
        """Register the refresh handler, replacing any previous one."""
        self._handler = handler

    def reset_refresh_handler(self) -> None:
        """Unregister the refresh handler; token acquisition becomes a no-op."""
        self._handler = None

    def reset(self) -> None:
        """Drop the cached token so the next call refreshes."""
        with self._state_lock:
            self._token = None

    def _refresh_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        with self._state_lock:
            lock = self._refresh_locks.get(loop)
            if lock is None:
                lock = self._refresh_locks[loop] = asyncio.Lock()
            return lock

    def _fresh(self, token: CachedToken | None) -> CachedToken | None:
        if token is not None and not token.is_expired(self._clock()):
            return token
        return None

    async def get_token(
        self, http_client: httpx.AsyncClient, force_refresh: bool = False
    ) -> CachedToken | None:
        """Return a usable token, refreshing it through the handler if needed.

        Args:
            http_client: Shared transport client passed to the handler.
            force_refresh: Refresh even if the cached token is still valid
                (used after the downstream service answered 401).

        Returns:
            The cached or freshly obtained token, or None when no handler is
            registered or the handler failed unexpectedly.

        Raises:
            SecurityTokenError: The handler returned an error result.
        """
        handler = self._handler
        if handler is None:
            return None

        if not force_refresh and (cached := self._fresh(self._token)) is not None:
            return cached

        async with self._refresh_lock():
            if not force_refresh and (cached := self._fresh(self._token)) is not None:
                return cached

            start_time = time.perf_counter()
            self._log.info("restlink.auth.token_requested", force_refresh=force_refresh)
            try:
                result = await handler(http_client)
            except Exception as e:
                self._log.critical(
                    "restlink.auth.token_request_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    elapsed_ms=_elapsed_ms(start_time),
                    exc_info=True,
                )
                return None

            self._log.info(
                "restlink.auth.token_received",
                elapsed_ms=_elapsed_ms(start_time),
                is_error=result.is_error,
            )
            if result.is_error:
                raise SecurityTokenError(
                    "Could not retrieve token.",
                    error=result.error,
                    details={"error_description": result.error_description}
                    if result.error_description
                    else None,
                )

            token = CachedToken(
                access_token=result.access_token or "",
                expires_at=self._clock() + result.expires_in,
            )
            self._token = token
            return token


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


_default_cache = TokenCache()


def get_token_cache() -> TokenCache:
    """Return the process-wide token cache shared by RestClient instances."""
    return _default_cache
