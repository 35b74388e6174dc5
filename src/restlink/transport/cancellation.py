"""Per-call deadlines and explicit cancellation.

The shared ``httpx.AsyncClient`` runs without its own timeout; every call is
bounded by a CancellationToken instead. A token carries an optional deadline
and can be cancelled explicitly with ``cancel()``. Tokens must be used and
cancelled from the event loop thread.

Example:
    >>> token = CancellationToken(timeout=2.5)
    >>> response = await client.get("items", list[Item], cancellation=token)
    >>>
    >>> token = CancellationToken()
    >>> asyncio.get_running_loop().call_later(1.0, token.cancel)
    >>> await client.get("slow", cancellation=token)  # RequestCancelledError
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable
from datetime import timedelta
from typing import NoReturn, TypeVar, Union

from restlink.errors import RequestCancelledError

T = TypeVar("T")

Timeout = Union[float, int, timedelta]


def timeout_seconds(timeout: Timeout) -> float:
    """Convert a timeout given as seconds or ``timedelta`` into seconds."""
    if isinstance(timeout, timedelta):
        return timeout.total_seconds()
    return float(timeout)


class CancellationToken:
    """Deadline and cancel switch for one logical call.

    Args:
        timeout: Seconds (or ``timedelta``) from now until the deadline.
            None means no deadline; only ``cancel()`` stops the call.
    """

    def __init__(self, timeout: Timeout | None = None) -> None:
        self._deadline: float | None = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout_seconds(timeout)
        self._cancelled = False
        self._waiters: set[asyncio.Future[None]] = set()

    @classmethod
    def from_timeout(cls, timeout: Timeout) -> CancellationToken:
        return cls(timeout)

    @property
    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_expired(self) -> bool:
        remaining = self.remaining
        return remaining is not None and remaining <= 0

    def cancel(self) -> None:
        """Abort every call currently guarded by this token."""
        self._cancelled = True
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)

    def cancel_after(self, timeout: Timeout) -> None:
        """Move the deadline to ``timeout`` from now."""
        self._deadline = time.monotonic() + timeout_seconds(timeout)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the deadline passes or the token is cancelled.

        Raises:
            TimeoutError: The deadline passed first.
            RequestCancelledError: ``cancel()`` was called first.
        """
        if self._cancelled or self.is_expired:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self._raise()

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        self._waiters.add(waiter)
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._waiters.discard(waiter)
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._raise()

    def _raise(self) -> NoReturn:
        if self._cancelled:
            raise RequestCancelledError()
        raise TimeoutError("The request did not complete before its deadline.")
