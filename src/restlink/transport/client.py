"""Async REST client for service-to-service calls.

This module provides RestClient, a thin layer over a shared
``httpx.AsyncClient`` that every outbound call goes through.

The RestClient provides:
- GET/POST/PUT/PATCH/DELETE with optional typed results
- JSON bodies through a pluggable serializer (process-wide or per call)
- Forwarding of configured inbound headers to the downstream service
- Bearer tokens from a shared TokenCache, with one refresh-and-retry on 401
- Per-call deadlines through cancellation tokens (10 seconds by default)
- Structured start/finish/failure log events with elapsed time

Example:
    >>> from restlink.transport.client import ServiceClient
    >>>
    >>> async with ServiceClient("http://orders.internal/api") as client:
    ...     response = await client.get("orders", list[Order])
    ...     orders = response.result_object
    >>>
    >>> # POST with a body, no typed result, 3 second deadline
    >>> async with ServiceClient("http://orders.internal/api") as client:
    ...     await client.post("orders", new_order, timeout=3)
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any, Optional, TypeVar

import httpx
import structlog

from restlink.auth.token_cache import TokenCache, get_token_cache
from restlink.errors import ResponseError
from restlink.models.constants import (
    AUTHORIZATION_HEADER,
    BEARER_SCHEME,
    DOWNSTREAM_EVENT_ID,
    JSON_CONTENT_TYPE,
)
from restlink.models.options import RestClientOptions
from restlink.observability import get_logger, truncate_for_logging
from restlink.serializers import Serializer, deserialize_body, get_default_serializer
from restlink.transport.cancellation import CancellationToken, Timeout, timeout_seconds
from restlink.transport.headers import HeaderForwardingPolicy, HeaderSource
from restlink.transport.response import RestResponse
from restlink.transport.uri import normalize_base_uri, resolve_uri

# Module logger
logger = get_logger(__name__)

T = TypeVar("T")

HeadersInput = Optional[Mapping[str, str] | httpx.Headers]


class _NoBody:
    def __repr__(self) -> str:
        return "NO_BODY"


NO_BODY: Any = _NoBody()
"""Marker for "no request body" (``None`` is a valid body and serializes to ``null``)."""


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


class RestClient:
    """Async REST client with header forwarding and token refresh.

    One RestClient wraps one ``httpx.AsyncClient`` and reuses its connection
    pool for every call. The transport client's own timeout is disabled:
    deadlines come from per-call cancellation tokens instead. This applies to
    a client passed in as well: its ``timeout`` is set to ``Timeout(None)`` on
    that instance, so share it only with code that accepts that.

    An ``Authorization`` header among the transport client's default headers
    counts as an attached credential; the token cache is not consulted for
    the first send.

    Attributes:
        http_client: The shared transport client.
        options: Header forwarding options and default timeout.
        token_cache: Cache that supplies bearer tokens.

    Args:
        http_client: Transport client to reuse. Created (and owned) when omitted.
            A supplied client is modified in place (timeout disabled) and
            is not closed by aclose().
        options: Client options; defaults to no forwarded headers and a
            10 second default timeout.
        header_source: Inbound header source for forwarding and for an
            inbound ``Authorization: Bearer`` credential.
        token_cache: Token cache; the process-wide default when omitted.
        transport: Transport for the owned client (e.g. ``httpx.MockTransport``).
            Ignored when ``http_client`` is given.
        log: Optional structlog logger; defaults to the module logger.

    Example:
        >>> client = RestClient(options=RestClientOptions(
        ...     headers=HeaderOptions(forwarded_headers=["X-Trace-Id"]),
        ... ), header_source=ContextHeaderSource())
        >>> response = await client.get("http://svc/items", list[Item])
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        options: RestClientOptions | None = None,
        *,
        header_source: HeaderSource | None = None,
        token_cache: TokenCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(transport=transport)
        # Deadlines are enforced per call by CancellationToken.
        http_client.timeout = httpx.Timeout(None)

        self.http_client = http_client
        self.options = options or RestClientOptions()
        self.token_cache = token_cache or get_token_cache()
        self._forwarding = HeaderForwardingPolicy(self.options.headers, header_source)
        self._log = log if log is not None else logger
        self._bearer_token: str | None = None

    async def __aenter__(self) -> RestClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport client if this RestClient created it."""
        if self._owns_client:
            await self.http_client.aclose()

    @property
    def default_timeout(self) -> float:
        return self.options.default_timeout

    def set_bearer_token(self, token: str | None) -> None:
        """Use ``token`` as this client's bearer credential (None clears it).

        While set, calls do not ask the token cache for a token; a 401 still
        triggers one forced refresh.
        """
        self._bearer_token = token or None

    def create_timeout_token(self, timeout: Timeout | None = None) -> CancellationToken:
        """Fresh cancellation token; a missing or zero timeout means the default."""
        if timeout is None or timeout_seconds(timeout) == 0:
            return CancellationToken(self.default_timeout)
        return CancellationToken(timeout)

    def resolve_uri(self, uri: str | httpx.URL) -> httpx.URL:
        """Absolute URI for ``uri``, relative ones joined onto the client's base address."""
        return resolve_uri(uri, self.http_client.base_url)

    async def get(
        self,
        uri: str | httpx.URL,
        result_type: type[T] | Any = None,
        *,
        timeout: Timeout | None = None,
        cancellation: CancellationToken | None = None,
        headers: HeadersInput = None,
        serializer: Serializer | None = None,
    ) -> RestResponse[T]:
        """Execute a GET request.

        Args:
            uri: Absolute URI, or relative to the client's base address.
            result_type: Type the response body is deserialized into. None
                skips deserialization.
            timeout: Deadline for this call (seconds or ``timedelta``).
            cancellation: Explicit cancellation token (instead of ``timeout``).
            headers: Extra request headers; they win over forwarded headers.
            serializer: Serializer for this call only.

        Raises:
            ResponseError: The service answered with a non-success status.
            SecurityTokenError: The refresh handler reported a token error.
        """
        return await self._execute(
            "GET",
            uri,
            result_type,
            headers=headers,
            serializer=serializer,
            cancellation=self._cancellation_for(timeout, cancellation),
        )

    async def post(
        self,
        uri: str | httpx.URL,
        body: Any,
        result_type: type[T] | Any = None,
        *,
        timeout: Timeout | None = None,
        cancellation: CancellationToken | None = None,
        headers: HeadersInput = None,
        serializer: Serializer | None = None,
    ) -> RestResponse[T]:
        """Execute a POST request with ``body`` serialized as JSON."""
        return await self._execute(
            "POST",
            uri,
            result_type,
            body=body,
            headers=headers,
            serializer=serializer,
            cancellation=self._cancellation_for(timeout, cancellation),
        )

    async def put(
        self,
        uri: str | httpx.URL,
        body: Any,
        result_type: type[T] | Any = None,
        *,
        timeout: Timeout | None = None,
        cancellation: CancellationToken | None = None,
        headers: HeadersInput = None,
        serializer: Serializer | None = None,
    ) -> RestResponse[T]:
        """Execute a PUT request with ``body`` serialized as JSON."""
        return await self._execute(
            "PUT",
            uri,
            result_type,
            body=body,
            headers=headers,
            serializer=serializer,
            cancellation=self._cancellation_for(timeout, cancellation),
        )

    async def patch(
        self,
        uri: str | httpx.URL,
        body: Any,
        result_type: type[T] | Any = None,
        *,
        timeout: Timeout | None = None,
        cancellation: CancellationToken | None = None,
        headers: HeadersInput = None,
        serializer: Serializer | None = None,
    ) -> RestResponse[T]:
        """Execute a PATCH request with ``body`` serialized as JSON."""
        return await self._execute(
            "PATCH",
            uri,
            result_type,
            body=body,
            headers=headers,
            serializer=serializer,
            cancellation=self._cancellation_for(timeout, cancellation),
        )

    async def delete(
        self,
        uri: str | httpx.URL,
        result_type: type[T] | Any = None,
        *,
        body: Any = NO_BODY,
        timeout: Timeout | None = None,
        cancellation: CancellationToken | None = None,
        headers: HeadersInput = None,
        serializer: Serializer | None = None,
    ) -> RestResponse[T]:
        """Execute a DELETE request, optionally with a JSON ``body``."""
        return await self._execute(
            "DELETE",
            uri,
            result_type,
            body=body,
            headers=headers,
            serializer=serializer,
            cancellation=self._cancellation_for(timeout, cancellation),
        )

    def _cancellation_for(
        self, timeout: Timeout | None, cancellation: CancellationToken | None
    ) -> CancellationToken:
        if cancellation is not None:
            if timeout is not None:
                raise ValueError("Pass either timeout or cancellation, not both.")
            return cancellation
        return self.create_timeout_token(timeout)

    async def _execute(
        self,
        method: str,
        uri: str | httpx.URL,
        result_type: Any,
        *,
        cancellation: CancellationToken,
        body: Any = NO_BODY,
        headers: HeadersInput = None,
        serializer: Serializer | None = None,
    ) -> RestResponse[Any]:
        """Run one logical call: send, refresh and resend once on 401, classify."""
        start_time = time.perf_counter()
        active_serializer = serializer or get_default_serializer()

        full_uri = self.resolve_uri(uri)
        forwarded = self._forwarding.collect()
        log = self._log.bind(
            event_id=DOWNSTREAM_EVENT_ID,
            method=method,
            uri=str(full_uri),
            forwarded_headers=self._forwarding.render(forwarded),
        )
        log.info("restlink.client.request_started")

        request_data = None
        response_data = ""
        try:
            if body is not NO_BODY:
                request_data = active_serializer.serialize(body)
            credential = await self._authorize(headers)
            response = await self._send(
                method, full_uri, headers, forwarded, credential, request_data, cancellation
            )

            if response.status_code == httpx.codes.UNAUTHORIZED:
                credential = await self._refresh_credential(credential)
                # A sent httpx.Request is consumed; _send builds a new one.
                response = await self._send(
                    method, full_uri, headers, forwarded, credential, request_data, cancellation
                )

            response_data = response.text
        except Exception as e:
            log.error(
                "restlink.client.request_error",
                elapsed_ms=_elapsed_ms(start_time),
                request_body=truncate_for_logging(request_data),
                response_body=truncate_for_logging(response_data),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise

        elapsed_ms = _elapsed_ms(start_time)
        if not response.is_success:
            log.error(
                "restlink.client.request_failed",
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
                request_body=truncate_for_logging(request_data),
                response_body=truncate_for_logging(response_data),
            )
            raise ResponseError(
                f"Downstream request failed with status code {response.status_code} "
                f"at {elapsed_ms} ms. Request body: {request_data}. "
                f"Response body: {response_data}.",
                status_code=response.status_code,
                response_data=response_data,
                details={"method": method, "uri": str(full_uri), "elapsed_ms": elapsed_ms},
            )

        log.info(
            "restlink.client.request_finished",
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )

        if result_type is None or not response_data:
            return RestResponse(original_response=response)
        return RestResponse(
            original_response=response,
            result_object=deserialize_body(response_data, result_type, active_serializer),
            has_result=True,
        )

    async def _authorize(self, headers: HeadersInput) -> str | None:
        """Bearer credential for the first send, or None to send without one."""
        if headers and AUTHORIZATION_HEADER in httpx.Headers(headers):
            return None
        if AUTHORIZATION_HEADER in self.http_client.headers:
            return None
        credential = self._bearer_token or self._forwarding.inbound_bearer_token()
        if credential:
            return credential
        token = await self.token_cache.get_token(self.http_client)
        return token.access_token if token is not None else None

    async def _refresh_credential(self, current: str | None) -> str | None:
        token = await self.token_cache.get_token(self.http_client, force_refresh=True)
        return token.access_token if token is not None else current

    async def _send(
        self,
        method: str,
        url: httpx.URL,
        headers: HeadersInput,
        forwarded: Mapping[str, str],
        credential: str | None,
        content: str | None,
        cancellation: CancellationToken,
    ) -> httpx.Response:
        request_headers = httpx.Headers(headers or {})
        if credential is not None:
            request_headers[AUTHORIZATION_HEADER] = f"{BEARER_SCHEME} {credential}"
        self._forwarding.apply(request_headers, forwarded)
        if content is not None and "Content-Type" not in request_headers:
            request_headers["Content-Type"] = JSON_CONTENT_TYPE

        request = self.http_client.build_request(
            method,
            url,
            headers=request_headers,
            content=content.encode("utf-8") if content is not None else None,
        )
        return await cancellation.run(self.http_client.send(request))


class ServiceClient(RestClient):
    """RestClient bound to a single downstream service.

    The base URI is validated and normalized to end with ``/`` before
    anything else happens, so relative request URIs always extend it.

    Args:
        base_uri: Base address of the service (e.g. ``http://svc/api``).
        http_client: Transport client to reuse. Its ``base_url`` is replaced
            in place with the normalized base URI, in addition to the
            timeout change RestClient makes.
        options: Client options.
        **kwargs: Passed to RestClient (header_source, token_cache, transport, log).

    Raises:
        ConfigurationError: ``base_uri`` is empty or whitespace.
    """

    def __init__(
        self,
        base_uri: str,
        http_client: httpx.AsyncClient | None = None,
        options: RestClientOptions | None = None,
        **kwargs: Any,
    ) -> None:
        self.base_uri = normalize_base_uri(base_uri)
        super().__init__(http_client, options, **kwargs)
        self.http_client.base_url = httpx.URL(self.base_uri)
