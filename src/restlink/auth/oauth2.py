"""OAuth2 client-credentials refresh handler.

Builds a refresh handler for TokenCache that:
1. discovers the token endpoint from the provider's
   ``/.well-known/openid-configuration`` document (fetched through the shared
   transport client the cache passes in), and
2. requests a client_credentials token with Authlib's AsyncOAuth2Client.

Settings come from arguments or from RESTLINK_AUTH_* environment variables.

Example:
    >>> settings = ClientCredentialsSettings(
    ...     authentication_endpoint="https://auth.example.com",
    ...     client_id="orders-service",
    ...     client_secret="secret",
    ... )
    >>> configure_static_authentication(settings)
    >>> # every RestClient sharing the default cache now sends Bearer tokens
"""

from __future__ import annotations

import os
import time
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from authlib.integrations.base_client.errors import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.oidc.discovery import get_well_known_url
from pydantic import Field

from restlink.auth.token_cache import TokenCache, TokenResponse, get_token_cache
from restlink.errors import ConfigurationError, DiscoveryEndpointError
from restlink.models.base import RestLinkBaseModel
from restlink.models.constants import (
    AUTH_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_CLIENT_SCOPE,
    ENV_AUTH_CLIENT_ID,
    ENV_AUTH_CLIENT_SECRET,
    ENV_AUTH_ENDPOINT,
    ENV_AUTH_REQUIRE_HTTPS_METADATA,
    ENV_AUTH_SCOPE,
)
from restlink.models.options import parse_bool
from restlink.observability import get_logger

logger = get_logger(__name__)

DISCOVERY_CACHE_TTL_SECONDS = 3600.0


class ClientCredentialsSettings(RestLinkBaseModel):
    """Authentication settings for the client_credentials grant.

    Attributes:
        authentication_endpoint: Issuer URL hosting the discovery document.
        client_id: OAuth2 client id.
        client_secret: OAuth2 client secret.
        scope: Space-separated scopes to request.
        require_https_metadata: Reject discovery over plain HTTP (localhost
            is always allowed).
    """

    authentication_endpoint: str = Field(..., min_length=1)
    client_id: str = ""
    client_secret: str = ""
    scope: str = DEFAULT_CLIENT_SCOPE
    require_https_metadata: bool = False

    @classmethod
    def from_env(cls) -> ClientCredentialsSettings:
        """Read settings from RESTLINK_AUTH_* environment variables.

        Raises:
            ConfigurationError: RESTLINK_AUTH_ENDPOINT is missing or blank.
        """
        endpoint = os.environ.get(ENV_AUTH_ENDPOINT, "").strip()
        if not endpoint:
            raise ConfigurationError(
                ENV_AUTH_ENDPOINT,
                f"Authentication endpoint is not configured. Set {ENV_AUTH_ENDPOINT}.",
            )
        return cls(
            authentication_endpoint=endpoint,
            client_id=os.environ.get(ENV_AUTH_CLIENT_ID, ""),
            client_secret=os.environ.get(ENV_AUTH_CLIENT_SECRET, ""),
            scope=os.environ.get(ENV_AUTH_SCOPE, "").strip() or DEFAULT_CLIENT_SCOPE,
            require_https_metadata=parse_bool(
                os.environ.get(ENV_AUTH_REQUIRE_HTTPS_METADATA), default=False
            ),
        )


def _is_localhost(url: str) -> bool:
    hostname = (urlparse(url).hostname or "").lower()
    return hostname in ("localhost", "127.0.0.1", "::1", "[::1]")


class ClientCredentialsHandler:
    """Refresh handler obtaining tokens with the client_credentials grant.

    Instances are callables matching ``RefreshHandler`` and can be registered
    on any TokenCache.

    Args:
        settings: Authentication settings.
        transport: Optional httpx transport for the token request (testing).
    """

    def __init__(
        self,
        settings: ClientCredentialsSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._token_endpoint: Optional[str] = None
        self._token_endpoint_expires_at = 0.0

    async def __call__(self, http_client: httpx.AsyncClient) -> TokenResponse:
        token_endpoint = await self.discover_token_endpoint(http_client)

        kwargs: dict[str, Any] = {"timeout": httpx.Timeout(AUTH_REQUEST_TIMEOUT_SECONDS)}
        if self._transport is not None:
            kwargs["transport"] = self._transport

        try:
            async with AsyncOAuth2Client(
                client_id=self.settings.client_id,
                client_secret=self.settings.client_secret,
                scope=self.settings.scope,
                **kwargs,
            ) as client:
                raw_token: dict[str, Any] = await client.fetch_token(
                    url=token_endpoint,
                    grant_type="client_credentials",
                )
        except OAuthError as e:
            logger.warning(
                "restlink.oauth2.token_rejected",
                token_endpoint=token_endpoint,
                error=e.error,
            )
            return TokenResponse(error=e.error or "oauth_error", error_description=e.description)

        expires_in = _expires_in(raw_token)
        logger.info(
            "restlink.oauth2.token_acquired",
            token_endpoint=token_endpoint,
            expires_in=expires_in,
        )
        return TokenResponse(
            access_token=raw_token["access_token"],
            expires_in=expires_in,
            token_type=raw_token.get("token_type", "Bearer"),
        )

    async def discover_token_endpoint(self, http_client: httpx.AsyncClient) -> str:
        """Return the provider's token endpoint, cached for an hour.

        Raises:
            DiscoveryEndpointError: HTTPS required but not used, the document
                could not be fetched, or it has no token_endpoint.
        """
        if self._token_endpoint is not None and time.time() < self._token_endpoint_expires_at:
            return self._token_endpoint

        endpoint = self.settings.authentication_endpoint.rstrip("/")
        if (
            self.settings.require_https_metadata
            and urlparse(endpoint).scheme.lower() != "https"
            and not _is_localhost(endpoint)
        ):
            raise DiscoveryEndpointError(
                endpoint, f"HTTPS is required for the discovery endpoint: {endpoint}"
            )

        url = get_well_known_url(endpoint, external=True)
        try:
            response = await http_client.get(
                url,
                headers={"Accept": "application/json"},
                timeout=AUTH_REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DiscoveryEndpointError(
                endpoint, f"Could not load discovery document from {url}: {e}", cause=e
            ) from e

        token_endpoint = data.get("token_endpoint") if isinstance(data, dict) else None
        if not token_endpoint or not isinstance(token_endpoint, str):
            raise DiscoveryEndpointError(
                endpoint, "Discovery response missing required 'token_endpoint'"
            )

        logger.info("restlink.oauth2.discovered", issuer=data.get("issuer"))
        self._token_endpoint = token_endpoint
        self._token_endpoint_expires_at = time.time() + DISCOVERY_CACHE_TTL_SECONDS
        return token_endpoint


def _expires_in(raw_token: dict[str, Any]) -> float:
    if "expires_in" in raw_token:
        return float(raw_token["expires_in"])
    if "expires_at" in raw_token:
        return max(float(raw_token["expires_at"]) - time.time(), 0.0)
    return 0.0


def create_client_credentials_handler(
    settings: ClientCredentialsSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ClientCredentialsHandler:
    """Build a refresh handler for the client_credentials grant."""
    return ClientCredentialsHandler(settings, transport=transport)


def configure_static_authentication(
    settings: Optional[ClientCredentialsSettings] = None,
    cache: Optional[TokenCache] = None,
) -> ClientCredentialsHandler:
    """Register a client-credentials handler on a token cache.

    Args:
        settings: Authentication settings; read from the environment if omitted.
        cache: Target cache; the process-wide default if omitted.

    Returns:
        The registered handler.

    Raises:
        ConfigurationError: Settings omitted and RESTLINK_AUTH_ENDPOINT unset.
    """
    handler = create_client_credentials_handler(settings or ClientCredentialsSettings.from_env())
    (cache or get_token_cache()).set_refresh_handler(handler)
    return handler
