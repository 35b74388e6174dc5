"""restlink authentication layer.

Bearer tokens for outbound calls:
- TokenCache: process-wide cached token with single-flight refresh
- ClientCredentialsHandler: OAuth2 client_credentials refresh handler (Authlib)

Public exports:
    TokenCache: Cached token + registered refresh handler
    TokenResponse: Result type returned by refresh handlers
    CachedToken: Cached token with absolute expiry
    RefreshHandler: Handler callable type
    get_token_cache: Process-wide default cache
    ClientCredentialsSettings: Settings for the client_credentials handler
    ClientCredentialsHandler: client_credentials refresh handler
    create_client_credentials_handler: Handler factory
    configure_static_authentication: Register a handler on a cache
"""

from restlink.auth.oauth2 import (
    ClientCredentialsHandler,
    ClientCredentialsSettings,
    configure_static_authentication,
    create_client_credentials_handler,
)
from restlink.auth.token_cache import (
    CachedToken,
    RefreshHandler,
    TokenCache,
    TokenResponse,
    get_token_cache,
)

__all__ = [
    "CachedToken",
    "ClientCredentialsHandler",
    "ClientCredentialsSettings",
    "RefreshHandler",
    "TokenCache",
    "TokenResponse",
    "configure_static_authentication",
    "create_client_credentials_handler",
    "get_token_cache",
]
