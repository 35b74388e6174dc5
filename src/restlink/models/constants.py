"""Constants for restlink.

Library-wide defaults used by the client, the token cache and the
authentication helpers.
"""

# Deadline applied to a call when neither a timeout nor a cancellation token is given
DEFAULT_TIMEOUT_SECONDS = 10.0

# Event id attached to every downstream request log event
DOWNSTREAM_EVENT_ID = 2501

BEARER_SCHEME = "Bearer"
AUTHORIZATION_HEADER = "Authorization"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"

# Scope requested by the client-credentials handler when none is configured
DEFAULT_CLIENT_SCOPE = "write"

# Timeout for discovery and token endpoint calls made by the handler
AUTH_REQUEST_TIMEOUT_SECONDS = 10.0

# Environment variable names
ENV_FORWARDED_HEADERS = "RESTLINK_FORWARDED_HEADERS"
ENV_LOG_FORWARDED_HEADERS = "RESTLINK_LOG_FORWARDED_HEADERS"
ENV_DEFAULT_TIMEOUT = "RESTLINK_DEFAULT_TIMEOUT"
ENV_AUTH_ENDPOINT = "RESTLINK_AUTH_ENDPOINT"
ENV_AUTH_CLIENT_ID = "RESTLINK_AUTH_CLIENT_ID"
ENV_AUTH_CLIENT_SECRET = "RESTLINK_AUTH_CLIENT_SECRET"
ENV_AUTH_SCOPE = "RESTLINK_AUTH_SCOPE"
ENV_AUTH_REQUIRE_HTTPS_METADATA = "RESTLINK_AUTH_REQUIRE_HTTPS_METADATA"
