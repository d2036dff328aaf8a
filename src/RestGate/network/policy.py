# === NAVMAP v1 ===
# {
#   "module": "RestGate.network.policy",
#   "purpose": "HTTP policy constants and defaults.",
#   "sections": []
# }
# === /NAVMAP ===

"""HTTP policy constants and defaults.

Defines timeout budgets, connection pooling parameters, and user-agent
construction for the pooled HTTPX client. Values here are defaults;
``RestGate.settings.HttpSettings`` exposes each of them as an overridable
field.
"""

from RestGate._version import __version__ as VERSION

# ============================================================================
# Endpoint
# ============================================================================

#: API root (scheme, host, version path); routes are appended verbatim
DEFAULT_BASE_URL = "https://discord.com/api/v10"

#: Project URL for the user-agent (where to report issues, get docs)
PROJECT_URL = "https://github.com/restgate/restgate"

#: User-Agent value; the service requires ``Name (url, version)``
USER_AGENT = f"DiscordBot ({PROJECT_URL}, {VERSION}) RestGate"


# ============================================================================
# Timeout Budgets (seconds)
# ============================================================================

#: Connection establishment timeout (initial TCP 3-way handshake)
HTTP_CONNECT_TIMEOUT = 5.0

#: Read timeout (time between data packets on established connection)
HTTP_READ_TIMEOUT = 30.0

#: Write timeout (time to send request body, file uploads included)
HTTP_WRITE_TIMEOUT = 30.0

#: Pool timeout (acquiring a connection from the pool)
HTTP_POOL_TIMEOUT = 5.0


# ============================================================================
# Connection Pooling
# ============================================================================

#: Maximum concurrent connections; in-flight requests are bounded by the
#: scheduler's worker pool long before this is reached
MAX_CONNECTIONS = 64

#: Maximum idle connections kept for reuse
MAX_KEEPALIVE_CONNECTIONS = 16

#: How long to keep idle connections alive (seconds)
KEEPALIVE_EXPIRY = 30.0

#: HTTP/2 multiplexing; requires the ``h2`` extra of httpx
HTTP2_ENABLED = False

#: The API never redirects authenticated calls; treat redirects as responses
FOLLOW_REDIRECTS = False

#: Transport-level retries of failed connection attempts only
CONNECT_RETRIES = 1


__all__ = [
    "VERSION",
    "DEFAULT_BASE_URL",
    "PROJECT_URL",
    "USER_AGENT",
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    "MAX_CONNECTIONS",
    "MAX_KEEPALIVE_CONNECTIONS",
    "KEEPALIVE_EXPIRY",
    "HTTP2_ENABLED",
    "FOLLOW_REDIRECTS",
    "CONNECT_RETRIES",
]
