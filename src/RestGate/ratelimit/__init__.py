# === NAVMAP v1 ===
# {
#   "module": "RestGate.ratelimit.__init__",
#   "purpose": "Rate-limit bookkeeping: bucket keys, bucket table, headers, global lock.",
#   "sections": []
# }
# === /NAVMAP ===

"""Rate-limit bookkeeping for the dispatcher.

Everything in this package is free of I/O and threads; the scheduler owns
the mutable pieces and drives them under its lock.

Modules:
- keys: bucket key derivation from method + route
- headers: ``X-RateLimit-*`` / ``Retry-After`` parsing
- buckets: BucketTable with per-key windows and FIFO queues
- global_lock: process-wide freeze after a global 429
- config: rate strings and the pyrate-limiter global ceiling
- instrumentation: scheduler telemetry events

Example:
    >>> from RestGate.ratelimit import BucketTable, bucket_key
    >>> table = BucketTable()
    >>> key = bucket_key("POST", "/channels/1/messages")
    >>> table.has_capacity(key, now=0.0)
    True
"""

from RestGate.ratelimit.buckets import Bucket, BucketSnapshot, BucketTable, RateWindow
from RestGate.ratelimit.config import (
    GlobalCeiling,
    RateSpec,
    create_global_ceiling,
    parse_rate_string,
)
from RestGate.ratelimit.global_lock import GlobalLock
from RestGate.ratelimit.headers import (
    RateLimitInfo,
    RateLimitScope,
    parse_rate_limit_body,
    parse_rate_limit_headers,
    parse_retry_after,
    resolve_rejection,
)
from RestGate.ratelimit.keys import bucket_key, major_parameter, route_template

__all__ = [
    # Keys
    "bucket_key",
    "major_parameter",
    "route_template",
    # Headers
    "RateLimitInfo",
    "RateLimitScope",
    "parse_rate_limit_body",
    "parse_rate_limit_headers",
    "parse_retry_after",
    "resolve_rejection",
    # Table
    "Bucket",
    "BucketSnapshot",
    "BucketTable",
    "RateWindow",
    # Global
    "GlobalLock",
    "GlobalCeiling",
    "RateSpec",
    "create_global_ceiling",
    "parse_rate_string",
]
