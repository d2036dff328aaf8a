# === NAVMAP v1 ===
# {
#   "module": "RestGate.ratelimit.config",
#   "purpose": "Rate strings and the proactive pyrate-limiter ceiling across all buckets.",
#   "sections": [
#     {
#       "id": "ratespec",
#       "name": "RateSpec",
#       "anchor": "class-ratespec",
#       "kind": "class"
#     },
#     {
#       "id": "parse-rate-string",
#       "name": "parse_rate_string",
#       "anchor": "function-parse-rate-string",
#       "kind": "function"
#     },
#     {
#       "id": "globalceiling",
#       "name": "GlobalCeiling",
#       "anchor": "class-globalceiling",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Rate strings and the proactive request ceiling.

Server-side buckets are learnt from response headers, but the service also
documents a flat per-token ceiling across every route (50 requests per
second). :class:`GlobalCeiling` enforces that ceiling client-side with
pyrate-limiter so that the dispatcher never provokes a global 429 just by
being fast.

Example:
    >>> spec = parse_rate_string("50/second")
    >>> print(spec.limit, spec.interval_ms)
    50 1000
    >>> ceiling = GlobalCeiling(spec)
    >>> ceiling.try_acquire()
    True
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from pyrate_limiter import Limiter, Rate

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================

DURATION_MS = {
    "second": 1_000,
    "minute": 60 * 1_000,
    "hour": 60 * 60 * 1_000,
    "day": 24 * 60 * 60 * 1_000,
}

DURATION_ALIASES = {
    "sec": "second",
    "min": "minute",
    "hr": "hour",
}

_CEILING_KEY = "restgate:global"


# ============================================================================
# Data Models
# ============================================================================


@dataclass(frozen=True)
class RateSpec:
    """Normalized rate specification (``limit`` events per ``interval_ms``)."""

    limit: int
    interval_ms: int

    @property
    def rps(self) -> float:
        """Requests per second."""
        return (self.limit * 1000) / self.interval_ms

    @property
    def min_spacing(self) -> float:
        """Average seconds between events when running at the limit."""
        return self.interval_ms / 1000 / self.limit

    def __str__(self) -> str:
        if self.interval_ms == 1_000:
            return f"{self.limit}/second"
        elif self.interval_ms == 60_000:
            return f"{self.limit}/minute"
        elif self.interval_ms == 3_600_000:
            return f"{self.limit}/hour"
        else:
            return f"{self.limit}/{self.interval_ms}ms"


# ============================================================================
# Parsing
# ============================================================================


def parse_rate_string(spec: str) -> RateSpec:
    """Parse human-readable rate string into RateSpec.

    Format: "{limit}/{duration}" where duration is second/minute/hour/day

    Examples:
        "50/second"   → RateSpec(limit=50, interval_ms=1000)
        "300/minute"  → RateSpec(limit=300, interval_ms=60000)
        "10/hr"       → RateSpec(limit=10, interval_ms=3600000)

    Raises:
        ValueError: If spec format is invalid or unparseable
    """
    spec = spec.strip()

    match = re.fullmatch(r"(\d+)\s*/\s*(\w+)", spec)
    if not match:
        raise ValueError(
            f"Invalid rate spec: {spec!r}. Expected format: '50/second', '300/minute', etc."
        )

    limit_str, duration_str = match.groups()
    limit = int(limit_str)

    duration_str = duration_str.lower()
    duration_str = DURATION_ALIASES.get(duration_str, duration_str)
    if duration_str not in DURATION_MS:
        raise ValueError(
            f"Unknown duration: {duration_str!r}. Supported: {list(DURATION_MS.keys())}"
        )

    if limit <= 0:
        raise ValueError(f"Limit must be positive, got: {limit}")

    return RateSpec(limit=limit, interval_ms=DURATION_MS[duration_str])


# ============================================================================
# Global Ceiling
# ============================================================================


class GlobalCeiling:
    """Non-blocking pyrate-limiter wrapper consulted before every dispatch.

    The scheduler calls :meth:`try_acquire` while holding its lock, so the
    limiter is created in fail-fast mode: a full bucket returns ``False``
    immediately and the scheduler retries after :attr:`retry_interval`.
    """

    def __init__(self, spec: RateSpec) -> None:
        self.spec = spec
        self._limiter = Limiter(
            [Rate(spec.limit, spec.interval_ms)],
            raise_when_fail=False,
            max_delay=None,
        )
        logger.debug("Global ceiling created", extra={"rate": str(spec)})

    @property
    def retry_interval(self) -> float:
        """Seconds to wait before asking again after a refusal."""
        return self.spec.min_spacing

    def try_acquire(self) -> bool:
        """Take one slot if available; never blocks."""
        return bool(self._limiter.try_acquire(_CEILING_KEY))


def create_global_ceiling(rate: Optional[str]) -> Optional[GlobalCeiling]:
    """Build a :class:`GlobalCeiling` from a rate string, or ``None`` when disabled."""
    if not rate:
        return None
    return GlobalCeiling(parse_rate_string(rate))


__all__ = [
    "RateSpec",
    "parse_rate_string",
    "GlobalCeiling",
    "create_global_ceiling",
]
