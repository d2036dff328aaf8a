"""Parsing of rate-limit response headers and 429 bodies.

The service reports bucket state on every response::

    X-RateLimit-Bucket:      opaque server bucket id
    X-RateLimit-Limit:       window capacity
    X-RateLimit-Remaining:   calls left in the window
    X-RateLimit-Reset:       absolute reset, epoch seconds (fractional)
    X-RateLimit-Reset-After: relative reset, seconds (fractional)
    X-RateLimit-Global:      "true" on a global rejection
    X-RateLimit-Scope:       user | global | shared (429 only)
    Retry-After:             delay before retrying (429 only)

A 429 body repeats ``retry_after`` and ``global``; headers take priority and
the body only fills gaps. ``Retry-After`` and the body's ``retry_after`` are
converted to seconds here, at the boundary, according to the configured unit.
"""

from __future__ import annotations

import email.utils
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

__all__ = [
    "HEADER_BUCKET",
    "HEADER_LIMIT",
    "HEADER_REMAINING",
    "HEADER_RESET",
    "HEADER_RESET_AFTER",
    "HEADER_GLOBAL",
    "HEADER_SCOPE",
    "HEADER_RETRY_AFTER",
    "RateLimitScope",
    "RateLimitInfo",
    "parse_retry_after",
    "parse_rate_limit_headers",
    "parse_rate_limit_body",
    "resolve_rejection",
]

HEADER_BUCKET = "X-RateLimit-Bucket"
HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RESET_AFTER = "X-RateLimit-Reset-After"
HEADER_GLOBAL = "X-RateLimit-Global"
HEADER_SCOPE = "X-RateLimit-Scope"
HEADER_RETRY_AFTER = "Retry-After"

_TRUE_VALUES = {"true", "1", "yes"}


class RateLimitScope(str, Enum):
    """Scope of a 429 rejection."""

    BUCKET = "bucket"
    GLOBAL = "global"


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate-limit fields read from one response's headers; absent fields are ``None``."""

    bucket: Optional[str] = None
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset: Optional[float] = None
    reset_after: Optional[float] = None
    is_global: bool = False
    scope: Optional[str] = None
    retry_after: Optional[float] = None

    @property
    def has_window(self) -> bool:
        """True when the response described the bucket's window."""
        return self.limit is not None or self.remaining is not None

    def reset_delay(self, wall_now: float) -> Optional[float]:
        """Seconds until the window resets, preferring the relative header."""
        if self.reset_after is not None:
            return max(0.0, self.reset_after)
        if self.reset is not None:
            return max(0.0, self.reset - wall_now)
        return None


def _unit_factor(unit: str) -> float:
    if unit == "seconds":
        return 1.0
    if unit == "milliseconds":
        return 0.001
    raise ValueError(f"Unsupported retry-after unit: {unit!r}")


def parse_retry_after(
    value: Optional[str], unit: str = "seconds", wall_now: Optional[float] = None
) -> Optional[float]:
    """Convert a Retry-After value (number or HTTP-date) into seconds.

    An HTTP-date is measured against ``wall_now`` (epoch seconds), defaulting
    to the current time.
    """
    if value is None:
        return None
    factor = _unit_factor(unit)
    value = str(value).strip()
    if not value:
        return None

    try:
        delay = float(value) * factor
    except ValueError:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        if wall_now is None:
            wall_now = datetime.now(timezone.utc).timestamp()
        delay = dt.timestamp() - wall_now

    return max(0.0, delay)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _as_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(float(value))
    except ValueError:
        logger.debug("Ignoring malformed integer header", extra={"value": value})
        return None


def _as_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        logger.debug("Ignoring malformed float header", extra={"value": value})
        return None


def parse_rate_limit_headers(
    headers: Mapping[str, str],
    *,
    retry_after_unit: str = "seconds",
    wall_now: Optional[float] = None,
) -> RateLimitInfo:
    """Read every rate-limit header from ``headers`` (case-insensitive mappings welcome)."""
    if not hasattr(headers, "getlist"):
        headers = {str(key).lower(): value for key, value in headers.items()}

    scope = _header(headers, HEADER_SCOPE)
    global_flag = (_header(headers, HEADER_GLOBAL) or "").lower() in _TRUE_VALUES
    return RateLimitInfo(
        bucket=_header(headers, HEADER_BUCKET),
        limit=_as_int(_header(headers, HEADER_LIMIT)),
        remaining=_as_int(_header(headers, HEADER_REMAINING)),
        reset=_as_float(_header(headers, HEADER_RESET)),
        reset_after=_as_float(_header(headers, HEADER_RESET_AFTER)),
        is_global=global_flag or (scope or "").lower() == "global",
        scope=scope.lower() if scope else None,
        retry_after=parse_retry_after(
            _header(headers, HEADER_RETRY_AFTER), retry_after_unit, wall_now
        ),
    )


def parse_rate_limit_body(body: bytes) -> dict[str, Any]:
    """Decode a 429 JSON body; anything unparseable yields an empty dict."""
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def resolve_rejection(
    info: RateLimitInfo,
    body: Mapping[str, Any],
    *,
    retry_after_unit: str = "seconds",
    wall_now: Optional[float] = None,
) -> Tuple[RateLimitScope, float]:
    """Decide scope and delay for a 429 from headers, falling back to the body.

    Global wins whenever either source flags it. The delay comes from
    ``Retry-After``, then the body's ``retry_after``, then the bucket reset.
    """
    is_global = info.is_global or bool(body.get("global", False))
    scope = RateLimitScope.GLOBAL if is_global else RateLimitScope.BUCKET

    delay = info.retry_after
    if delay is None and body.get("retry_after") is not None:
        try:
            delay = max(0.0, float(body["retry_after"]) * _unit_factor(retry_after_unit))
        except (TypeError, ValueError):
            delay = None
    if delay is None:
        if wall_now is None:
            wall_now = datetime.now(timezone.utc).timestamp()
        delay = info.reset_delay(wall_now)
    return scope, delay if delay is not None else 0.0
