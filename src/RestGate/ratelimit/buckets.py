# === NAVMAP v1 ===
# {
#   "module": "RestGate.ratelimit.buckets",
#   "purpose": "Per-bucket capacity windows, FIFO queues and server bucket binding.",
#   "sections": [
#     {
#       "id": "ratewindow",
#       "name": "RateWindow",
#       "anchor": "class-ratewindow",
#       "kind": "class"
#     },
#     {
#       "id": "bucket",
#       "name": "Bucket",
#       "anchor": "class-bucket",
#       "kind": "class"
#     },
#     {
#       "id": "bucketsnapshot",
#       "name": "BucketSnapshot",
#       "anchor": "class-bucketsnapshot",
#       "kind": "class"
#     },
#     {
#       "id": "buckettable",
#       "name": "BucketTable",
#       "anchor": "class-buckettable",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Bucket table: what the client believes about each rate-limit bucket.

Each local bucket key owns a :class:`Bucket` holding the FIFO queue of
requests waiting for that key and a :class:`RateWindow` describing the
server's capacity window (``limit``, ``remaining``, ``reset_at``). Windows
start optimistic (one call allowed) and are corrected by response headers.

When a response names its server bucket (``X-RateLimit-Bucket``), the key is
bound to a window shared by every key reporting the same server bucket for
the same major parameter, so routes the server groups together draw from one
capacity pool.

All times are monotonic seconds supplied by the caller. The table performs
no locking; the scheduler owns it and mutates it under its own lock.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterator, List, Optional

from RestGate.ratelimit.headers import RateLimitInfo
from RestGate.ratelimit.keys import major_parameter

logger = logging.getLogger(__name__)

__all__ = ["RateWindow", "Bucket", "BucketSnapshot", "BucketTable"]

# refresh step for a window the server reported without a length
FALLBACK_WINDOW = 1.0


# ============================================================================
# Data Models
# ============================================================================


@dataclass
class RateWindow:
    """Capacity window, possibly shared by several bucket keys."""

    limit: int = 1
    remaining: int = 1
    reset_at: float = 0.0
    window: Optional[float] = None
    server_bucket: Optional[str] = None
    reported: bool = False


@dataclass
class Bucket:
    """One bucket key: its queue, in-flight flag and capacity window."""

    key: str
    window: RateWindow = field(default_factory=RateWindow)
    pending: Deque[Any] = field(default_factory=deque)
    busy: bool = False
    major: Optional[str] = None

    @property
    def limit(self) -> int:
        return self.window.limit

    @property
    def remaining(self) -> int:
        return self.window.remaining

    @property
    def reset_at(self) -> float:
        return self.window.reset_at


@dataclass(frozen=True)
class BucketSnapshot:
    """Read-only copy of a bucket's state for diagnostics and tests."""

    key: str
    limit: int
    remaining: int
    reset_at: float
    window: Optional[float]
    server_bucket: Optional[str]
    pending: int
    busy: bool


# ============================================================================
# Bucket Table
# ============================================================================


class BucketTable:
    """Mapping from bucket key to :class:`Bucket`; buckets are never removed."""

    def __init__(self) -> None:
        self._buckets: Dict[str, Bucket] = {}
        self._shared: Dict[str, RateWindow] = {}

    # -- lookup -------------------------------------------------------------

    def get_or_create(self, key: str) -> Bucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            route = key.split(" ", 1)[1] if " " in key else key
            bucket = Bucket(key=key, major=major_parameter(route))
            self._buckets[key] = bucket
            logger.debug("Bucket created", extra={"bucket_key": key})
        return bucket

    def get(self, key: str) -> Optional[Bucket]:
        return self._buckets.get(key)

    def keys(self) -> List[str]:
        return list(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)

    def __iter__(self) -> Iterator[Bucket]:
        return iter(list(self._buckets.values()))

    # -- capacity -----------------------------------------------------------

    def has_capacity(self, key: str, now: float) -> bool:
        """True if one more call may be sent now.

        Once ``now`` passes ``reset_at`` the window is refilled speculatively;
        the next response's headers confirm or correct the guess. The new
        ``reset_at`` lies one window length ahead, or :data:`FALLBACK_WINDOW`
        ahead when the server never told us the length. A window the server
        has never described stays optimistic.
        """
        window = self.get_or_create(key).window
        if window.remaining > 0:
            return True
        if now >= window.reset_at:
            window.remaining = window.limit
            if window.window:
                window.reset_at = now + window.window
            elif window.reported:
                window.reset_at = now + FALLBACK_WINDOW
            return window.remaining > 0
        return False

    def consume(self, key: str) -> None:
        """Take one call from the window; callers must check capacity first."""
        window = self.get_or_create(key).window
        if window.remaining <= 0:
            raise ValueError(f"Bucket {key!r} has no remaining capacity")
        window.remaining -= 1

    def update_from_headers(
        self,
        key: str,
        limit: Optional[int],
        remaining: Optional[int],
        reset_at: Optional[float],
        *,
        window: Optional[float] = None,
    ) -> None:
        """Overwrite local beliefs with server-reported values; ``None`` keeps the old value."""
        state = self.get_or_create(key).window
        if limit is not None:
            state.limit = max(1, int(limit))
        if remaining is not None:
            state.remaining = max(0, int(remaining))
        if reset_at is not None:
            state.reset_at = reset_at
        if window is not None and window > 0:
            state.window = max(state.window or 0.0, window)
        if limit is not None or remaining is not None or reset_at is not None:
            state.reported = True

    def penalize(self, key: str, until: float) -> None:
        """Bucket-scoped 429: no capacity until at least ``until``."""
        state = self.get_or_create(key).window
        state.remaining = 0
        state.reset_at = max(state.reset_at, until)
        state.reported = True

    def refund(self, key: str) -> None:
        """Return one consumed call to the window, never exceeding ``limit``."""
        state = self.get_or_create(key).window
        state.remaining = min(state.limit, state.remaining + 1)

    # -- server bucket binding ----------------------------------------------

    def bind(self, key: str, server_bucket: str) -> RateWindow:
        """Share ``key``'s window with every key reporting ``server_bucket``."""
        bucket = self.get_or_create(key)
        if bucket.window.server_bucket == server_bucket:
            return bucket.window

        shared_key = f"{server_bucket}:{bucket.major or ''}"
        shared = self._shared.get(shared_key)
        if shared is None:
            bucket.window.server_bucket = server_bucket
            self._shared[shared_key] = bucket.window
        else:
            bucket.window = shared
            logger.debug(
                "Bucket bound to shared window",
                extra={"bucket_key": key, "server_bucket": server_bucket},
            )
        return bucket.window

    def apply_rate_limit_info(
        self,
        key: str,
        info: RateLimitInfo,
        now: float,
        wall_now: Optional[float] = None,
    ) -> None:
        """Fold one response's parsed headers into the table."""
        if info.bucket:
            self.bind(key, info.bucket)

        delay = info.reset_delay(wall_now) if wall_now is not None else info.reset_after
        if delay is None and not info.has_window:
            return
        self.update_from_headers(
            key,
            info.limit,
            info.remaining,
            now + delay if delay is not None else None,
            window=delay,
        )

    # -- diagnostics --------------------------------------------------------

    def snapshot(self, key: str) -> BucketSnapshot:
        bucket = self.get_or_create(key)
        window = bucket.window
        return BucketSnapshot(
            key=key,
            limit=window.limit,
            remaining=window.remaining,
            reset_at=window.reset_at,
            window=window.window,
            server_bucket=window.server_bucket,
            pending=len(bucket.pending),
            busy=bucket.busy,
        )
