"""Backoff policy for server errors and transport failures.

The scheduler never sleeps inside a retry loop: a failed attempt goes back
to the front of its bucket queue with a ``not_before`` timestamp, so other
buckets keep flowing while one backs off. Tenacity still decides *how long*
to wait and *when to give up*; :class:`BackoffPolicy` evaluates its wait and
stop strategies against a synthetic :class:`tenacity.RetryCallState` built
from the attempt count the scheduler tracks.

Design:
- **Full-jitter exponential backoff** by default; plain exponential when
  jitter is disabled (deterministic delays for tests).
- **Attempt budget**: ``max_retries`` retries after the first attempt.
- Rate limits (429) never consume the budget; their delay comes from
  ``Retry-After`` (see :mod:`RestGate.ratelimit.headers`).

Example:
    >>> policy = BackoffPolicy(max_retries=3, base=0.5, cap=30.0, jitter=False)
    >>> policy.delay(1), policy.delay(2), policy.delay(3)
    (0.5, 1.0, 2.0)
    >>> policy.exhausted(3), policy.exhausted(4)
    (False, True)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenacity import (
    RetryCallState,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.stop import stop_base
from tenacity.wait import wait_base

if TYPE_CHECKING:
    from RestGate.settings import RetrySettings

logger = logging.getLogger(__name__)

__all__ = ["BackoffPolicy", "create_backoff_policy"]


class BackoffPolicy:
    """Tenacity-backed answer to "retry again, and after how long?"."""

    def __init__(
        self,
        *,
        max_retries: int = 3,
        base: float = 0.5,
        cap: float = 30.0,
        jitter: bool = True,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got: {max_retries}")
        self.max_retries = max_retries
        self.base = base
        self.cap = cap
        self.jitter = jitter

        self._wait: wait_base
        if jitter:
            self._wait = wait_random_exponential(multiplier=base, max=cap)
        else:
            self._wait = wait_exponential(multiplier=base, min=0, max=cap)
        # First attempt plus ``max_retries`` retries.
        self._stop: stop_base = stop_after_attempt(max_retries + 1)

    @classmethod
    def from_settings(cls, settings: "RetrySettings") -> "BackoffPolicy":
        return cls(
            max_retries=settings.max_retries,
            base=settings.backoff_base,
            cap=settings.backoff_max,
            jitter=settings.jitter,
        )

    @staticmethod
    def _state(attempts: int) -> RetryCallState:
        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        state.attempt_number = max(1, attempts)
        return state

    def delay(self, attempts: int) -> float:
        """Seconds to wait after ``attempts`` failed attempts."""
        return max(0.0, float(self._wait(self._state(attempts))))

    def exhausted(self, attempts: int) -> bool:
        """True once ``attempts`` failed attempts used up the budget."""
        return bool(self._stop(self._state(attempts)))

    def __repr__(self) -> str:
        return (
            f"BackoffPolicy(max_retries={self.max_retries}, base={self.base}, "
            f"cap={self.cap}, jitter={self.jitter})"
        )


def create_backoff_policy(settings: "RetrySettings | None" = None) -> BackoffPolicy:
    """Build a :class:`BackoffPolicy` from settings (process settings by default)."""
    if settings is None:
        from RestGate.settings import get_settings

        settings = get_settings().retry
    return BackoffPolicy.from_settings(settings)
