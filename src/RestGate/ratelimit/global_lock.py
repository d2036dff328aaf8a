"""Process-wide freeze that holds every bucket after a global 429."""

from __future__ import annotations

from typing import Optional

__all__ = ["GlobalLock"]


class GlobalLock:
    """Deadline before which no request from any bucket may dispatch.

    Activity is a pure comparison of ``now`` against the stored deadline, so
    nothing has to clear the lock and no timer is involved. Only the
    scheduler mutates it, under the scheduler's lock.
    """

    def __init__(self) -> None:
        self._locked_until: Optional[float] = None

    @property
    def locked_until(self) -> Optional[float]:
        return self._locked_until

    def is_active(self, now: float) -> bool:
        return self._locked_until is not None and now < self._locked_until

    def activate(self, now: float, duration: float) -> float:
        """Freeze dispatch for ``duration`` seconds; never shortens a later deadline."""
        deadline = now + max(0.0, duration)
        if self._locked_until is None or deadline > self._locked_until:
            self._locked_until = deadline
        return self._locked_until

    def remaining(self, now: float) -> float:
        """Seconds left before the lock lifts (0.0 when inactive)."""
        if not self.is_active(now):
            return 0.0
        return self._locked_until - now  # type: ignore[operator]
