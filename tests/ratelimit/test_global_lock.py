"""Tests for the process-wide global lock."""

from RestGate.ratelimit.global_lock import GlobalLock


def test_inactive_until_activated() -> None:
    lock = GlobalLock()
    assert not lock.is_active(0.0)
    assert lock.locked_until is None
    assert lock.remaining(0.0) == 0.0


def test_active_for_duration() -> None:
    lock = GlobalLock()
    lock.activate(now=10.0, duration=1.5)
    assert lock.is_active(11.0)
    assert lock.remaining(11.0) == 0.5
    assert not lock.is_active(11.5)


def test_activation_never_shortens_deadline() -> None:
    """A shorter second activation keeps the later deadline."""
    lock = GlobalLock()
    lock.activate(now=0.0, duration=5.0)
    assert lock.activate(now=1.0, duration=1.0) == 5.0
    assert lock.activate(now=2.0, duration=10.0) == 12.0
    assert lock.locked_until == 12.0


def test_negative_duration_treated_as_zero() -> None:
    lock = GlobalLock()
    lock.activate(now=3.0, duration=-1.0)
    assert not lock.is_active(3.0)
