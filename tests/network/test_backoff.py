"""Tests for the tenacity-backed backoff policy."""

import pytest

from RestGate.network.retry import BackoffPolicy, create_backoff_policy
from RestGate.settings import RetrySettings


class TestBackoffPolicy:
    def test_exponential_without_jitter(self):
        policy = BackoffPolicy(max_retries=5, base=0.5, cap=30.0, jitter=False)
        assert [policy.delay(n) for n in range(1, 5)] == [0.5, 1.0, 2.0, 4.0]

    def test_delay_capped(self):
        policy = BackoffPolicy(max_retries=10, base=1.0, cap=3.0, jitter=False)
        assert policy.delay(8) == 3.0

    def test_jitter_stays_within_exponential_envelope(self):
        policy = BackoffPolicy(max_retries=5, base=0.5, cap=30.0, jitter=True)
        for attempt in range(1, 6):
            delay = policy.delay(attempt)
            assert 0.0 <= delay <= 0.5 * 2 ** (attempt - 1)

    def test_budget(self):
        """With three retries the fourth failed attempt exhausts the budget."""
        policy = BackoffPolicy(max_retries=3)
        assert [policy.exhausted(n) for n in range(1, 5)] == [False, False, False, True]

    def test_zero_retries_fails_first_attempt(self):
        assert BackoffPolicy(max_retries=0).exhausted(1)

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            BackoffPolicy(max_retries=-1)

    def test_from_settings(self):
        settings = RetrySettings(max_retries=2, backoff_base=0.25, backoff_max=5.0, jitter=False)
        policy = create_backoff_policy(settings)
        assert policy.max_retries == 2
        assert policy.delay(1) == 0.25
        assert "max_retries=2" in repr(policy)

    def test_defaults_from_process_settings(self, monkeypatch):
        monkeypatch.setenv("RESTGATE_RETRY__MAX_RETRIES", "7")
        assert create_backoff_policy().max_retries == 7
