"""Settings factory pointed at the scripted API with fast, deterministic backoff."""

from __future__ import annotations

from RestGate.settings import HttpSettings, RateLimitSettings, RestGateSettings, RetrySettings
from tests.fixtures.http_mocking import BASE_URL


def make_settings(
    *,
    token: str | None = "test-token",
    max_retries: int = 3,
    backoff_base: float = 0.01,
    global_rate: str | None = None,
    max_wait: float | None = None,
    retry_after_unit: str = "seconds",
    max_in_flight: int = 8,
) -> RestGateSettings:
    """Build settings for tests; every knob the suite varies is a keyword."""
    return RestGateSettings(
        token=token,
        http=HttpSettings(base_url=BASE_URL),
        retry=RetrySettings(
            max_retries=max_retries, backoff_base=backoff_base, backoff_max=1.0, jitter=False
        ),
        ratelimit=RateLimitSettings(
            global_rate=global_rate,
            max_wait=max_wait,
            retry_after_unit=retry_after_unit,
            max_in_flight=max_in_flight,
        ),
    )
