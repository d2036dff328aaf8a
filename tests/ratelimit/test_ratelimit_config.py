"""Tests for rate strings and the client-side global ceiling."""

import pytest

from RestGate.ratelimit.config import (
    GlobalCeiling,
    RateSpec,
    create_global_ceiling,
    parse_rate_string,
)


class TestParseRateString:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("50/second", RateSpec(50, 1_000)),
            ("300/minute", RateSpec(300, 60_000)),
            ("10/hr", RateSpec(10, 3_600_000)),
            (" 5 / sec ", RateSpec(5, 1_000)),
            ("2/day", RateSpec(2, 86_400_000)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_rate_string(text) == expected

    @pytest.mark.parametrize("text", ["", "fast", "0/second", "10/fortnight", "10/second/extra"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_rate_string(text)

    def test_str_round_trips_common_units(self):
        assert str(RateSpec(50, 1_000)) == "50/second"
        assert str(RateSpec(3, 60_000)) == "3/minute"
        assert str(RateSpec(3, 250)) == "3/250ms"

    def test_spacing(self):
        spec = RateSpec(50, 1_000)
        assert spec.rps == 50
        assert spec.min_spacing == pytest.approx(0.02)


class TestGlobalCeiling:
    def test_allows_up_to_limit_then_refuses(self):
        ceiling = GlobalCeiling(parse_rate_string("3/minute"))
        assert [ceiling.try_acquire() for _ in range(4)] == [True, True, True, False]

    def test_retry_interval_is_spacing(self):
        ceiling = GlobalCeiling(parse_rate_string("50/second"))
        assert ceiling.retry_interval == pytest.approx(0.02)

    def test_disabled(self):
        assert create_global_ceiling(None) is None
        assert create_global_ceiling("") is None
        assert isinstance(create_global_ceiling("50/second"), GlobalCeiling)
