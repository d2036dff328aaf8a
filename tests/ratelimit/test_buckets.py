"""Tests for the bucket table."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from RestGate.ratelimit.buckets import FALLBACK_WINDOW, BucketTable
from RestGate.ratelimit.headers import RateLimitInfo

KEY = "POST /channels/1/messages"
OTHER = "DELETE /channels/1/messages/{id}"


class TestCapacity:
    """Optimistic start, consumption and speculative refresh."""

    def setup_method(self):
        self.table = BucketTable()

    def test_new_bucket_allows_one_call(self):
        assert self.table.has_capacity(KEY, now=10.0)
        snapshot = self.table.snapshot(KEY)
        assert (snapshot.limit, snapshot.remaining) == (1, 1)
        assert KEY in self.table

    def test_consume_decrements(self):
        self.table.update_from_headers(KEY, 5, 3, 100.0)
        self.table.consume(KEY)
        assert self.table.snapshot(KEY).remaining == 2

    def test_consume_without_capacity_raises(self):
        self.table.update_from_headers(KEY, 5, 0, 100.0)
        with pytest.raises(ValueError):
            self.table.consume(KEY)

    def test_exhausted_until_reset(self):
        self.table.update_from_headers(KEY, 5, 0, 100.0)
        assert not self.table.has_capacity(KEY, now=99.9)
        assert self.table.has_capacity(KEY, now=100.0)
        assert self.table.snapshot(KEY).remaining == 5

    def test_refresh_advances_by_known_window(self):
        self.table.update_from_headers(KEY, 5, 0, 100.0, window=2.0)
        assert self.table.has_capacity(KEY, now=101.0)
        assert self.table.snapshot(KEY).reset_at == pytest.approx(103.0)

    def test_refresh_without_known_window_refills_once(self):
        self.table.update_from_headers(KEY, 1, 0, 10.0)
        assert self.table.has_capacity(KEY, now=11.0)
        self.table.consume(KEY)
        assert self.table.snapshot(KEY).reset_at == pytest.approx(11.0 + FALLBACK_WINDOW)
        assert not self.table.has_capacity(KEY, now=11.5)
        assert self.table.has_capacity(KEY, now=11.0 + FALLBACK_WINDOW)

    def test_penalized_window_refills_once(self):
        self.table.penalize(KEY, until=5.0)
        assert self.table.has_capacity(KEY, now=5.0)
        self.table.consume(KEY)
        assert not self.table.has_capacity(KEY, now=5.5)

    def test_unreported_window_stays_optimistic(self):
        self.table.consume(KEY)
        assert self.table.has_capacity(KEY, now=1.0)
        assert self.table.snapshot(KEY).reset_at == 0.0

    def test_server_values_overwrite(self):
        self.table.update_from_headers(KEY, 5, 4, 50.0)
        self.table.update_from_headers(KEY, 10, 9, 60.0)
        snapshot = self.table.snapshot(KEY)
        assert (snapshot.limit, snapshot.remaining, snapshot.reset_at) == (10, 9, 60.0)

    def test_none_keeps_previous_values(self):
        self.table.update_from_headers(KEY, 5, 4, 50.0)
        self.table.update_from_headers(KEY, None, 2, None)
        snapshot = self.table.snapshot(KEY)
        assert (snapshot.limit, snapshot.remaining, snapshot.reset_at) == (5, 2, 50.0)

    def test_negative_remaining_clamped(self):
        self.table.update_from_headers(KEY, 5, -2, 50.0)
        assert self.table.snapshot(KEY).remaining == 0


class TestPenaltyAndRefund:
    def setup_method(self):
        self.table = BucketTable()
        self.table.update_from_headers(KEY, 5, 3, 10.0)

    def test_penalize_blocks_until(self):
        self.table.penalize(KEY, until=20.0)
        assert not self.table.has_capacity(KEY, now=19.99)
        assert self.table.has_capacity(KEY, now=20.0)

    def test_penalize_never_shortens(self):
        self.table.update_from_headers(KEY, 5, 0, 30.0)
        self.table.penalize(KEY, until=20.0)
        assert self.table.snapshot(KEY).reset_at == 30.0

    def test_refund_capped_at_limit(self):
        self.table.refund(KEY)
        self.table.refund(KEY)
        self.table.refund(KEY)
        assert self.table.snapshot(KEY).remaining == 5


class TestServerBucketBinding:
    """Keys reporting the same server bucket share one window."""

    def setup_method(self):
        self.table = BucketTable()

    def test_two_keys_share_window(self):
        info = RateLimitInfo(bucket="srv-1", limit=2, remaining=1, reset_after=5.0)
        self.table.apply_rate_limit_info(KEY, info, now=0.0)
        self.table.apply_rate_limit_info(OTHER, info, now=0.0)

        self.table.consume(OTHER)
        assert self.table.snapshot(KEY).remaining == 0
        assert not self.table.has_capacity(KEY, now=1.0)
        assert self.table.snapshot(OTHER).server_bucket == "srv-1"

    def test_different_major_parameters_stay_separate(self):
        info = RateLimitInfo(bucket="srv-1", limit=2, remaining=1, reset_after=5.0)
        self.table.apply_rate_limit_info("POST /channels/1/messages", info, now=0.0)
        self.table.apply_rate_limit_info("POST /channels/2/messages", info, now=0.0)

        self.table.consume("POST /channels/1/messages")
        assert self.table.snapshot("POST /channels/2/messages").remaining == 1

    def test_apply_prefers_relative_reset(self):
        info = RateLimitInfo(limit=5, remaining=4, reset=1_000_000.0, reset_after=2.0)
        self.table.apply_rate_limit_info(KEY, info, now=50.0, wall_now=999_990.0)
        snapshot = self.table.snapshot(KEY)
        assert snapshot.reset_at == pytest.approx(52.0)
        assert snapshot.window == pytest.approx(2.0)

    def test_apply_uses_absolute_reset_when_alone(self):
        info = RateLimitInfo(limit=5, remaining=4, reset=1_000_003.0)
        self.table.apply_rate_limit_info(KEY, info, now=50.0, wall_now=1_000_000.0)
        assert self.table.snapshot(KEY).reset_at == pytest.approx(53.0)

    def test_apply_without_headers_is_noop(self):
        self.table.apply_rate_limit_info(KEY, RateLimitInfo(), now=50.0)
        snapshot = self.table.snapshot(KEY)
        assert (snapshot.limit, snapshot.remaining, snapshot.reset_at) == (1, 1, 0.0)


operations = st.lists(
    st.one_of(
        st.tuples(st.just("consume"), st.floats(min_value=0, max_value=100)),
        st.tuples(st.just("penalize"), st.floats(min_value=0, max_value=100)),
        st.tuples(st.just("refund"), st.floats(min_value=0, max_value=100)),
        st.tuples(
            st.just("update"),
            st.tuples(
                st.integers(min_value=-5, max_value=50),
                st.integers(min_value=-5, max_value=50),
                st.floats(min_value=0, max_value=100),
            ),
        ),
    ),
    max_size=60,
)


@given(operations)
def test_remaining_never_negative(ops):
    """No sequence of table operations drives ``remaining`` below zero."""
    table = BucketTable()
    for op, arg in ops:
        if op == "consume":
            if table.has_capacity(KEY, now=arg):
                table.consume(KEY)
        elif op == "penalize":
            table.penalize(KEY, until=arg)
        elif op == "refund":
            table.refund(KEY)
        else:
            limit, remaining, reset_at = arg
            table.update_from_headers(KEY, limit, remaining, reset_at)
        assert table.snapshot(KEY).remaining >= 0


@given(st.lists(st.floats(min_value=0, max_value=100), max_size=30))
def test_refresh_moves_reset_forward(times):
    """Every speculative refresh of a reported window pushes ``reset_at`` later."""
    table = BucketTable()
    table.update_from_headers(KEY, 1, 0, 0.0)
    for now in sorted(times):
        before = table.snapshot(KEY).reset_at
        if table.has_capacity(KEY, now=now):
            assert table.snapshot(KEY).reset_at > before
            table.consume(KEY)
