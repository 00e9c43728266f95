"""Tests for the retry policy and status classification."""

from __future__ import annotations

import random

import pytest

from nodegaze.config.settings import DeliveryConfig
from nodegaze.notifications.retry import Outcome, RetryPolicy, classify_status


class TestClassifyStatus:
    @pytest.mark.parametrize("status", [200, 201, 202, 204, 299])
    def test_success(self, status: int) -> None:
        assert classify_status(status) is Outcome.SUCCESS

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient(self, status: int) -> None:
        assert classify_status(status) is Outcome.TRANSIENT

    @pytest.mark.parametrize("status", [301, 302, 400, 401, 403, 404, 410, 422])
    def test_permanent(self, status: int) -> None:
        assert classify_status(status) is Outcome.PERMANENT


class TestRetryPolicy:
    def test_from_config(self) -> None:
        policy = RetryPolicy.from_config(DeliveryConfig(max_attempts=3, base_delay=1.5))
        assert policy.max_attempts == 3
        assert policy.base_delay == 1.5
        assert policy.max_delay == 300.0
        assert policy.jitter == 0.2

    def test_nominal_delay_doubles(self) -> None:
        policy = RetryPolicy(base_delay=2.0, max_delay=300.0)
        assert [policy.nominal_delay(n) for n in range(1, 6)] == [2.0, 4.0, 8.0, 16.0, 32.0]

    def test_nominal_delay_monotone_and_capped(self) -> None:
        policy = RetryPolicy(base_delay=2.0, max_delay=60.0)
        delays = [policy.nominal_delay(n) for n in range(1, 200)]
        assert delays == sorted(delays)
        assert max(delays) == 60.0

    def test_nominal_delay_rejects_zero(self) -> None:
        with pytest.raises(ValueError, match="attempt_number"):
            RetryPolicy().nominal_delay(0)

    def test_jitter_bounds(self) -> None:
        policy = RetryPolicy(base_delay=10.0, max_delay=300.0, jitter=0.2)
        rng = random.Random(42)
        for _ in range(200):
            delay = policy.delay_for(1, rng)
            assert 8.0 <= delay <= 12.0

    def test_jitter_never_exceeds_max(self) -> None:
        policy = RetryPolicy(base_delay=2.0, max_delay=30.0, jitter=0.5)
        rng = random.Random(7)
        assert all(0.0 <= policy.delay_for(10, rng) <= 30.0 for _ in range(200))

    def test_no_jitter(self) -> None:
        policy = RetryPolicy(base_delay=3.0, jitter=0.0)
        assert policy.delay_for(2) == 6.0

    def test_bounded_termination(self) -> None:
        policy = RetryPolicy(max_attempts=5)
        assert [policy.should_retry(n) for n in range(1, 7)] == [
            True,
            True,
            True,
            True,
            False,
            False,
        ]
