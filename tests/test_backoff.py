"""Unit tests for the retry backoff policy."""

import pytest

from app.services.backoff import BackoffPolicy


class TestBackoffPolicy:
    """Tests for BackoffPolicy."""

    def test_delay_doubles_per_retry(self):
        policy = BackoffPolicy(base_delay=5.0, max_attempts=4)

        assert policy.delay(1) == 5.0
        assert policy.delay(2) == 10.0
        assert policy.delay(3) == 20.0

    def test_delay_is_non_decreasing(self):
        policy = BackoffPolicy(base_delay=0.1, max_attempts=10, max_delay=3.0)

        delays = [policy.delay(n) for n in range(1, 20)]

        assert delays == sorted(delays)

    def test_max_delay_caps_growth(self):
        policy = BackoffPolicy(base_delay=1.0, max_attempts=10, max_delay=4.0)

        assert policy.delay(3) == 4.0
        assert policy.delay(8) == 4.0

    def test_uncapped_by_default(self):
        policy = BackoffPolicy(base_delay=1.0, max_attempts=20)

        assert policy.delay(11) == 1024.0

    def test_same_inputs_same_delay(self):
        policy = BackoffPolicy(base_delay=0.25, max_attempts=3)

        assert policy.delay(2) == policy.delay(2)
        assert BackoffPolicy(base_delay=0.25, max_attempts=3).delay(2) == policy.delay(2)

    def test_from_milliseconds(self):
        policy = BackoffPolicy.from_milliseconds(100, 3, max_delay_ms=150)

        assert policy.base_delay == pytest.approx(0.1)
        assert policy.max_delay == pytest.approx(0.15)
        assert policy.delay(1) == pytest.approx(0.1)
        assert policy.delay(2) == pytest.approx(0.15)

    def test_retry_numbering_starts_at_one(self):
        policy = BackoffPolicy(base_delay=1.0, max_attempts=3)

        with pytest.raises(ValueError):
            policy.delay(0)

    def test_should_retry_respects_attempt_budget(self):
        policy = BackoffPolicy(base_delay=1.0, max_attempts=3)

        assert policy.should_retry(1)
        assert policy.should_retry(2)
        assert not policy.should_retry(3)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_delay": -1.0, "max_attempts": 3},
            {"base_delay": 1.0, "max_attempts": 0},
            {"base_delay": 1.0, "max_attempts": 3, "max_delay": -5.0},
        ],
    )
    def test_invalid_configuration_rejected(self, kwargs):
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)
