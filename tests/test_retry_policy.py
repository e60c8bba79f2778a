"""Tests for retry classification and backoff."""
import pytest

from common.errors import (
    FatalFetchError,
    MalformedRecordError,
    NoDataError,
    TransientFetchError,
)
from ingestion.pipeline.retry_policy import RetryAction, RetryPolicy, RetryState


class TestRetryPolicy:
    """Classification of fetch errors."""

    def setup_method(self):
        self.policy = RetryPolicy(max_attempts=3, base_delay=1.0)

    def test_no_data_is_terminal_empty(self):
        decision = self.policy.classify(NoDataError("none"), RetryState(attempts=1))
        assert decision.action is RetryAction.EMPTY

    def test_transient_is_retried_with_backoff(self):
        decision = self.policy.classify(TransientFetchError("503"), RetryState(attempts=2))
        assert decision.action is RetryAction.RETRY
        assert decision.delay == 2.0

    def test_transient_after_max_attempts_aborts(self):
        decision = self.policy.classify(TransientFetchError("503"), RetryState(attempts=3))
        assert decision.action is RetryAction.ABORT

    def test_fatal_aborts_immediately(self):
        decision = self.policy.classify(FatalFetchError("401", status_code=401), RetryState(attempts=1))
        assert decision.action is RetryAction.ABORT

    def test_unknown_error_aborts(self):
        decision = self.policy.classify(KeyError("t"), RetryState(attempts=1))
        assert decision.action is RetryAction.ABORT

    def test_malformed_record_is_not_retried(self):
        decision = self.policy.classify(MalformedRecordError("bad"), RetryState(attempts=1))
        assert decision.action is RetryAction.ABORT


def test_backoff_is_non_decreasing():
    policy = RetryPolicy(max_attempts=50, base_delay=1.0)
    delays = [policy.backoff(attempt) for attempt in range(1, 51)]
    assert delays == sorted(delays)
    assert delays[0] == 1.0
    assert delays[-1] == 50.0


def test_backoff_cap():
    policy = RetryPolicy(max_attempts=10, base_delay=1.0, max_delay=4.0)
    assert [policy.backoff(a) for a in range(1, 7)] == [1.0, 2.0, 3.0, 4.0, 4.0, 4.0]


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
