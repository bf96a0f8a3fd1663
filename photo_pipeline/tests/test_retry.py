"""
Tests for the retry policy and failure taxonomy.

Validates:
- Retryable kinds re-queue while attempts remain
- Permanent kinds fail on the first attempt
- Attempts at the bound fail regardless of kind
- User-facing messages never expose the raw kind
"""

import logging

import pytest

from photo_pipeline.jobs.models import JobStatus
from photo_pipeline.jobs.retry import (
    PERMANENT_KINDS,
    RETRYABLE_KINDS,
    ErrorKind,
    RetryPolicy,
    is_retryable,
    log_retry_decision,
    should_retry,
    truncate_message,
    user_message,
)


class TestClassification:
    """Tests for retryable vs permanent kinds."""

    def test_every_kind_is_classified_once(self):
        assert RETRYABLE_KINDS | PERMANENT_KINDS == set(ErrorKind)
        assert not RETRYABLE_KINDS & PERMANENT_KINDS

    @pytest.mark.parametrize("kind", [
        ErrorKind.TIMEOUT,
        ErrorKind.RATE_LIMITED,
        ErrorKind.TRANSIENT_UNAVAILABLE,
        ErrorKind.UNKNOWN,
    ])
    def test_transient_kinds_are_retryable(self, kind):
        assert is_retryable(kind)

    @pytest.mark.parametrize("kind", [
        ErrorKind.QUOTA_EXHAUSTED,
        ErrorKind.INVALID_INPUT,
        ErrorKind.VALIDATION,
    ])
    def test_permanent_kinds_are_not_retryable(self, kind):
        assert not is_retryable(kind)


class TestShouldRetry:
    """Tests for retry decisions."""

    def test_retryable_below_max_requeues(self):
        decision = should_retry(ErrorKind.TIMEOUT, attempts=1, policy=RetryPolicy(max_attempts=3))
        assert decision.should_retry is True
        assert decision.next_status == JobStatus.PENDING
        assert "attempt 1/3" in decision.reason

    def test_retryable_at_max_fails(self):
        decision = should_retry(ErrorKind.RATE_LIMITED, attempts=3, policy=RetryPolicy(max_attempts=3))
        assert decision.should_retry is False
        assert decision.next_status == JobStatus.FAILED
        assert "exhausted" in decision.reason

    def test_permanent_fails_immediately(self):
        decision = should_retry(ErrorKind.QUOTA_EXHAUSTED, attempts=1, policy=RetryPolicy(max_attempts=3))
        assert decision.should_retry is False
        assert decision.next_status == JobStatus.FAILED
        assert "Permanent" in decision.reason

    def test_policy_decide_delegates(self):
        policy = RetryPolicy(max_attempts=2)
        assert policy.decide(ErrorKind.UNKNOWN, 1).next_status == JobStatus.PENDING
        assert policy.decide(ErrorKind.UNKNOWN, 2).next_status == JobStatus.FAILED

    def test_default_policy_allows_three_attempts(self):
        assert RetryPolicy().max_attempts == 3


class TestMessages:
    """Tests for stored and displayed messages."""

    def test_user_message_for_timeout(self):
        assert user_message("timeout") == "The enhancement service did not respond in time."

    def test_user_message_for_validation(self):
        assert user_message("validation") == "The image could not be processed."

    def test_user_message_for_unknown_value(self):
        assert user_message("not-a-kind") == user_message("unknown")

    def test_user_message_never_echoes_kind(self):
        for kind in ErrorKind:
            assert kind.value not in user_message(kind.value)

    def test_truncate_message(self):
        assert truncate_message(None) is None
        assert len(truncate_message("x" * 2000)) == 500


class TestLogRetryDecision:
    """Tests for decision logging."""

    def test_requeue_logged_at_info(self, caplog):
        decision = should_retry(ErrorKind.TIMEOUT, 1)
        with caplog.at_level(logging.INFO, logger="photo_pipeline.jobs.retry"):
            log_retry_decision("job-1", "owner-1", ErrorKind.TIMEOUT, 1, decision)

        record = caplog.records[-1]
        assert record.getMessage() == "job.requeued"
        assert record.levelno == logging.INFO
        assert record.job_id == "job-1"
        assert record.error_kind == "timeout"

    def test_failure_logged_at_warning(self, caplog):
        decision = should_retry(ErrorKind.INVALID_INPUT, 1)
        with caplog.at_level(logging.INFO, logger="photo_pipeline.jobs.retry"):
            log_retry_decision("job-2", "owner-1", ErrorKind.INVALID_INPUT, 1, decision)

        record = caplog.records[-1]
        assert record.getMessage() == "job.failed"
        assert record.levelno == logging.WARNING
        assert record.next_status == "FAILED"
