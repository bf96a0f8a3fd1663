"""
Retry policy and failure taxonomy for enhancement jobs.

Implements error-aware retry logic:
- validation, invalid_input, quota_exhausted -> fail immediately (no retry)
- timeout, rate_limited, transient_unavailable -> re-queue
- unknown -> re-queue, bounded like any other transient error
- After max attempts (3) -> FAILED

There is no delay between attempts: a re-queued job is picked up by the
next dispatcher invocation, so the trigger schedule is the backoff.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from photo_pipeline.jobs.models import JobStatus
from photo_pipeline.jobs.state_machine import TransitionOutcome, next_status

logger = logging.getLogger(__name__)

# Retry configuration constants
MAX_ATTEMPTS = 3
MAX_ERROR_MESSAGE_LENGTH = 500


class ErrorKind(str, Enum):
    """Failure classification for retry decisions."""
    TIMEOUT = "timeout"  # Deadline expiry or provider timeout - retry
    RATE_LIMITED = "rate_limited"  # 429 - retry
    QUOTA_EXHAUSTED = "quota_exhausted"  # Account out of quota - no retry
    INVALID_INPUT = "invalid_input"  # Provider rejected the image - no retry
    TRANSIENT_UNAVAILABLE = "transient_unavailable"  # 5xx / network - retry
    VALIDATION = "validation"  # Missing or malformed input handle - no retry
    UNKNOWN = "unknown"  # Unclassified - retry


RETRYABLE_KINDS = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.RATE_LIMITED,
    ErrorKind.TRANSIENT_UNAVAILABLE,
    ErrorKind.UNKNOWN,
})

PERMANENT_KINDS = frozenset({
    ErrorKind.QUOTA_EXHAUSTED,
    ErrorKind.INVALID_INPUT,
    ErrorKind.VALIDATION,
})

# Short messages shown to the owner of a FAILED job
USER_MESSAGES = {
    ErrorKind.TIMEOUT: "The enhancement service did not respond in time.",
    ErrorKind.RATE_LIMITED: "The enhancement service is busy. Please try again later.",
    ErrorKind.TRANSIENT_UNAVAILABLE: "The enhancement service is temporarily unavailable.",
    ErrorKind.QUOTA_EXHAUSTED: "The enhancement service quota has been exhausted.",
    ErrorKind.INVALID_INPUT: "The image could not be processed.",
    ErrorKind.VALIDATION: "The image could not be processed.",
    ErrorKind.UNKNOWN: "Enhancement failed unexpectedly.",
}


def is_retryable(kind: ErrorKind) -> bool:
    return kind in RETRYABLE_KINDS


def user_message(kind: Optional[str]) -> str:
    """Map a stored error kind to the message exposed by the status query."""
    try:
        return USER_MESSAGES[ErrorKind(kind)]
    except ValueError:
        return USER_MESSAGES[ErrorKind.UNKNOWN]


def truncate_message(message: Optional[str]) -> Optional[str]:
    if message is None:
        return None
    return message[:MAX_ERROR_MESSAGE_LENGTH]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy configuration.

    Attributes:
        max_attempts: Maximum claimed attempts before a job is FAILED
    """
    max_attempts: int = MAX_ATTEMPTS

    def decide(self, kind: ErrorKind, attempts: int) -> "RetryDecision":
        return should_retry(kind, attempts, self)


@dataclass
class RetryDecision:
    """
    Result of retry evaluation.

    Attributes:
        should_retry: Whether the job goes back to PENDING
        next_status: Status to persist for the job
        reason: Human-readable explanation
    """
    should_retry: bool
    next_status: JobStatus
    reason: str


def should_retry(
    kind: ErrorKind,
    attempts: int,
    policy: RetryPolicy = RetryPolicy(),
) -> RetryDecision:
    """
    Determine whether a failed attempt is re-queued or terminal.

    Args:
        kind: Classified failure
        attempts: Attempt count including the attempt that just failed
        policy: Retry policy configuration

    Returns:
        RetryDecision with the status to persist
    """
    if is_retryable(kind):
        outcome = TransitionOutcome.RETRYABLE_FAILURE
    else:
        outcome = TransitionOutcome.PERMANENT_FAILURE

    status = next_status(
        JobStatus.PROCESSING, outcome, attempts, policy.max_attempts
    )

    if status == JobStatus.PENDING:
        return RetryDecision(
            should_retry=True,
            next_status=status,
            reason=f"Transient error ({kind.value}) - re-queued (attempt {attempts}/{policy.max_attempts})"
        )

    if outcome == TransitionOutcome.PERMANENT_FAILURE:
        reason = f"Permanent error ({kind.value}) - not retried"
    else:
        reason = f"Max attempts ({policy.max_attempts}) exhausted ({kind.value})"

    return RetryDecision(
        should_retry=False,
        next_status=status,
        reason=reason,
    )


def log_retry_decision(
    job_id: str,
    owner_id: str,
    kind: ErrorKind,
    attempts: int,
    decision: RetryDecision,
) -> None:
    """
    Log retry decision for observability.

    Args:
        job_id: Job identifier
        owner_id: Owning user identifier
        kind: Classified error type
        attempts: Attempt count including the failed attempt
        decision: Retry decision made
    """
    log_extra = {
        "job_id": job_id,
        "owner_id": owner_id,
        "error_kind": kind.value,
        "attempts": attempts,
        "should_retry": decision.should_retry,
        "next_status": decision.next_status.value,
        "reason": decision.reason,
    }

    if decision.should_retry:
        logger.info("job.requeued", extra=log_extra)
    else:
        logger.warning("job.failed", extra=log_extra)
