"""
Enhancement job state machine.

The lifecycle is defined by a single transition table:

    PENDING    --CLAIMED------------------------------------> PROCESSING
    PENDING    --EXHAUSTED (attempts >= max)----------------> FAILED
    PROCESSING --SUCCEEDED----------------------------------> COMPLETED
    PROCESSING --RETRYABLE_FAILURE (attempts <  max)--------> PENDING
    PROCESSING --RETRYABLE_FAILURE (attempts == max)--------> FAILED
    PROCESSING --PERMANENT_FAILURE--------------------------> FAILED
    PROCESSING --ORPHANED (attempts <  max)-----------------> PENDING
    PROCESSING --ORPHANED (attempts == max)-----------------> FAILED

COMPLETED and FAILED are terminal. Everything here is pure: no I/O, no clock.
"""

import enum
from typing import Callable, Dict, Tuple

from photo_pipeline.jobs.models import JobStatus


class TransitionOutcome(str, enum.Enum):
    """Event applied to a job in its current state."""
    CLAIMED = "claimed"
    SUCCEEDED = "succeeded"
    RETRYABLE_FAILURE = "retryable_failure"
    PERMANENT_FAILURE = "permanent_failure"
    ORPHANED = "orphaned"
    EXHAUSTED = "exhausted"  # Picked up after the attempt bound was lowered


class IllegalTransitionError(Exception):
    """Raised when an outcome is applied to a state that does not accept it."""

    def __init__(self, current: JobStatus, outcome: TransitionOutcome):
        super().__init__(
            f"Illegal transition: {outcome.value} from {current.value}"
        )
        self.current = current
        self.outcome = outcome


TERMINAL_STATES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def _always(target: JobStatus) -> Callable[[int, int], JobStatus]:
    return lambda attempts, max_attempts: target


def _requeue_until_exhausted(attempts: int, max_attempts: int) -> JobStatus:
    if attempts < max_attempts:
        return JobStatus.PENDING
    return JobStatus.FAILED


# (current, outcome) -> resolver(attempts, max_attempts) -> next status
TRANSITIONS: Dict[Tuple[JobStatus, TransitionOutcome], Callable[[int, int], JobStatus]] = {
    (JobStatus.PENDING, TransitionOutcome.CLAIMED): _always(JobStatus.PROCESSING),
    (JobStatus.PENDING, TransitionOutcome.EXHAUSTED): _always(JobStatus.FAILED),
    (JobStatus.PROCESSING, TransitionOutcome.SUCCEEDED): _always(JobStatus.COMPLETED),
    (JobStatus.PROCESSING, TransitionOutcome.RETRYABLE_FAILURE): _requeue_until_exhausted,
    (JobStatus.PROCESSING, TransitionOutcome.PERMANENT_FAILURE): _always(JobStatus.FAILED),
    (JobStatus.PROCESSING, TransitionOutcome.ORPHANED): _requeue_until_exhausted,
}


def next_status(
    current: JobStatus,
    outcome: TransitionOutcome,
    attempts: int,
    max_attempts: int,
) -> JobStatus:
    """
    Resolve the next persisted status.

    Args:
        current: Status the job is in now
        outcome: Event being applied
        attempts: Attempt count including the attempt being finalized
        max_attempts: Configured attempt bound

    Returns:
        The status to persist

    Raises:
        IllegalTransitionError: If the table has no entry for (current, outcome)
    """
    resolver = TRANSITIONS.get((current, outcome))
    if resolver is None:
        raise IllegalTransitionError(current, outcome)
    return resolver(attempts, max_attempts)


def is_terminal(status: JobStatus) -> bool:
    return status in TERMINAL_STATES


def is_claimable(status: JobStatus) -> bool:
    return status == JobStatus.PENDING
