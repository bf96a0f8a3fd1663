"""Job orchestration for the enhancement pipeline."""

from photo_pipeline.jobs.models import (
    EnhancementJob,
    JobStatus,
)
from photo_pipeline.jobs.state_machine import (
    IllegalTransitionError,
    TransitionOutcome,
    next_status,
)
from photo_pipeline.jobs.retry import ErrorKind, RetryPolicy, should_retry

__all__ = [
    "EnhancementJob",
    "JobStatus",
    "IllegalTransitionError",
    "TransitionOutcome",
    "next_status",
    "ErrorKind",
    "RetryPolicy",
    "should_retry",
]
