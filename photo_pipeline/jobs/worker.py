"""
Enhancement worker.

Drives one job through a single attempt:
- Claims the job (PENDING -> PROCESSING, attempts + 1)
- Validates the input handle and options
- Calls the provider under the per-job deadline
- Finalizes to COMPLETED, back to PENDING, or FAILED

The worker is the only component that calls the provider. Every write it
makes is conditional on the claim it holds, so a worker whose claim was
re-armed by orphan recovery cannot overwrite the newer attempt.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from photo_pipeline.config.pipeline import PipelineConfig
from photo_pipeline.integrations.enhancer.adapter import EnhancementProvider
from photo_pipeline.integrations.enhancer.models import (
    EnhancementOptions,
    EnhancementResult,
)
from photo_pipeline.jobs.models import EnhancementJob, JobStatus
from photo_pipeline.jobs.retry import (
    ErrorKind,
    RetryPolicy,
    log_retry_decision,
)
from photo_pipeline.repositories.enhancement_jobs import (
    EnhancementJobStore,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


class WorkerOutcome(str, enum.Enum):
    """Result of one worker attempt."""
    SUCCEEDED = "succeeded"
    REQUEUED = "requeued"
    FAILED = "failed"
    SKIPPED = "skipped"  # Lost the claim race or the finalize guard
    STORE_ERROR = "store_error"


@dataclass
class WorkerResult:
    """
    Outcome of processing one job.

    Attributes:
        job_id: Job that was processed
        outcome: What happened to the job
        claimed: Whether this worker won the claim
        attempts: Attempt count after the claim (0 if not claimed)
        error_kind: Failure classification, if the attempt failed
    """
    job_id: str
    outcome: WorkerOutcome
    claimed: bool = False
    attempts: int = 0
    error_kind: Optional[ErrorKind] = None


def validate_input_handle(input_handle: Optional[str]) -> Optional[str]:
    """
    Return an error message if the handle is not a usable URI.

    Any scheme is accepted (https, s3, blob, ...); whether the provider can
    fetch it is the provider's call, reported back as invalid_input.
    """
    if not input_handle or not input_handle.strip():
        return "Input handle is missing"
    parsed = urlparse(input_handle.strip())
    if not parsed.scheme:
        return "Input handle is not a URI"
    if not (parsed.netloc or parsed.path):
        return "Input handle has no location"
    return None


def _stored_kind(value: Optional[str]) -> ErrorKind:
    try:
        return ErrorKind(value)
    except ValueError:
        return ErrorKind.UNKNOWN


class EnhancementWorker:
    """
    Per-job orchestration unit.

    One instance may process several jobs concurrently; it keeps no
    per-job state between calls.
    """

    def __init__(
        self,
        store: EnhancementJobStore,
        provider: EnhancementProvider,
        config: PipelineConfig,
        run_id: Optional[str] = None,
    ):
        """
        Initialize enhancement worker.

        Args:
            store: Job record store
            provider: Enhancement provider adapter
            config: Pipeline configuration
            run_id: Dispatcher invocation id, for log correlation
        """
        self.store = store
        self.provider = provider
        self.config = config
        self.run_id = run_id
        self.policy = RetryPolicy(max_attempts=config.max_attempts)

    async def process(self, job: EnhancementJob) -> WorkerResult:
        """
        Run one attempt for a job selected by the dispatcher.

        Args:
            job: Snapshot from the PENDING scan

        Returns:
            WorkerResult describing the attempt
        """
        job_id = job.id

        try:
            claimed = self.store.claim(job_id, self.config.max_attempts)
        except StoreUnavailableError:
            logger.error(
                "job.claim_store_error",
                extra={"run_id": self.run_id, "job_id": job_id},
                exc_info=True,
            )
            return WorkerResult(job_id=job_id, outcome=WorkerOutcome.STORE_ERROR)

        if claimed is None:
            logger.info(
                "job.claim_lost",
                extra={"run_id": self.run_id, "job_id": job_id},
            )
            return WorkerResult(job_id=job_id, outcome=WorkerOutcome.SKIPPED)

        if claimed.status == JobStatus.FAILED:
            # Already at the attempt bound; the store closed it out instead of claiming
            return WorkerResult(
                job_id=job_id,
                outcome=WorkerOutcome.FAILED,
                attempts=claimed.attempts,
                error_kind=_stored_kind(claimed.last_error_kind),
            )

        logger.info(
            "job.claimed",
            extra={
                "run_id": self.run_id,
                "job_id": job_id,
                "owner_id": claimed.owner_id,
                "attempts": claimed.attempts,
            },
        )

        result = await self._attempt(claimed)
        return self._finalize(claimed, result)

    async def _attempt(self, job: EnhancementJob) -> EnhancementResult:
        handle_error = validate_input_handle(job.input_handle)
        if handle_error:
            return EnhancementResult.failure(ErrorKind.VALIDATION, handle_error)

        try:
            options = EnhancementOptions.model_validate(job.options or {})
        except ValidationError as e:
            return EnhancementResult.failure(
                ErrorKind.VALIDATION, f"Invalid enhancement options: {e.error_count()} error(s)"
            )

        deadline = self.config.job_deadline_seconds
        try:
            result = await asyncio.wait_for(
                self.provider.enhance(job.input_handle.strip(), options),
                timeout=deadline,
            )
        except asyncio.TimeoutError:
            return EnhancementResult.failure(
                ErrorKind.TIMEOUT, f"Enhancement exceeded the {deadline:g}s deadline"
            )
        except Exception as e:
            logger.error(
                "job.provider_error",
                extra={"run_id": self.run_id, "job_id": job.id, "error": str(e)},
                exc_info=True,
            )
            return EnhancementResult.failure(ErrorKind.UNKNOWN, str(e) or type(e).__name__)

        if result.error_kind is None and not result.output_handle:
            return EnhancementResult.failure(
                ErrorKind.UNKNOWN, "Provider reported success without an output handle"
            )
        return result

    def _finalize(self, job: EnhancementJob, result: EnhancementResult) -> WorkerResult:
        attempts = job.attempts
        base = {"job_id": job.id, "claimed": True, "attempts": attempts}

        if result.succeeded:
            status = JobStatus.COMPLETED
            outcome = WorkerOutcome.SUCCEEDED
            decision = None
            kind = None
        else:
            kind = result.error_kind or ErrorKind.UNKNOWN
            decision = self.policy.decide(kind, attempts)
            status = decision.next_status
            outcome = WorkerOutcome.REQUEUED if decision.should_retry else WorkerOutcome.FAILED

        try:
            written = self.store.finalize(
                job.id,
                expected_attempts=attempts,
                status=status,
                output_handle=result.output_handle if result.succeeded else None,
                error_kind=kind,
                error_message=result.error_message,
            )
        except StoreUnavailableError:
            # Left in PROCESSING; orphan recovery re-arms it.
            logger.error(
                "job.finalize_store_error",
                extra={
                    "run_id": self.run_id,
                    "job_id": job.id,
                    "attempts": attempts,
                    "next_status": status.value,
                },
                exc_info=True,
            )
            return WorkerResult(outcome=WorkerOutcome.STORE_ERROR, error_kind=kind, **base)

        if not written:
            logger.warning(
                "job.finalize_conflict",
                extra={
                    "run_id": self.run_id,
                    "job_id": job.id,
                    "attempts": attempts,
                    "next_status": status.value,
                },
            )
            return WorkerResult(outcome=WorkerOutcome.SKIPPED, error_kind=kind, **base)

        if decision is None:
            logger.info(
                "job.completed",
                extra={"run_id": self.run_id, "job_id": job.id, "attempts": attempts},
            )
        else:
            log_retry_decision(job.id, job.owner_id, kind, attempts, decision)

        return WorkerResult(outcome=outcome, error_kind=kind, **base)
