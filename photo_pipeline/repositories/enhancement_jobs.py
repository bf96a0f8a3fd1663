"""
Durable store for enhancement job records.

Every operation runs in its own short transaction obtained from a session
factory, so the store is safe to share between concurrent workers of one
invocation and between overlapping invocations. All status changes are
conditional updates guarded on the current status: the row count of the
UPDATE is the only synchronization primitive the pipeline relies on.

Returned records are detached snapshots; mutating them has no effect.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from photo_pipeline.jobs.models import EnhancementJob, JobStatus
from photo_pipeline.jobs.retry import ErrorKind, truncate_message
from photo_pipeline.jobs.state_machine import (
    TransitionOutcome,
    is_claimable,
    is_terminal,
    next_status,
)
from photo_pipeline.models.base import as_utc, utc_now

logger = logging.getLogger(__name__)

ORPHAN_MESSAGE = "Processing abandoned; re-queued by orphan recovery"
ORPHAN_EXHAUSTED_MESSAGE = "Processing abandoned after final attempt"
EXHAUSTED_MESSAGE = "Attempt limit reached before the job could be claimed"

_TICK = timedelta(microseconds=1)


class StoreUnavailableError(Exception):
    """Raised when the job store cannot be reached or a statement fails."""

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation


@dataclass
class OrphanRecovery:
    """Counts from one orphan sweep."""
    requeued: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.requeued + self.failed


class EnhancementJobStore:
    """
    Repository for EnhancementJob records.

    Responsibilities:
    - Create records (the only way a job enters the pipeline)
    - Oldest-first scan of PENDING records
    - Atomic claim (PENDING -> PROCESSING, attempts + 1)
    - Conditional finalize of a claimed attempt
    - Set-based orphan sweep of stale PROCESSING records
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the store.

        Args:
            session_factory: Factory producing SQLAlchemy sessions
            clock: Returns the current UTC time (injectable for tests)
        """
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error(
                "store.unavailable",
                extra={"operation": operation, "error": str(e)},
            )
            raise StoreUnavailableError(
                f"Job store unavailable during {operation}", operation
            ) from e
        finally:
            session.close()

    def _advance(self, previous: Optional[datetime]) -> datetime:
        """Next updated_at value: never equal to or older than the previous one."""
        now = as_utc(self._clock())
        if previous is None:
            return now
        return max(now, as_utc(previous) + _TICK)

    def create(
        self,
        owner_id: str,
        input_handle: str,
        options: Optional[dict] = None,
    ) -> EnhancementJob:
        """
        Create a PENDING job with zero attempts.

        The input handle is stored as given; a malformed handle surfaces
        later as a validation failure of the job itself.

        Raises:
            ValueError: If owner_id is empty
            StoreUnavailableError: On database failure
        """
        if not owner_id:
            raise ValueError("owner_id is required")

        now = as_utc(self._clock())
        job = EnhancementJob(
            owner_id=owner_id,
            input_handle=input_handle or "",
            status=JobStatus.PENDING,
            attempts=0,
            options=options,
            created_at=now,
            updated_at=now,
        )
        with self._transaction("create") as session:
            session.add(job)
            session.flush()
            session.expunge(job)

        logger.info(
            "job.enqueued",
            extra={"job_id": job.id, "owner_id": owner_id},
        )
        return job

    def get(self, job_id: str) -> Optional[EnhancementJob]:
        """Read the latest persisted state of a job."""
        with self._transaction("get") as session:
            job = session.get(EnhancementJob, job_id)
            if job is not None:
                session.expunge(job)
        return job

    def list_pending(self, limit: int) -> List[EnhancementJob]:
        """
        Oldest-first PENDING records.

        Args:
            limit: Maximum number of records returned
        """
        with self._transaction("list_pending") as session:
            jobs = (
                session.query(EnhancementJob)
                .filter(EnhancementJob.status == JobStatus.PENDING)
                .order_by(EnhancementJob.created_at.asc(), EnhancementJob.id.asc())
                .limit(limit)
                .all()
            )
            session.expunge_all()
        return jobs

    def list_orphans(self, grace_seconds: float) -> List[EnhancementJob]:
        """PROCESSING records not touched within the grace period. Read-only."""
        cutoff = as_utc(self._clock()) - timedelta(seconds=grace_seconds)
        with self._transaction("list_orphans") as session:
            jobs = (
                session.query(EnhancementJob)
                .filter(
                    EnhancementJob.status == JobStatus.PROCESSING,
                    EnhancementJob.updated_at < cutoff,
                )
                .order_by(EnhancementJob.updated_at.asc())
                .all()
            )
            session.expunge_all()
        return jobs

    def claim(self, job_id: str, max_attempts: int) -> Optional[EnhancementJob]:
        """
        Atomically move a PENDING job to PROCESSING and count the attempt.

        Args:
            job_id: Job to claim
            max_attempts: Configured attempt bound

        Returns:
            Fresh PROCESSING snapshot of the claimed job. A FAILED snapshot
            if the job had already used max_attempts (the bound was lowered
            after it was re-queued) and this call closed it out. None if
            another invocation claimed it first or it is no longer PENDING.

        Raises:
            StoreUnavailableError: On database failure
        """
        with self._transaction("claim") as session:
            current = (
                session.query(EnhancementJob)
                .filter(EnhancementJob.id == job_id)
                .with_for_update()
                .first()
            )
            if current is None or not is_claimable(current.status):
                return None

            now = self._advance(current.updated_at)

            if current.attempts >= max_attempts:
                target = next_status(
                    current.status, TransitionOutcome.EXHAUSTED, current.attempts, max_attempts
                )
                exhausted = (
                    session.query(EnhancementJob)
                    .filter(
                        EnhancementJob.id == job_id,
                        EnhancementJob.status == JobStatus.PENDING,
                        EnhancementJob.attempts >= max_attempts,
                    )
                    .update(
                        {
                            EnhancementJob.status: target,
                            EnhancementJob.last_error_kind: current.last_error_kind or ErrorKind.UNKNOWN.value,
                            EnhancementJob.last_error_message: EXHAUSTED_MESSAGE,
                            EnhancementJob.completed_at: now,
                            EnhancementJob.updated_at: now,
                        },
                        synchronize_session=False,
                    )
                )
                if exhausted != 1:
                    return None

                logger.warning(
                    "job.exhausted",
                    extra={
                        "job_id": job_id,
                        "attempts": current.attempts,
                        "max_attempts": max_attempts,
                    },
                )
                session.refresh(current)
                session.expunge(current)
                return current

            target = next_status(
                current.status, TransitionOutcome.CLAIMED, current.attempts + 1, max_attempts
            )

            claimed = (
                session.query(EnhancementJob)
                .filter(
                    EnhancementJob.id == job_id,
                    EnhancementJob.status == JobStatus.PENDING,
                    EnhancementJob.attempts < max_attempts,
                )
                .update(
                    {
                        EnhancementJob.status: target,
                        EnhancementJob.attempts: EnhancementJob.attempts + 1,
                        EnhancementJob.claimed_at: now,
                        EnhancementJob.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if claimed != 1:
                return None

            session.refresh(current)
            session.expunge(current)
        return current

    def finalize(
        self,
        job_id: str,
        expected_attempts: int,
        status: JobStatus,
        output_handle: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Persist the outcome of a claimed attempt.

        The update only applies while the job is still PROCESSING with the
        attempt count observed at claim time. If the claim was re-armed by
        an orphan sweep in the meantime, nothing is written.

        Args:
            job_id: Job being finalized
            expected_attempts: Attempt count returned by claim()
            status: COMPLETED, PENDING (re-queue) or FAILED
            output_handle: Enhanced image URL (COMPLETED only)
            error_kind: Failure classification (PENDING/FAILED only)
            error_message: Failure detail, truncated before persisting

        Returns:
            True if the record was updated, False on conflict

        Raises:
            ValueError: On a status/output combination the record may not hold
            StoreUnavailableError: On database failure
        """
        if status == JobStatus.PROCESSING:
            raise ValueError("finalize cannot target PROCESSING")
        if status == JobStatus.COMPLETED and not output_handle:
            raise ValueError("COMPLETED requires a non-empty output handle")
        if status != JobStatus.COMPLETED and output_handle:
            raise ValueError("output handle is only stored on COMPLETED")

        with self._transaction("finalize") as session:
            current = (
                session.query(EnhancementJob)
                .filter(EnhancementJob.id == job_id)
                .with_for_update()
                .first()
            )
            if current is None:
                return False

            now = self._advance(current.updated_at)
            values = {
                EnhancementJob.status: status,
                EnhancementJob.updated_at: now,
            }
            if status == JobStatus.COMPLETED:
                values[EnhancementJob.output_handle] = output_handle
                values[EnhancementJob.last_error_kind] = None
                values[EnhancementJob.last_error_message] = None
            else:
                values[EnhancementJob.last_error_kind] = error_kind.value if error_kind else None
                values[EnhancementJob.last_error_message] = truncate_message(error_message)
            if is_terminal(status):
                values[EnhancementJob.completed_at] = now

            updated = (
                session.query(EnhancementJob)
                .filter(
                    EnhancementJob.id == job_id,
                    EnhancementJob.status == JobStatus.PROCESSING,
                    EnhancementJob.attempts == expected_attempts,
                )
                .update(values, synchronize_session=False)
            )
        return updated == 1

    def recover_orphans(self, grace_seconds: float, max_attempts: int) -> OrphanRecovery:
        """
        Re-arm PROCESSING records whose updated_at is older than the grace period.

        The target status comes from the ORPHANED row of the transition
        table, resolved once for records with attempts left and once for
        records that used their final attempt. Each statement is guarded per
        row on status, age and attempts, so a worker finalizing concurrently
        wins or loses cleanly.

        Args:
            grace_seconds: Age after which a claim is considered abandoned
            max_attempts: Configured attempt bound

        Returns:
            OrphanRecovery with the number of records re-queued and failed
        """
        now = as_utc(self._clock())
        cutoff = now - timedelta(seconds=grace_seconds)

        # attempts column filter -> attempts value fed to the table
        groups = (
            (EnhancementJob.attempts < max_attempts, max_attempts - 1),
            (EnhancementJob.attempts >= max_attempts, max_attempts),
        )
        recovery = OrphanRecovery()

        with self._transaction("recover_orphans") as session:
            for attempts_filter, attempts in groups:
                target = next_status(
                    JobStatus.PROCESSING, TransitionOutcome.ORPHANED, attempts, max_attempts
                )
                values = {
                    EnhancementJob.status: target,
                    EnhancementJob.last_error_kind: ErrorKind.TIMEOUT.value,
                    EnhancementJob.updated_at: now,
                }
                if is_terminal(target):
                    values[EnhancementJob.last_error_message] = ORPHAN_EXHAUSTED_MESSAGE
                    values[EnhancementJob.completed_at] = now
                else:
                    values[EnhancementJob.last_error_message] = ORPHAN_MESSAGE

                count = (
                    session.query(EnhancementJob)
                    .filter(
                        EnhancementJob.status == JobStatus.PROCESSING,
                        EnhancementJob.updated_at < cutoff,
                        attempts_filter,
                    )
                    .update(values, synchronize_session=False)
                )
                if target == JobStatus.FAILED:
                    recovery.failed += count
                else:
                    recovery.requeued += count

        if recovery.total:
            logger.warning(
                "job.orphans_rearmed",
                extra={
                    "requeued": recovery.requeued,
                    "failed": recovery.failed,
                    "grace_seconds": grace_seconds,
                },
            )
        return recovery
