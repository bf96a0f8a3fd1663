"""
Enhancement job schemas for the jobs and cron APIs.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from photo_pipeline.integrations.enhancer.models import EnhancementOptions
from photo_pipeline.jobs.models import EnhancementJob, JobStatus
from photo_pipeline.jobs.retry import user_message
from photo_pipeline.models.base import as_utc


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Request Models
# =============================================================================

class EnqueueJobRequest(CamelModel):
    """Submit one image for enhancement."""

    owner_id: str = Field(..., min_length=1, max_length=255)
    # Stored as given; a bad handle fails the job with a validation error
    input_handle: str = ""
    options: Optional[EnhancementOptions] = None


# =============================================================================
# Response Models
# =============================================================================

class EnqueueJobResponse(CamelModel):
    id: str
    status: JobStatus


class JobStatusResponse(CamelModel):
    """Latest persisted state of a job, as seen by its owner."""

    id: str
    status: JobStatus
    output_handle: Optional[str] = None
    attempts: int
    error: Optional[str] = None
    is_complete: bool
    processing_seconds: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: EnhancementJob) -> "JobStatusResponse":
        created_at = as_utc(job.created_at)
        completed_at = as_utc(job.completed_at)
        processing_seconds = None
        if completed_at is not None:
            processing_seconds = round((completed_at - created_at).total_seconds(), 3)

        return cls(
            id=job.id,
            status=job.status,
            output_handle=job.output_handle if job.status == JobStatus.COMPLETED else None,
            attempts=job.attempts,
            error=user_message(job.last_error_kind) if job.status == JobStatus.FAILED else None,
            is_complete=job.status == JobStatus.COMPLETED,
            processing_seconds=processing_seconds,
            created_at=created_at,
            updated_at=as_utc(job.updated_at),
        )


class ProcessJobsResponse(CamelModel):
    """Summary of one dispatcher invocation."""

    claimed: int
    succeeded: int
    requeued: int
    failed: int
    skipped: int
    recovered: int
    errors: int
    run_id: str
    duration_seconds: float


class StuckJobsResponse(CamelModel):
    """PROCESSING jobs past the orphan grace period."""

    count: int
    job_ids: List[str]
    grace_seconds: float
