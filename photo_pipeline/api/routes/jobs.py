"""
Job API routes: enqueue an image and query its status.

Authentication of the owner is handled upstream; these routes trust the
ownerId they are given.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from photo_pipeline.api.dependencies.pipeline import get_job_store
from photo_pipeline.api.schemas.jobs import (
    EnqueueJobRequest,
    EnqueueJobResponse,
    JobStatusResponse,
)
from photo_pipeline.repositories.enhancement_jobs import (
    EnhancementJobStore,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Job store unavailable",
    )


@router.post(
    "",
    response_model=EnqueueJobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enqueue_job(
    body: EnqueueJobRequest,
    store: EnhancementJobStore = Depends(get_job_store),
):
    """Create a PENDING job for one image."""
    options = body.options.model_dump() if body.options else None
    try:
        job = store.create(body.owner_id, body.input_handle, options=options)
    except StoreUnavailableError:
        raise _store_unavailable()

    return EnqueueJobResponse(id=job.id, status=job.status)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    store: EnhancementJobStore = Depends(get_job_store),
):
    """Latest persisted state of a job."""
    try:
        job = store.get(job_id)
    except StoreUnavailableError:
        raise _store_unavailable()

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )

    return JobStatusResponse.from_job(job)
