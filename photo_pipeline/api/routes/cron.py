"""
Cron API routes for driving the enhancement pipeline.

SECURITY: Every route requires Authorization: Bearer <CRON_SECRET>. The
check is a router-level dependency, so it runs before the store or the
provider are touched.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from photo_pipeline.api.dependencies.pipeline import (
    get_enhancement_provider,
    get_job_store,
    get_pipeline_config,
    require_cron_secret,
)
from photo_pipeline.api.schemas.jobs import ProcessJobsResponse, StuckJobsResponse
from photo_pipeline.config.pipeline import PipelineConfig
from photo_pipeline.integrations.enhancer.adapter import EnhancementProvider
from photo_pipeline.jobs.dispatcher import EnhancementDispatcher
from photo_pipeline.repositories.enhancement_jobs import (
    EnhancementJobStore,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


@router.api_route(
    "/process-jobs",
    methods=["GET", "POST"],
    response_model=ProcessJobsResponse,
)
async def process_jobs(
    store: EnhancementJobStore = Depends(get_job_store),
    provider: EnhancementProvider = Depends(get_enhancement_provider),
    config: PipelineConfig = Depends(get_pipeline_config),
):
    """
    Run one dispatcher invocation.

    Re-arms orphaned claims, then processes at most batch_size of the
    oldest PENDING jobs. Returns 503 if the store is unreachable before
    any job was touched.
    """
    dispatcher = EnhancementDispatcher(store, provider, config)
    try:
        summary = await dispatcher.run()
    except StoreUnavailableError:
        logger.error(
            "dispatcher.store_unavailable",
            extra={"run_id": dispatcher.run_id},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable",
        )

    return ProcessJobsResponse.model_validate(summary.to_dict())


@router.get("/stuck-jobs", response_model=StuckJobsResponse)
async def stuck_jobs(
    store: EnhancementJobStore = Depends(get_job_store),
    config: PipelineConfig = Depends(get_pipeline_config),
):
    """List PROCESSING jobs past the orphan grace period without modifying them."""
    grace_seconds = config.orphan_grace_seconds
    try:
        jobs = store.list_orphans(grace_seconds)
    except StoreUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable",
        )

    if jobs:
        logger.warning(
            "Stuck enhancement jobs found",
            extra={"count": len(jobs), "grace_seconds": grace_seconds},
        )

    return StuckJobsResponse(
        count=len(jobs),
        job_ids=[job.id for job in jobs],
        grace_seconds=grace_seconds,
    )
