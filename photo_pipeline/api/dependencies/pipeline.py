"""
Pipeline dependencies.

Provides the FastAPI dependencies shared by the cron and job routes:
configuration, the job store, the provider adapter and the cron secret
check. Tests replace them with app.dependency_overrides.
"""

import hmac
import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status

from photo_pipeline.config.pipeline import (
    PipelineConfig,
    PipelineConfigError,
    load_pipeline_config,
)
from photo_pipeline.database.session import get_session_factory
from photo_pipeline.integrations.enhancer.adapter import (
    EnhancementAdapter,
    get_enhancement_adapter,
)
from photo_pipeline.repositories.enhancement_jobs import EnhancementJobStore

logger = logging.getLogger(__name__)


def get_pipeline_config() -> PipelineConfig:
    """Effective pipeline configuration; 503 if it is invalid."""
    try:
        return load_pipeline_config()
    except PipelineConfigError as e:
        logger.error("Invalid pipeline configuration", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline not configured",
        )


def get_job_store() -> EnhancementJobStore:
    """Job store bound to the shared session factory; 503 without a database."""
    try:
        session_factory = get_session_factory()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured",
        )
    return EnhancementJobStore(session_factory)


async def get_enhancement_provider() -> AsyncGenerator[EnhancementAdapter, None]:
    """Provider adapter for one request; the HTTP client is closed afterwards."""
    try:
        adapter = get_enhancement_adapter()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enhancement provider not configured",
        )
    try:
        yield adapter
    finally:
        await adapter.close()


def require_cron_secret(
    request: Request,
    config: PipelineConfig = Depends(get_pipeline_config),
) -> None:
    """
    Verify the Authorization: Bearer <CRON_SECRET> header.

    Fails closed: without a configured secret every call is rejected.

    Raises:
        HTTPException: 503 if no secret is configured, 401 on a bad credential
    """
    if not config.cron_secret:
        logger.error("Cron trigger rejected - CRON_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )

    provided = request.headers.get("Authorization", "")
    expected = f"Bearer {config.cron_secret}"
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(
            "Cron trigger rejected - invalid credential",
            extra={"path": request.url.path, "has_header": bool(provided)},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
