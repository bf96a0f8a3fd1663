"""
API Dependencies module.

Provides shared FastAPI dependencies for route handlers.
"""

from photo_pipeline.api.dependencies.pipeline import (
    get_enhancement_provider,
    get_job_store,
    get_pipeline_config,
    require_cron_secret,
)

__all__ = [
    "get_enhancement_provider",
    "get_job_store",
    "get_pipeline_config",
    "require_cron_secret",
]
