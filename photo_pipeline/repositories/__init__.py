"""Repositories for pipeline persistence."""

from photo_pipeline.repositories.enhancement_jobs import (
    EnhancementJobStore,
    OrphanRecovery,
    StoreUnavailableError,
)

__all__ = [
    "EnhancementJobStore",
    "OrphanRecovery",
    "StoreUnavailableError",
]
