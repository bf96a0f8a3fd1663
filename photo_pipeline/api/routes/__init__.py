# API routes
from photo_pipeline.api.routes import health
from photo_pipeline.api.routes import cron
from photo_pipeline.api.routes import jobs

__all__ = ["health", "cron", "jobs"]
