"""
FastAPI application entry point for the photo enhancement pipeline.

Routes:
- /health: liveness (no authentication)
- /api/cron/*: dispatcher trigger and orphan inspection (CRON_SECRET)
- /api/jobs: enqueue and status query

Run locally:
    uvicorn photo_pipeline.main:app --reload
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from photo_pipeline.api.routes import cron, health, jobs
from photo_pipeline.database.session import get_engine, reset_engine
from photo_pipeline.db_base import Base

# Configure structured logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting photo enhancement pipeline API")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error(
            "DATABASE_URL is not set. Job endpoints will return 503."
        )
        app.state.database_configured = False
    else:
        # Mask credentials for safe logging
        masked = database_url.split("@")[-1] if "@" in database_url else "(no @ found - URL may be malformed)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})
        Base.metadata.create_all(bind=get_engine())
        app.state.database_configured = True

    if not os.getenv("CRON_SECRET"):
        logger.warning("CRON_SECRET is not set. The cron trigger will return 503.")

    yield

    reset_engine()
    logger.info("Shutting down photo enhancement pipeline API")


app = FastAPI(
    title="Photo Enhancement Pipeline API",
    description="Asynchronous AI image enhancement jobs",
    version="0.1.0",
    lifespan=lifespan
)

# Include health route (bypasses authentication)
app.include_router(health.router)

# Include cron routes (requires CRON_SECRET)
app.include_router(cron.router)

# Include job routes
app.include_router(jobs.router)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "photo_pipeline.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
