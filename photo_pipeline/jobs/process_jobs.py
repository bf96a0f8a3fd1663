"""
Enhancement job processor.

Runs exactly one dispatcher invocation and exits, for schedulers that run
a command instead of calling the HTTP trigger:
    python -m photo_pipeline.jobs.process_jobs

Configuration:
- DATABASE_URL: Job store database
- ENHANCER_API_KEY / ENHANCER_BASE_URL: Enhancement provider
- PIPELINE_BATCH_SIZE, PIPELINE_MAX_ATTEMPTS, PIPELINE_JOB_DEADLINE_SECONDS,
  PIPELINE_INVOCATION_BUDGET_SECONDS, PIPELINE_CONFIG_PATH: see config.pipeline

Exits with status 1 if the invocation could not run (bad configuration,
store unreachable). Individual job failures do not affect the exit status.
"""

import os
import sys
import json
import logging
import asyncio

from photo_pipeline.config.pipeline import PipelineConfigError, load_pipeline_config
from photo_pipeline.database.session import get_session_factory
from photo_pipeline.integrations.enhancer.adapter import get_enhancement_adapter
from photo_pipeline.jobs.dispatcher import EnhancementDispatcher
from photo_pipeline.repositories.enhancement_jobs import (
    EnhancementJobStore,
    StoreUnavailableError,
)

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main() -> int:
    """Run one invocation; returns the process exit status."""
    try:
        config = load_pipeline_config()
        store = EnhancementJobStore(get_session_factory())
        adapter = get_enhancement_adapter()
    except (PipelineConfigError, ValueError) as e:
        logger.error("Enhancement job processor not configured", extra={"error": str(e)})
        return 1

    dispatcher = EnhancementDispatcher(store, adapter, config)
    try:
        summary = await dispatcher.run()
    except StoreUnavailableError:
        logger.error(
            "Enhancement job processor failed - store unavailable",
            extra={"run_id": dispatcher.run_id},
            exc_info=True,
        )
        return 1
    finally:
        await adapter.close()

    print(json.dumps(summary.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
