"""
Dispatcher for enhancement jobs.

Handles one time-triggered invocation:
- Orphan recovery (stale PROCESSING claims back to PENDING or FAILED)
- Oldest-first selection of at most batch_size PENDING jobs
- Concurrent dispatch of one worker per selected job

The dispatcher keeps no state between invocations. Overlapping invocations
are expected; they are coordinated only through the store's conditional
updates.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from photo_pipeline.config.pipeline import PipelineConfig
from photo_pipeline.integrations.enhancer.adapter import EnhancementProvider
from photo_pipeline.jobs.models import EnhancementJob
from photo_pipeline.jobs.worker import EnhancementWorker, WorkerOutcome, WorkerResult
from photo_pipeline.repositories.enhancement_jobs import (
    EnhancementJobStore,
    OrphanRecovery,
)

logger = logging.getLogger(__name__)


@dataclass
class DispatchSummary:
    """
    Counts for one dispatcher invocation.

    Attributes:
        run_id: Invocation identifier
        claimed: Jobs this invocation claimed
        succeeded: Jobs finalized to COMPLETED
        requeued: Jobs returned to PENDING after a retryable failure
        failed: Jobs finalized to FAILED
        skipped: Jobs lost to a concurrent invocation
        recovered: Orphaned claims re-armed before the scan
        errors: Workers that ended with a store failure or an unexpected exception
        duration_seconds: Wall-clock time of the invocation
    """
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    claimed: int = 0
    succeeded: int = 0
    requeued: int = 0
    failed: int = 0
    skipped: int = 0
    recovered: int = 0
    errors: int = 0
    duration_seconds: float = 0.0

    def record(self, result: WorkerResult) -> None:
        if result.claimed:
            self.claimed += 1
        if result.outcome == WorkerOutcome.SUCCEEDED:
            self.succeeded += 1
        elif result.outcome == WorkerOutcome.REQUEUED:
            self.requeued += 1
        elif result.outcome == WorkerOutcome.FAILED:
            self.failed += 1
        elif result.outcome == WorkerOutcome.SKIPPED:
            self.skipped += 1
        elif result.outcome == WorkerOutcome.STORE_ERROR:
            self.errors += 1

    def merge(self, other: "DispatchSummary") -> None:
        self.claimed += other.claimed
        self.succeeded += other.succeeded
        self.requeued += other.requeued
        self.failed += other.failed
        self.skipped += other.skipped
        self.recovered += other.recovered
        self.errors += other.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claimed": self.claimed,
            "succeeded": self.succeeded,
            "requeued": self.requeued,
            "failed": self.failed,
            "skipped": self.skipped,
            "recovered": self.recovered,
            "errors": self.errors,
            "runId": self.run_id,
            "durationSeconds": round(self.duration_seconds, 3),
        }


class EnhancementDispatcher:
    """
    Poller/dispatcher invoked once per trigger.

    The three steps are exposed separately so that interleavings of
    concurrent invocations can be driven step by step.
    """

    def __init__(
        self,
        store: EnhancementJobStore,
        provider: EnhancementProvider,
        config: PipelineConfig,
        run_id: Optional[str] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            store: Job record store
            provider: Enhancement provider adapter
            config: Pipeline configuration
            run_id: Invocation id (generated if omitted)
        """
        self.store = store
        self.config = config
        self.run_id = run_id or str(uuid.uuid4())
        self.worker = EnhancementWorker(store, provider, config, run_id=self.run_id)

    def recover_orphans(self) -> OrphanRecovery:
        """Re-arm stale PROCESSING claims. Raises StoreUnavailableError."""
        return self.store.recover_orphans(
            grace_seconds=self.config.orphan_grace_seconds,
            max_attempts=self.config.max_attempts,
        )

    def select_batch(self) -> List[EnhancementJob]:
        """Oldest PENDING jobs, at most batch_size. Raises StoreUnavailableError."""
        return self.store.list_pending(limit=self.config.batch_size)

    async def process_batch(self, jobs: List[EnhancementJob]) -> DispatchSummary:
        """
        Run one worker per job concurrently.

        A worker that raises is logged and counted as an error; it never
        aborts the rest of the batch.
        """
        summary = DispatchSummary(run_id=self.run_id)
        if not jobs:
            return summary

        results = await asyncio.gather(
            *(self.worker.process(job) for job in jobs),
            return_exceptions=True,
        )

        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error(
                    "job.worker_crashed",
                    extra={"run_id": self.run_id, "job_id": job.id},
                    exc_info=result,
                )
                summary.errors += 1
                continue
            summary.record(result)

        return summary

    async def run(self) -> DispatchSummary:
        """
        Execute one invocation: recover, select, process.

        Returns:
            DispatchSummary for the invocation

        Raises:
            StoreUnavailableError: If recovery or the scan cannot reach the store
        """
        started = time.monotonic()
        summary = DispatchSummary(run_id=self.run_id)

        recovery = self.recover_orphans()
        summary.recovered = recovery.total

        jobs = self.select_batch()
        summary.merge(await self.process_batch(jobs))

        summary.duration_seconds = time.monotonic() - started

        logger.info(
            "dispatcher.cycle_completed",
            extra={
                "run_id": self.run_id,
                "selected": len(jobs),
                "claimed": summary.claimed,
                "succeeded": summary.succeeded,
                "requeued": summary.requeued,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "recovered": summary.recovered,
                "errors": summary.errors,
                "duration_seconds": round(summary.duration_seconds, 3),
            },
        )
        return summary
