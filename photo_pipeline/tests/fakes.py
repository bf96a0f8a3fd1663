"""
Test doubles for the enhancement pipeline.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

from photo_pipeline.integrations.enhancer.models import (
    EnhancementOptions,
    EnhancementResult,
)
from photo_pipeline.jobs.retry import ErrorKind

TEST_CRON_SECRET = "test-cron-secret"


class FrozenClock:
    """Manually advanced UTC clock for the job store."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


Outcome = Union[EnhancementResult, Exception, str]


class FakeEnhancementProvider:
    """
    Scriptable provider.

    Each call pops the next scripted outcome for the input handle (or the
    default script). An outcome is an EnhancementResult to return, an
    exception to raise, or the string "hang" to sleep past any deadline.
    With nothing scripted the call succeeds with /in/ replaced by /out/.
    """

    def __init__(self, default: Optional[List[Outcome]] = None):
        self.default: List[Outcome] = list(default or [])
        self.scripts: Dict[str, List[Outcome]] = {}
        self.calls: List[str] = []
        self.closed = False

    def script(self, input_handle: str, *outcomes: Outcome) -> None:
        self.scripts[input_handle] = list(outcomes)

    async def close(self) -> None:
        self.closed = True

    def calls_for(self, input_handle: str) -> int:
        return self.calls.count(input_handle)

    async def enhance(
        self,
        input_handle: str,
        options: EnhancementOptions,
    ) -> EnhancementResult:
        self.calls.append(input_handle)
        script = self.scripts.get(input_handle, self.default)
        outcome = script.pop(0) if script else EnhancementResult.success(
            input_handle.replace("/in/", "/out/")
        )
        await asyncio.sleep(0)

        if isinstance(outcome, str) and outcome == "hang":
            await asyncio.sleep(60)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def rate_limited() -> EnhancementResult:
    return EnhancementResult.failure(ErrorKind.RATE_LIMITED, "Rate limit exceeded", retry_after=30)
