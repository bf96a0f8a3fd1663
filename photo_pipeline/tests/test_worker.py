"""
Tests for the enhancement worker.

Validates:
- Success finalizes to COMPLETED with the output handle
- Retryable failures re-queue until the attempt bound, then fail
- Permanent failures and validation errors fail immediately
- Deadline expiry is classified as timeout
- Lost claims and finalize conflicts are skipped without writes
- Store failures never mark a job FAILED
"""

from dataclasses import replace
from unittest.mock import AsyncMock, patch

import pytest

from photo_pipeline.integrations.enhancer.models import EnhancementResult
from photo_pipeline.jobs.models import JobStatus
from photo_pipeline.jobs.retry import ErrorKind
from photo_pipeline.jobs.worker import (
    EnhancementWorker,
    WorkerOutcome,
    validate_input_handle,
)
from photo_pipeline.repositories.enhancement_jobs import StoreUnavailableError
from photo_pipeline.tests.fakes import rate_limited


@pytest.fixture
def worker(store, provider, pipeline_config):
    return EnhancementWorker(store, provider, pipeline_config, run_id="run-test")


class TestValidateInputHandle:
    @pytest.mark.parametrize("handle", ["", "   ", None, "not a url", "https://", "://host/a.jpg"])
    def test_rejected(self, handle):
        assert validate_input_handle(handle) is not None

    @pytest.mark.parametrize("handle", [
        "https://cdn.example.com/a.jpg",
        "http://localhost:9000/b.png",
        "s3://bucket/in/a.jpg",
        "blob://store/in/J1",
        "in://J1",
    ])
    def test_accepted(self, handle):
        assert validate_input_handle(handle) is None


class TestSuccess:
    @pytest.mark.asyncio
    async def test_completes_job(self, worker, store, provider, image_url):
        job = store.create("owner-1", image_url())

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.SUCCEEDED
        assert result.claimed is True
        assert result.attempts == 1
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.COMPLETED
        assert persisted.output_handle == job.input_handle.replace("/in/", "/out/")
        assert provider.calls == [job.input_handle]

    @pytest.mark.asyncio
    async def test_options_passed_to_provider(self, store, pipeline_config, image_url):
        provider = AsyncMock()
        provider.enhance.return_value = EnhancementResult.success("https://cdn.example.com/out/z.jpg")
        worker = EnhancementWorker(store, provider, pipeline_config)
        job = store.create("owner-1", image_url(), options={"quality": "ultra", "style": "portrait", "upscale": 4})

        await worker.process(job)

        handle, options = provider.enhance.await_args.args
        assert handle == job.input_handle
        assert (options.quality, options.style, options.upscale) == ("ultra", "portrait", 4)

    @pytest.mark.asyncio
    async def test_success_without_output_is_not_completion(self, worker, store, provider, image_url):
        handle = image_url()
        provider.script(handle, EnhancementResult(output_handle=""))
        job = store.create("owner-1", handle)

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.REQUEUED
        assert result.error_kind == ErrorKind.UNKNOWN
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.PENDING
        assert persisted.output_handle is None


    @pytest.mark.asyncio
    @pytest.mark.parametrize("handle", ["s3://bucket/in/J2.jpg", "in://J2", "blob://store/in/J2"])
    async def test_non_http_handle_reaches_provider(self, worker, store, provider, handle):
        job = store.create("owner-1", handle)

        result = await worker.process(job)

        assert provider.calls == [handle]
        assert result.outcome == WorkerOutcome.SUCCEEDED
        assert store.get(job.id).status == JobStatus.COMPLETED


class TestFailures:
    @pytest.mark.asyncio
    async def test_retryable_failure_requeues(self, worker, store, provider, image_url):
        handle = image_url()
        provider.script(handle, rate_limited())
        job = store.create("owner-1", handle)

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.REQUEUED
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.PENDING
        assert persisted.attempts == 1
        assert persisted.last_error_kind == "rate_limited"

    @pytest.mark.asyncio
    async def test_retryable_failure_on_last_attempt_fails(self, worker, store, provider, image_url):
        handle = image_url()
        provider.script(handle, rate_limited(), rate_limited(), rate_limited())
        job = store.create("owner-1", handle)

        outcomes = [(await worker.process(job)).outcome for _ in range(3)]

        assert outcomes == [WorkerOutcome.REQUEUED, WorkerOutcome.REQUEUED, WorkerOutcome.FAILED]
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.FAILED
        assert persisted.attempts == 3

    @pytest.mark.asyncio
    async def test_permanent_failure_fails_immediately(self, worker, store, provider, image_url):
        handle = image_url()
        provider.script(handle, EnhancementResult.failure(ErrorKind.QUOTA_EXHAUSTED, "quota"))
        job = store.create("owner-1", handle)

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.FAILED
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.FAILED
        assert persisted.attempts == 1
        assert persisted.last_error_kind == "quota_exhausted"

    @pytest.mark.asyncio
    async def test_empty_handle_fails_validation_without_provider_call(self, worker, store, provider):
        job = store.create("owner-1", "")

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.FAILED
        assert result.error_kind == ErrorKind.VALIDATION
        assert provider.calls == []
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.FAILED
        assert persisted.attempts == 1
        assert persisted.last_error_kind == "validation"

    @pytest.mark.asyncio
    async def test_invalid_stored_options_fail_validation(self, worker, store, provider, image_url):
        job = store.create("owner-1", image_url(), options={"upscale": 3})

        result = await worker.process(job)

        assert result.error_kind == ErrorKind.VALIDATION
        assert provider.calls == []
        assert store.get(job.id).status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_deadline_expiry_is_timeout(self, worker, store, provider, image_url):
        handle = image_url()
        provider.script(handle, "hang")
        job = store.create("owner-1", handle)

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.REQUEUED
        assert result.error_kind == ErrorKind.TIMEOUT
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.PENDING
        assert persisted.last_error_kind == "timeout"

    @pytest.mark.asyncio
    async def test_provider_exception_is_unknown(self, worker, store, provider, image_url):
        handle = image_url()
        provider.script(handle, RuntimeError("provider bug"))
        job = store.create("owner-1", handle)

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.REQUEUED
        assert result.error_kind == ErrorKind.UNKNOWN
        assert store.get(job.id).last_error_message == "provider bug"

    @pytest.mark.asyncio
    async def test_unfetchable_handle_is_invalid_input(self, worker, store, provider):
        handle = "s3://private-bucket/in/a.jpg"
        provider.script(handle, EnhancementResult.failure(ErrorKind.INVALID_INPUT, "HTTP 400 from provider"))
        job = store.create("owner-1", handle)

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.FAILED
        assert result.error_kind == ErrorKind.INVALID_INPUT
        assert store.get(job.id).last_error_kind == "invalid_input"


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_lost_claim_is_skipped(self, worker, store, provider, image_url, pipeline_config):
        job = store.create("owner-1", image_url())
        store.claim(job.id, pipeline_config.max_attempts)

        result = await worker.process(job)

        assert result.outcome == WorkerOutcome.SKIPPED
        assert result.claimed is False
        assert provider.calls == []
        assert store.get(job.id).attempts == 1

    @pytest.mark.asyncio
    async def test_finalize_conflict_is_skipped(self, worker, store, provider, image_url):
        job = store.create("owner-1", image_url())

        with patch.object(store, "finalize", return_value=False) as finalize:
            result = await worker.process(job)

        finalize.assert_called_once()
        assert result.outcome == WorkerOutcome.SKIPPED
        assert result.claimed is True



class TestAttemptBound:
    @pytest.mark.asyncio
    async def test_pending_job_past_bound_reported_failed(self, store, provider, pipeline_config, image_url):
        handle = image_url()
        provider.script(handle, rate_limited())
        job = store.create("owner-1", handle)
        await EnhancementWorker(store, provider, pipeline_config).process(job)
        lowered = replace(pipeline_config, max_attempts=1)

        result = await EnhancementWorker(store, provider, lowered).process(job)

        assert result.outcome == WorkerOutcome.FAILED
        assert result.claimed is False
        assert result.attempts == 1
        assert result.error_kind == ErrorKind.RATE_LIMITED
        assert provider.calls == [handle]
        assert store.get(job.id).status == JobStatus.FAILED


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_claim_store_error(self, worker, store, provider, image_url):
        job = store.create("owner-1", image_url())

        with patch.object(store, "claim", side_effect=StoreUnavailableError("down", "claim")):
            result = await worker.process(job)

        assert result.outcome == WorkerOutcome.STORE_ERROR
        assert provider.calls == []
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.PENDING
        assert persisted.attempts == 0

    @pytest.mark.asyncio
    async def test_finalize_store_error_leaves_job_processing(self, worker, store, provider, image_url):
        handle = image_url()
        provider.script(handle, EnhancementResult.failure(ErrorKind.INVALID_INPUT, "bad image"))
        job = store.create("owner-1", handle)

        with patch.object(store, "finalize", side_effect=StoreUnavailableError("down", "finalize")):
            result = await worker.process(job)

        assert result.outcome == WorkerOutcome.STORE_ERROR
        assert result.claimed is True
        persisted = store.get(job.id)
        assert persisted.status == JobStatus.PROCESSING
        assert persisted.status != JobStatus.FAILED
