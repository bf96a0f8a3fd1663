"""
Enhancement provider adapter for the job pipeline.

Wraps the raw EnhancerClient with error classification so the worker only
ever sees an EnhancementResult tagged with an ErrorKind. The adapter never
raises for provider failures.
"""

import logging
from typing import Optional, Protocol, Tuple

from photo_pipeline.integrations.enhancer.client import EnhancerClient, get_enhancer_client
from photo_pipeline.integrations.enhancer.exceptions import (
    EnhancerError,
    EnhancerAuthenticationError,
    EnhancerQuotaExceededError,
    EnhancerRateLimitError,
    EnhancerInvalidInputError,
    EnhancerUnavailableError,
    EnhancerConnectionError,
    EnhancerTimeoutError,
)
from photo_pipeline.integrations.enhancer.models import (
    EnhancementOptions,
    EnhancementResult,
)
from photo_pipeline.jobs.retry import ErrorKind

logger = logging.getLogger(__name__)


class EnhancementProvider(Protocol):
    """Anything that can enhance an image handle into a result."""

    async def enhance(
        self,
        input_handle: str,
        options: EnhancementOptions,
    ) -> EnhancementResult:
        ...


class EnhancementAdapter:
    """
    Provider adapter used by the enhancement worker.

    Responsibilities:
    - Invoke the provider with the input handle and options
    - Normalize every failure into a closed ErrorKind set
    """

    def __init__(self, client: EnhancerClient):
        self._client = client

    async def close(self) -> None:
        await self._client.close()

    def _classify_error(self, error: Exception) -> Tuple[ErrorKind, Optional[int]]:
        """
        Classify an exception for retry decisions.

        Returns:
            Tuple of (ErrorKind, retry_after_seconds)
        """
        if isinstance(error, EnhancerTimeoutError):
            return ErrorKind.TIMEOUT, None

        if isinstance(error, EnhancerQuotaExceededError):
            return ErrorKind.QUOTA_EXHAUSTED, None

        if isinstance(error, EnhancerAuthenticationError):
            # Caller is not permitted to use the provider; retrying cannot help
            return ErrorKind.QUOTA_EXHAUSTED, None

        if isinstance(error, EnhancerRateLimitError):
            return ErrorKind.RATE_LIMITED, error.retry_after

        if isinstance(error, EnhancerInvalidInputError):
            return ErrorKind.INVALID_INPUT, None

        if isinstance(error, (EnhancerUnavailableError, EnhancerConnectionError)):
            return ErrorKind.TRANSIENT_UNAVAILABLE, None

        if isinstance(error, EnhancerError):
            status = error.status_code
            if status and 500 <= status < 600:
                return ErrorKind.TRANSIENT_UNAVAILABLE, None
            if status and 400 <= status < 500:
                return ErrorKind.INVALID_INPUT, None

        return ErrorKind.UNKNOWN, None

    async def enhance(
        self,
        input_handle: str,
        options: EnhancementOptions,
    ) -> EnhancementResult:
        """
        Enhance one image.

        Args:
            input_handle: URL of the original image
            options: Enhancement settings

        Returns:
            EnhancementResult with either output_handle or error_kind set
        """
        try:
            response = await self._client.enhance(input_handle, options)
        except Exception as e:
            kind, retry_after = self._classify_error(e)
            logger.warning(
                "Enhancement request failed",
                extra={
                    "error": str(e),
                    "error_kind": kind.value,
                    "request_id": e.request_id if isinstance(e, EnhancerError) else None,
                    "retry_after": retry_after,
                },
            )
            return EnhancementResult.failure(kind, str(e), retry_after=retry_after)

        return EnhancementResult.success(response.output_url)


def get_enhancement_adapter(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> EnhancementAdapter:
    """Build an adapter around a client configured from the environment."""
    return EnhancementAdapter(get_enhancer_client(api_key=api_key, base_url=base_url))
