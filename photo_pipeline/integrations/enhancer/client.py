"""
Enhancement provider API client.

This client handles:
- Image enhancement requests (URL in, URL out)
- Mapping of provider HTTP statuses onto typed exceptions

SECURITY:
- API key must be stored securely and never logged
- Image URLs are logged only by job id, never in full
"""

import logging
import os
import time
from typing import Optional, Dict, Any

import httpx

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
    EnhanceResponse,
    EnhancementOptions,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_BASE_URL = "https://api.enhancer.example/"
DEFAULT_TIMEOUT_SECONDS = 40.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

INVALID_INPUT_STATUSES = (400, 413, 415, 422)
QUOTA_ERROR_CODE = "quota_exceeded"


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class EnhancerClient:
    """
    Async client for the enhancement provider API.

    SECURITY: API key must be stored securely and never logged.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize enhancement client.

        Args:
            api_key: Provider API key (default: from ENHANCER_API_KEY env)
            base_url: API base URL (default: from ENHANCER_BASE_URL env)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (
            base_url or os.getenv("ENHANCER_BASE_URL") or DEFAULT_BASE_URL
        ).rstrip("/")
        self.api_key = api_key or os.getenv("ENHANCER_API_KEY")

        if not self.api_key:
            raise ValueError(
                "Enhancer API key is required. Set ENHANCER_API_KEY environment variable "
                "or pass api_key parameter."
            )

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "EnhancerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request to the provider API.

        Raises:
            EnhancerError: On API errors
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        try:
            response = await self._client.request(method=method, url=url, json=json)
        except httpx.TimeoutException as e:
            logger.warning(
                "Enhancer API timeout",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise EnhancerTimeoutError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            logger.warning(
                "Enhancer API connection error",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise EnhancerConnectionError(f"Connection error: {e}") from e

        status_code = response.status_code
        if status_code < 400:
            return _json_body(response)

        body = _json_body(response)
        error = body.get("error") if isinstance(body.get("error"), dict) else {}
        error_code = error.get("code") or body.get("code") or ""
        error_message = error.get("message") or body.get("message") or ""

        if status_code in (401, 403):
            logger.error(
                "Enhancer API authentication failed",
                extra={"status_code": status_code, "endpoint": endpoint},
            )
            raise EnhancerAuthenticationError(status_code=status_code, response=body)

        if status_code == 402 or (status_code == 429 and error_code == QUOTA_ERROR_CODE):
            logger.error(
                "Enhancer API quota exhausted",
                extra={"status_code": status_code, "endpoint": endpoint},
            )
            raise EnhancerQuotaExceededError(
                message=error_message or "Enhancement quota exhausted",
                status_code=status_code,
                code=error_code or QUOTA_ERROR_CODE,
                response=body,
            )

        if status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(
                "Enhancer API rate limited",
                extra={"endpoint": endpoint, "retry_after": retry_after},
            )
            raise EnhancerRateLimitError(retry_after=retry_after, code=error_code, response=body)

        if status_code in INVALID_INPUT_STATUSES:
            raise EnhancerInvalidInputError(
                message=error_message or f"Image rejected by provider ({status_code})",
                status_code=status_code,
                code=error_code,
                response=body,
            )

        if status_code >= 500:
            logger.warning(
                "Enhancer API unavailable",
                extra={"status_code": status_code, "endpoint": endpoint},
            )
            raise EnhancerUnavailableError(
                message=f"Enhancer API error: {status_code} - {error_message}".rstrip(" -"),
                status_code=status_code,
                code=error_code,
                response=body,
            )

        logger.error(
            "Enhancer API error",
            extra={
                "status_code": status_code,
                "endpoint": endpoint,
                "error_code": error_code,
                "response": str(body)[:500],
            },
        )
        raise EnhancerError(
            message=f"Enhancer API error: {status_code} - {error_message}",
            status_code=status_code,
            code=error_code,
            response=body,
        )

    async def enhance(
        self,
        image_url: str,
        options: EnhancementOptions,
    ) -> EnhanceResponse:
        """
        Enhance one image.

        Args:
            image_url: URL of the original image
            options: Enhancement settings

        Returns:
            EnhanceResponse with the enhanced image URL

        Raises:
            EnhancerError: On API errors or a response without output_url
        """
        start_time = time.time()

        data = await self._request("POST", "/v1/enhance", json=options.to_request(image_url))

        latency_ms = int((time.time() - start_time) * 1000)
        response = EnhanceResponse.from_dict(data)

        if not response.output_url:
            raise EnhancerError(
                message="Enhancer response did not include an output_url",
                status_code=200,
                response=data,
            )

        logger.info(
            "Enhancer request successful",
            extra={
                "request_id": response.request_id,
                "provider_processing_ms": response.processing_ms,
                "quality": options.quality,
                "style": options.style,
                "upscale": options.upscale,
                "latency_ms": latency_ms,
            },
        )
        return response


def get_enhancer_client(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> EnhancerClient:
    """
    Factory function to create an EnhancerClient.

    Args:
        api_key: Override API key
        base_url: Override API base URL

    Returns:
        Configured EnhancerClient instance
    """
    return EnhancerClient(
        api_key=api_key,
        base_url=base_url,
    )
