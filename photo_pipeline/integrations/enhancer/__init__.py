"""
Enhancement provider integration.

Provides the raw HTTP client for the image enhancement API and the adapter
that turns its outcomes into classified results for the job pipeline.
"""

from photo_pipeline.integrations.enhancer.adapter import (
    EnhancementAdapter,
    EnhancementProvider,
    get_enhancement_adapter,
)
from photo_pipeline.integrations.enhancer.client import (
    EnhancerClient,
    get_enhancer_client,
)
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
    EnhancementResult,
)

__all__ = [
    # Adapter
    "EnhancementAdapter",
    "EnhancementProvider",
    "get_enhancement_adapter",
    # Client
    "EnhancerClient",
    "get_enhancer_client",
    # Exceptions
    "EnhancerError",
    "EnhancerAuthenticationError",
    "EnhancerQuotaExceededError",
    "EnhancerRateLimitError",
    "EnhancerInvalidInputError",
    "EnhancerUnavailableError",
    "EnhancerConnectionError",
    "EnhancerTimeoutError",
    # Models
    "EnhanceResponse",
    "EnhancementOptions",
    "EnhancementResult",
]
