"""
Enhancement provider exceptions.

One class per failure the provider API can report. Each class carries the
HTTP status it is normally raised for and a default message; the adapter
maps every class onto an ErrorKind.
"""

from typing import Optional, Dict, Any


class EnhancerError(Exception):
    """Base exception for enhancement provider errors."""

    default_message = "Enhancement provider error"
    default_status: Optional[int] = None

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.status_code = status_code if status_code is not None else self.default_status
        self.code = code
        self.response = response or {}

    @property
    def request_id(self) -> Optional[str]:
        """Provider-side id of the failed request, when the body carried one."""
        return self.response.get("request_id") or self.response.get("id")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class EnhancerAuthenticationError(EnhancerError):
    """API key missing, invalid or revoked (401/403)."""
    default_message = "Enhancer rejected the API key"
    default_status = 401


class EnhancerQuotaExceededError(EnhancerError):
    """No enhancement credits left on the provider account (402, or 429 quota_exceeded)."""
    default_message = "Enhancement quota exhausted"
    default_status = 402


class EnhancerRateLimitError(EnhancerError):
    """Too many requests (429); retry_after is in seconds when the provider sent it."""
    default_message = "Enhancer rate limit exceeded"
    default_status = 429

    def __init__(self, message: Optional[str] = None, retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class EnhancerInvalidInputError(EnhancerError):
    """Image or options rejected (400/413/415/422)."""
    default_message = "Image or options rejected by the provider"
    default_status = 400


class EnhancerUnavailableError(EnhancerError):
    """Provider answered with a 5xx status."""
    default_message = "Enhancement provider unavailable"
    default_status = 503


class EnhancerConnectionError(EnhancerError):
    """Provider could not be reached."""
    default_message = "Unable to reach the enhancement provider"


class EnhancerTimeoutError(EnhancerError):
    """HTTP-level timeout talking to the provider."""
    default_message = "Enhancer request timed out"
