"""
Enhancement provider request/response models.

EnhancementOptions is validated with Pydantic because it arrives from the
enqueue API and is stored on the job as JSON. Results are plain dataclasses.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict

from photo_pipeline.jobs.retry import ErrorKind


class EnhancementOptions(BaseModel):
    """Enhancement settings chosen at submission."""

    model_config = ConfigDict(extra="forbid")

    quality: Literal["standard", "high", "ultra"] = "high"
    style: Literal["natural", "vivid", "portrait", "vintage"] = "natural"
    upscale: Literal[1, 2, 4] = 1

    def to_request(self, image_url: str) -> Dict[str, Any]:
        return {
            "image_url": image_url,
            "quality": self.quality,
            "style": self.style,
            "upscale": self.upscale,
        }


@dataclass
class EnhanceResponse:
    """Successful response from the enhance endpoint."""
    output_url: str
    request_id: Optional[str] = None
    processing_ms: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnhanceResponse":
        return cls(
            output_url=data.get("output_url") or "",
            request_id=data.get("id"),
            processing_ms=data.get("processing_ms"),
        )


@dataclass
class EnhancementResult:
    """
    Normalized outcome of one provider call.

    Exactly one of output_handle / error_kind is set.
    """
    output_handle: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    retry_after: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None and bool(self.output_handle)

    @classmethod
    def success(cls, output_handle: str) -> "EnhancementResult":
        return cls(output_handle=output_handle)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        retry_after: Optional[int] = None,
    ) -> "EnhancementResult":
        return cls(error_kind=kind, error_message=message, retry_after=retry_after)
