"""Shared model helpers."""

from photo_pipeline.models.base import TimestampMixin, generate_uuid, utc_now, as_utc

__all__ = ["TimestampMixin", "generate_uuid", "utc_now", "as_utc"]
