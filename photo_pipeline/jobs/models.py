"""
Enhancement job model.

Defines the EnhancementJob record that tracks one submitted image through
the enhancement pipeline:
- Status tracking (PENDING|PROCESSING|COMPLETED|FAILED)
- Attempt tracking bounded by the configured maximum
- Last error (kind + message) for observability and user display

Records are created by the enqueue interface and mutated only by the
claim, finalize and orphan-recovery operations of the job store.
"""

import enum

from sqlalchemy import (
    Column,
    String,
    Integer,
    Enum,
    DateTime,
    Text,
    Index,
    JSON,
)
from sqlalchemy.dialects.postgresql import JSONB

from photo_pipeline.db_base import Base
from photo_pipeline.models.base import TimestampMixin, generate_uuid

# Use JSONB for PostgreSQL, JSON for other databases (testing)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class JobStatus(str, enum.Enum):
    """Enhancement job status enumeration."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class EnhancementJob(Base, TimestampMixin):
    """
    Tracks the enhancement lifecycle of one submitted image.

    Attributes:
        id: Primary key (UUID), immutable
        owner_id: Reference to the submitting user
        input_handle: URL of the original image
        output_handle: URL of the enhanced image (COMPLETED only)
        status: Current job status
        attempts: Number of claimed attempts so far
        last_error_kind: ErrorKind value of the last failed attempt
        last_error_message: Message of the last failed attempt
        options: Enhancement options chosen at submission
        claimed_at: When the current/last attempt was claimed
        completed_at: When the job reached a terminal state
    """

    __tablename__ = "enhancement_jobs"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )

    owner_id = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Owning user reference"
    )

    input_handle = Column(
        Text,
        nullable=False,
        default="",
        comment="URL of the original image"
    )
    output_handle = Column(
        Text,
        nullable=True,
        comment="URL of the enhanced image, set only on COMPLETED"
    )

    status = Column(
        Enum(JobStatus, name="enhancement_job_status"),
        default=JobStatus.PENDING,
        nullable=False,
        index=True,
        comment="Job status: PENDING, PROCESSING, COMPLETED, FAILED"
    )

    attempts = Column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of claimed attempts"
    )

    last_error_kind = Column(
        String(50),
        nullable=True,
        comment="Error classification of the last failed attempt"
    )
    last_error_message = Column(
        Text,
        nullable=True,
        comment="Error message of the last failed attempt"
    )

    options = Column(
        JSONType,
        nullable=True,
        comment="Enhancement options (quality, style, upscale)"
    )

    claimed_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the last attempt was claimed"
    )
    completed_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the job reached a terminal state"
    )

    __table_args__ = (
        # Oldest-first PENDING scan and PROCESSING orphan sweep
        Index("ix_enhancement_jobs_status_created", "status", "created_at"),
        Index("ix_enhancement_jobs_status_updated", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<EnhancementJob("
            f"id={self.id}, "
            f"owner_id={self.owner_id}, "
            f"status={self.status.value if self.status else None}, "
            f"attempts={self.attempts}"
            f")>"
        )
