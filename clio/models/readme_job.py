"""README job model for tracking generation requests through the pipeline."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


def utcnow() -> datetime:
    """Timezone-aware current time; every pipeline timestamp goes through here."""
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Job lifecycle states.

    PENDING and QUEUED both mean "awaiting processing"; either may be claimed.
    """
    PENDING = "PENDING"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @classmethod
    def claimable(cls) -> tuple["JobStatus", ...]:
        return (cls.PENDING, cls.QUEUED)


class ReadmeStyle(str, Enum):
    """Tone requested for the generated README."""
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    MINIMAL = "minimal"
    DETAILED = "detailed"


class ReadmeJob(Base):
    """
    One request to generate a README for a repository.

    Status transitions: PENDING/QUEUED -> PROCESSING -> COMPLETED | FAILED.
    A retryable failure sends the job back to PENDING with retry_count + 1
    and next_attempt_at pushed into the future.
    """

    __tablename__ = "readme_jobs"
    __table_args__ = (
        Index("ix_readme_jobs_status_created_at", "status", "created_at"),
        Index("ix_readme_jobs_user_id", "user_id"),
    )

    # Primary key (UUID format)
    id = Column(String(50), primary_key=True)

    user_id = Column(String(50), nullable=False)
    repository_id = Column(String(50), ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False)

    # Job lifecycle
    # Allowed values: JobStatus members
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value)
    progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    # Backoff: the job is not claimable before this instant
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    processing_time_ms = Column(Integer, nullable=True)

    # Options snapshot
    style = Column(String(20), nullable=False, default=ReadmeStyle.PROFESSIONAL.value)
    include_images = Column(Boolean, nullable=False, default=True)
    include_badges = Column(Boolean, nullable=False, default=True)
    include_toc = Column(Boolean, nullable=False, default=True)
    custom_prompt = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    repository = relationship("Repository", back_populates="jobs")
    versions = relationship(
        "ReadmeVersion",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="desc(ReadmeVersion.created_at)",
    )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)
