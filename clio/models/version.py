"""README version model."""

from sqlalchemy import Column, Index, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .readme_job import utcnow


class ReadmeVersion(Base):
    """Immutable snapshot of generated README content for a job."""

    __tablename__ = "readme_versions"
    __table_args__ = (
        Index("ix_readme_versions_job_id", "job_id"),
        Index("ix_readme_versions_created_at", "created_at"),
    )

    id = Column(String(50), primary_key=True)

    job_id = Column(String(50), ForeignKey("readme_jobs.id", ondelete="CASCADE"), nullable=False)

    # Content
    content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)  # SHA256 for deduplication
    word_count = Column(Integer, nullable=False)
    character_count = Column(Integer, nullable=False)

    # Generation metadata
    model_used = Column(String(200), nullable=True)
    tokens_used = Column(Integer, nullable=True)
    generation_time_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    job = relationship("ReadmeJob", back_populates="versions")
