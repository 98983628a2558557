"""README version schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class VersionCreate(BaseModel):
    """Schema for creating a version.

    Hash and counts are not accepted here; the repository derives them
    from ``content``.
    """
    job_id: str
    content: str
    model_used: Optional[str] = None
    tokens_used: Optional[int] = None
    generation_time_ms: Optional[int] = None


class VersionResponse(BaseModel):
    """Schema for version response."""
    id: str
    job_id: str
    content: str
    content_hash: str
    word_count: int
    character_count: int
    model_used: Optional[str] = None
    tokens_used: Optional[int] = None
    generation_time_ms: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
