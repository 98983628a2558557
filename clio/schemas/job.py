"""README job schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.readme_job import JobStatus, ReadmeStyle


class GenerationOptions(BaseModel):
    """Options snapshot stored on a job and passed to the generator."""
    style: ReadmeStyle = ReadmeStyle.PROFESSIONAL
    include_images: bool = True
    include_badges: bool = True
    include_toc: bool = True
    custom_prompt: Optional[str] = Field(default=None, max_length=4000)
    model: Optional[str] = None


class GenerateRequest(GenerationOptions):
    """Request to generate a README for a connected repository."""
    repository_id: str


class QueueJobRequest(GenerateRequest):
    """Request to queue a README job. Queued jobs always run on the default model."""

    @field_validator('model')
    @classmethod
    def reject_model_override(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            raise ValueError("Model overrides are only accepted by /api/readme/generate")
        return v


class JobResponse(BaseModel):
    """Schema for README job status."""
    id: str
    user_id: str
    repository_id: str
    status: JobStatus
    progress: int
    style: ReadmeStyle
    include_images: bool
    include_badges: bool
    include_toc: bool
    custom_prompt: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int
    next_attempt_at: Optional[datetime] = None
    processing_time_ms: Optional[int] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QueuedJobResponse(BaseModel):
    """Returned when a job is queued for background processing."""
    job_id: str
    status: JobStatus
    message: str


class GenerationMetadata(BaseModel):
    word_count: int
    character_count: int
    model_used: str
    tokens_used: Optional[int] = None
    generation_time_ms: Optional[int] = None


class GenerateResponse(BaseModel):
    """Result of a synchronous generation request."""
    job: JobResponse
    content: str
    metadata: GenerationMetadata


class BatchOutcomeResponse(BaseModel):
    job_id: str
    status: str
    reason: Optional[str] = None
    error: Optional[str] = None


class CronResponse(BaseModel):
    """Summary body returned by the cron endpoint."""
    message: str
    results: List[BatchOutcomeResponse] = []
