"""README job repository for database operations."""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import or_, update

from ..exceptions import JobNotFoundError, ValidationError
from ..models import JobStatus, ReadmeJob
from ..models.readme_job import utcnow
from .base import BaseRepository

# Columns the pipeline may change after creation.
_MUTABLE_FIELDS = frozenset({
    "status", "progress", "error_message", "retry_count", "next_attempt_at",
    "processing_time_ms", "started_at", "completed_at",
})

CLAIM_PROGRESS = 10


def coerce_status(value: Any) -> JobStatus:
    """Validate a status coming from outside the domain (API query, raw column)."""
    try:
        return JobStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid job status: {value!r}", field="status")


class JobRepository(BaseRepository[ReadmeJob]):
    """Repository for README job CRUD and claiming."""

    model_class = ReadmeJob
    not_found_error = JobNotFoundError

    def create(
        self,
        user_id: str,
        repository_id: str,
        *,
        style: str = "professional",
        include_images: bool = True,
        include_badges: bool = True,
        include_toc: bool = True,
        custom_prompt: Optional[str] = None,
        status: JobStatus = JobStatus.PENDING,
    ) -> ReadmeJob:
        job = ReadmeJob(
            id=str(uuid.uuid4()),
            user_id=user_id,
            repository_id=repository_id,
            status=coerce_status(status).value,
            progress=0,
            retry_count=0,
            style=style,
            include_images=include_images,
            include_badges=include_badges,
            include_toc=include_toc,
            custom_prompt=custom_prompt,
        )
        if job.status == JobStatus.PROCESSING.value:
            # Created already owned by the caller; sweeps never see it as claimable.
            job.progress = CLAIM_PROGRESS
            job.started_at = utcnow()
        self.db.add(job)
        self.db.flush()
        self.db.refresh(job)
        return job

    def list_claimable(self, limit: int, now: Optional[datetime] = None) -> List[ReadmeJob]:
        """Oldest PENDING/QUEUED jobs whose backoff has elapsed."""
        if limit <= 0:
            return []
        now = now or utcnow()
        return (
            self.db.query(ReadmeJob)
            .filter(
                ReadmeJob.status.in_([s.value for s in JobStatus.claimable()]),
                or_(ReadmeJob.next_attempt_at.is_(None), ReadmeJob.next_attempt_at <= now),
            )
            .order_by(ReadmeJob.created_at.asc())
            .limit(limit)
            .all()
        )

    def claim(self, job_id: str, now: Optional[datetime] = None) -> bool:
        """
        Atomically move a claimable job to PROCESSING.

        A single conditional UPDATE acts as compare-and-swap on the status
        column: when two workers race, exactly one sees rowcount == 1.

        Returns:
            True if this caller now owns the job
        """
        now = now or utcnow()
        result = self.db.execute(
            update(ReadmeJob)
            .where(
                ReadmeJob.id == job_id,
                ReadmeJob.status.in_([s.value for s in JobStatus.claimable()]),
                or_(ReadmeJob.next_attempt_at.is_(None), ReadmeJob.next_attempt_at <= now),
            )
            .values(
                status=JobStatus.PROCESSING.value,
                progress=CLAIM_PROGRESS,
                started_at=now,
                completed_at=None,
                error_message=None,
                next_attempt_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def update(self, job_id: str, **fields: Any) -> Optional[ReadmeJob]:
        """
        Apply a partial update.

        Progress never moves backwards while the job stays PROCESSING.
        Returns None when the job no longer exists (e.g. deleted by its owner).
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        job = self.get_by_id_optional(job_id)
        if not job:
            return None

        if "status" in fields:
            fields["status"] = coerce_status(fields["status"]).value

        if "progress" in fields and fields["progress"] is not None:
            progress = max(0, min(100, int(fields["progress"])))
            new_status = fields.get("status", job.status)
            if new_status == JobStatus.PROCESSING.value and job.status == JobStatus.PROCESSING.value:
                progress = max(progress, job.progress or 0)
            fields["progress"] = progress

        for key, value in fields.items():
            setattr(job, key, value)
        self.db.flush()
        self.db.refresh(job)
        return job

    def get_by_user(
        self,
        user_id: str,
        status: Optional[JobStatus] = None,
        limit: int = 10,
    ) -> List[ReadmeJob]:
        """Jobs for a user, newest first, optionally filtered by status."""
        query = self.db.query(ReadmeJob).filter(ReadmeJob.user_id == user_id)
        if status is not None:
            query = query.filter(ReadmeJob.status == coerce_status(status).value)
        return query.order_by(ReadmeJob.created_at.desc()).limit(limit).all()

    def delete(self, job_id: str) -> bool:
        job = self.get_by_id_optional(job_id)
        if not job:
            return False
        self.db.delete(job)
        self.db.flush()
        return True
