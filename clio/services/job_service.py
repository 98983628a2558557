"""API-facing job operations with ownership checks."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..exceptions import (
    ForbiddenError,
    InstallationNotFoundError,
    JobNotFoundError,
    RepositoryNotFoundError,
    VersionNotFoundError,
)
from ..models import JobStatus, ReadmeJob, ReadmeVersion
from ..repositories import JobRepository, RepositoryRepository, VersionRepository
from ..schemas.job import QueueJobRequest
from .job_store import RepositoryLink

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.QUEUED, JobStatus.PROCESSING)


class JobService:
    """
    Read, queue and delete README jobs on behalf of a user.

    Jobs are only visible to the user who created them. Mutations other
    than queueing and deleting belong to the orchestrator.
    """

    def __init__(self, db: Session):
        self.db = db
        self.jobs = JobRepository(db)
        self.versions = VersionRepository(db)
        self.repositories = RepositoryRepository(db)

    def resolve_repository(self, repository_id: str, user_id: str) -> RepositoryLink:
        """Repository owned by ``user_id`` together with its installation id."""
        repository = self.repositories.get_with_installation(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        if repository.user_id != user_id:
            raise ForbiddenError("You do not have access to this repository")
        if repository.installation is None:
            raise InstallationNotFoundError(repository_id)
        return RepositoryLink(
            repository=repository,
            installation_id=str(repository.installation.installation_id),
        )

    def queue_job(self, request: QueueJobRequest, user_id: str) -> ReadmeJob:
        """Create a QUEUED job for a repository the user owns."""
        self.resolve_repository(request.repository_id, user_id)
        job = self.jobs.create(
            user_id,
            request.repository_id,
            style=request.style.value,
            include_images=request.include_images,
            include_badges=request.include_badges,
            include_toc=request.include_toc,
            custom_prompt=request.custom_prompt,
            status=JobStatus.QUEUED,
        )
        self.db.commit()
        logger.info(f"Queued job {job.id} for repository {request.repository_id}", extra={"job_id": job.id})
        return job

    def get_job_authorized(self, job_id: str, user_id: str) -> ReadmeJob:
        job = self.jobs.get_by_id(job_id)
        if job.user_id != user_id:
            raise ForbiddenError("You do not have access to this job")
        return job

    def list_jobs(self, user_id: str, status: Optional[JobStatus] = None, limit: int = 10) -> List[ReadmeJob]:
        return self.jobs.get_by_user(user_id, status=status, limit=limit)

    def list_active(self, user_id: str, limit: int = 50) -> List[ReadmeJob]:
        """Jobs still awaiting or under processing, newest first."""
        return (
            self.db.query(ReadmeJob)
            .filter(
                ReadmeJob.user_id == user_id,
                ReadmeJob.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .order_by(ReadmeJob.created_at.desc())
            .limit(limit)
            .all()
        )

    def list_versions(self, job_id: str, user_id: str, skip: int = 0, limit: int = 50) -> List[ReadmeVersion]:
        self.get_job_authorized(job_id, user_id)
        return self.versions.get_by_job(job_id, skip=skip, limit=limit)

    def get_latest_version(self, job_id: str, user_id: str) -> ReadmeVersion:
        self.get_job_authorized(job_id, user_id)
        version = self.versions.get_latest(job_id)
        if version is None:
            raise VersionNotFoundError(f"latest for job {job_id}")
        return version

    def delete_job(self, job_id: str, user_id: str) -> None:
        self.get_job_authorized(job_id, user_id)
        if not self.jobs.delete(job_id):
            raise JobNotFoundError(job_id)
        self.db.commit()
        logger.info(f"Deleted job {job_id}", extra={"job_id": job_id})
