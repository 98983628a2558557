"""README job endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..database import get_db
from ..dependencies import get_orchestrator
from ..models import JobStatus
from ..schemas.job import JobResponse, QueueJobRequest, QueuedJobResponse
from ..schemas.version import VersionResponse
from ..services.job_service import JobService
from ..services.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", response_model=QueuedJobResponse, status_code=201)
def queue_job(
    request: QueueJobRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Queue README generation for a repository.

    The job is picked up right away in the background when a slot is free;
    otherwise the worker or the cron tick claims it later.
    """
    job = JobService(db).queue_job(request, auth.user_id)
    background_tasks.add_task(orchestrator.run_one, job.id)
    return QueuedJobResponse(job_id=job.id, status=JobStatus.QUEUED, message="README generation queued")


@router.get("", response_model=List[JobResponse])
def list_jobs(
    status: Optional[JobStatus] = Query(None),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """List the current user's jobs, newest first."""
    return JobService(db).list_jobs(auth.user_id, status=status, limit=limit)


@router.get("/active", response_model=List[JobResponse])
def list_active_jobs(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Jobs that are pending, queued or processing."""
    return JobService(db).list_active(auth.user_id)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    return JobService(db).get_job_authorized(job_id, auth.user_id)


@router.get("/{job_id}/versions", response_model=List[VersionResponse])
def list_versions(
    job_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Version history for a job, newest first."""
    return JobService(db).list_versions(job_id, auth.user_id, skip=skip, limit=limit)


@router.get("/{job_id}/versions/latest", response_model=VersionResponse)
def get_latest_version(
    job_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    return JobService(db).get_latest_version(job_id, auth.user_id)


@router.delete("/{job_id}", status_code=204)
def delete_job(
    job_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    JobService(db).delete_job(job_id, auth.user_id)
    return Response(status_code=204)
