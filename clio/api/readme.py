"""Synchronous README generation endpoint."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..database import get_db
from ..dependencies import get_orchestrator
from ..schemas.job import GenerateRequest, GenerateResponse, GenerationOptions, JobResponse
from ..services.job_service import JobService
from ..services.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/readme", tags=["readme"])


@router.post("/generate", response_model=GenerateResponse, status_code=201)
async def generate_readme(
    request: GenerateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Run the whole pipeline for one repository and return the README.

    The job is recorded like any other; on failure it is left FAILED and the
    error is returned.
    """
    link = JobService(db).resolve_repository(request.repository_id, auth.user_id)
    outcome = await orchestrator.generate_readme(
        link.repository,
        link.installation_id,
        auth.user_id,
        options=GenerationOptions(**request.model_dump(exclude={"repository_id"})),
    )
    return GenerateResponse(
        job=JobResponse.model_validate(outcome.job),
        content=outcome.content,
        metadata=outcome.metadata,
    )
