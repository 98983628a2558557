"""Scheduler-driven job processing."""

import logging

from fastapi import APIRouter, Depends

from ..core.auth import require_cron
from ..dependencies import get_orchestrator
from ..schemas.job import BatchOutcomeResponse, CronResponse
from ..services.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


@router.api_route("/process-jobs", methods=["GET", "POST"], response_model=CronResponse)
async def process_jobs(
    _: None = Depends(require_cron),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Process one batch of queued jobs.

    Authorized by the scheduler's ``x-vercel-cron: 1`` header or by
    ``Authorization: Bearer <CRON_SECRET>``.
    """
    outcomes = await orchestrator.process_queued_batch()
    if not outcomes:
        return CronResponse(message="No jobs to process", results=[])
    return CronResponse(
        message=f"Processed {len(outcomes)} jobs",
        results=[BatchOutcomeResponse(**outcome.to_dict()) for outcome in outcomes],
    )
