"""README job orchestration.

Owns the job state machine::

    PENDING/QUEUED -> PROCESSING -> COMPLETED | FAILED
    PROCESSING -> PENDING            (retryable error under the retry ceiling)

Two drivers share this core: the worker loop calls :meth:`JobOrchestrator.run_batch`
and the cron endpoint calls :meth:`JobOrchestrator.process_queued_batch`.
Cross-process safety comes from the conditional claim in the job store; the
in-memory ``in_flight`` set only guards the long-running worker.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from ..core.config import Settings, settings as default_settings
from ..core.logging_config import job_context
from ..exceptions import ClioException, JobNotFoundError, JobTimeoutError, looks_transient
from ..models import JobStatus, ReadmeJob, ReadmeVersion
from ..models.readme_job import utcnow
from ..schemas.job import GenerationMetadata, GenerationOptions
from .analyzer import RepositoryAnalyzer
from .generator import ContentGenerator, GenerationResult, RepositoryData
from .job_store import JobStore, RepositoryLink
from .postprocessor import ContentPostProcessor

logger = logging.getLogger(__name__)

# Progress checkpoints after the claim (which sets 10), in pipeline order.
PROGRESS_ANALYZING = 30
PROGRESS_ANALYZED = 50
PROGRESS_GENERATING = 70
PROGRESS_POSTPROCESSING = 85
PROGRESS_SAVING = 90
PROGRESS_DONE = 100

MISSING_LINKAGE_MESSAGE = "Repository or installation not found"


def error_message(exc: BaseException) -> str:
    if isinstance(exc, ClioException):
        return exc.message
    return str(exc) or exc.__class__.__name__


def is_retryable(exc: BaseException) -> bool:
    """Transient errors are retried; everything else fails the job.

    Clio's own exceptions carry an explicit ``temporary`` flag, so their
    messages (which may embed repository names) are not scanned.
    """
    if isinstance(exc, ClioException):
        return exc.temporary
    if getattr(exc, "temporary", False):
        return True
    return looks_transient(error_message(exc))


@dataclass(frozen=True)
class OrchestratorConfig:
    max_concurrent_jobs: int = 3
    job_timeout_seconds: float = 300.0
    retry_attempts: int = 3
    retry_delay_seconds: float = 5.0
    cron_batch_size: int = 3

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "OrchestratorConfig":
        return cls(
            max_concurrent_jobs=settings.max_concurrent_jobs,
            job_timeout_seconds=settings.job_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_delay_seconds=settings.retry_delay_seconds,
            cron_batch_size=settings.cron_batch_size,
        )


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one job attempt.

    ``status`` is ``processed``, ``failed`` (terminal), ``error`` (attempt
    failed, job requeued or in an unknown state) or ``skipped``.
    """
    job_id: str
    status: str
    reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"job_id": self.job_id, "status": self.status, "reason": self.reason, "error": self.error}


@dataclass(frozen=True)
class GenerationOutcome:
    job: ReadmeJob
    content: str
    metadata: GenerationMetadata


def options_from_job(job: ReadmeJob) -> GenerationOptions:
    return GenerationOptions(
        style=job.style,
        include_images=job.include_images,
        include_badges=job.include_badges,
        include_toc=job.include_toc,
        custom_prompt=job.custom_prompt,
    )


class JobOrchestrator:
    """Runs README jobs through analyze -> generate -> post-process -> persist."""

    def __init__(
        self,
        store: JobStore,
        analyzer: RepositoryAnalyzer,
        generator: ContentGenerator,
        postprocessor: Optional[ContentPostProcessor] = None,
        config: Optional[OrchestratorConfig] = None,
    ) -> None:
        self.store = store
        self.analyzer = analyzer
        self.generator = generator
        self.postprocessor = postprocessor or ContentPostProcessor()
        self.config = config or OrchestratorConfig.from_settings()
        self.in_flight: Set[str] = set()

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    async def run_one(self, job_id: str) -> BatchOutcome:
        """Process one job unless it is already running in this process."""
        if job_id in self.in_flight:
            return BatchOutcome(job_id, "skipped", reason="in_flight")
        if len(self.in_flight) >= self.config.max_concurrent_jobs:
            return BatchOutcome(job_id, "skipped", reason="at_capacity")

        self.in_flight.add(job_id)
        try:
            return await self._process(job_id)
        finally:
            self.in_flight.discard(job_id)

    async def run_batch(self) -> List[BatchOutcome]:
        """Fill free concurrency slots with the oldest claimable jobs."""
        slots = self.config.max_concurrent_jobs - len(self.in_flight)
        if slots <= 0:
            return []

        jobs = [job for job in self.store.list_claimable(slots) if job.id not in self.in_flight]
        if not jobs:
            return []

        logger.info(f"Running {len(jobs)} job(s)", extra={"job_ids": [job.id for job in jobs]})
        results = await asyncio.gather(*(self.run_one(job.id) for job in jobs), return_exceptions=True)

        outcomes: List[BatchOutcome] = []
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error(f"Job {job.id} crashed: {result}", extra={"job_id": job.id}, exc_info=result)
                outcomes.append(BatchOutcome(job.id, "error", error=error_message(result)))
            else:
                outcomes.append(result)
        return outcomes

    async def claim_and_tick(self) -> List[BatchOutcome]:
        """Process up to ``cron_batch_size`` jobs sequentially.

        Stateless per call; overlapping invocations are kept apart by the
        conditional claim.
        """
        jobs = self.store.list_claimable(self.config.cron_batch_size)
        outcomes: List[BatchOutcome] = []
        for job in jobs:
            try:
                outcomes.append(await self._process(job.id))
            except Exception as e:
                logger.error(f"Failed to process job {job.id}: {e}", extra={"job_id": job.id}, exc_info=True)
                outcomes.append(BatchOutcome(job.id, "error", error=error_message(e)))
        return outcomes

    async def process_queued_batch(self) -> List[BatchOutcome]:
        """Cron entry point. Raises only when the job table cannot be read."""
        outcomes = await self.claim_and_tick()
        if outcomes:
            logger.info(f"Processed {len(outcomes)} job(s) via cron")
        return outcomes

    async def generate_readme(
        self,
        repository: Any,
        installation_id: str,
        user_id: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationOutcome:
        """Create a job and run the pipeline once, synchronously for the caller.

        Raises the pipeline error after marking the job FAILED.
        """
        options = options or GenerationOptions()
        job = self.store.create_job(
            user_id,
            repository.id,
            style=options.style.value,
            include_images=options.include_images,
            include_badges=options.include_badges,
            include_toc=options.include_toc,
            custom_prompt=options.custom_prompt,
            status=JobStatus.PROCESSING,
        )

        link = RepositoryLink(repository=repository, installation_id=str(installation_id))
        started = time.monotonic()
        try:
            content, version, result = await self._run_with_timeout(job.id, link, options)
        except Exception as e:
            self.store.update_job(
                job.id,
                status=JobStatus.FAILED,
                error_message=error_message(e),
                completed_at=utcnow(),
            )
            logger.error(f"Job {job.id} failed: {error_message(e)}", extra={"job_id": job.id})
            raise

        completed = self._complete(job.id, started)
        return GenerationOutcome(
            job=completed or job,
            content=content,
            metadata=GenerationMetadata(
                word_count=version.word_count,
                character_count=version.character_count,
                model_used=result.model,
                tokens_used=result.tokens_used,
                generation_time_ms=result.generation_time_ms,
            ),
        )

    def status(self) -> Dict[str, Any]:
        return {
            "in_flight": sorted(self.in_flight),
            "max_concurrent_jobs": self.config.max_concurrent_jobs,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _process(self, job_id: str) -> BatchOutcome:
        job = self.store.get_job(job_id)
        if job is None:
            return BatchOutcome(job_id, "skipped", reason="not_found")
        if job.job_status not in JobStatus.claimable():
            return BatchOutcome(job_id, "skipped", reason="not_claimable")

        claimed = self.store.claim_job(job_id)
        if claimed is None:
            return BatchOutcome(job_id, "skipped", reason="not_claimed")

        link = self.store.get_repository_link(claimed.repository_id)
        if link is None:
            self.store.update_job(
                job_id,
                status=JobStatus.FAILED,
                error_message=MISSING_LINKAGE_MESSAGE,
                completed_at=utcnow(),
            )
            logger.warning(f"Job {job_id} failed: {MISSING_LINKAGE_MESSAGE}", extra={"job_id": job_id})
            return BatchOutcome(job_id, "failed", reason="missing_repo_or_installation", error=MISSING_LINKAGE_MESSAGE)

        logger.info(f"Claimed job {job_id} for {link.repository.full_name}", extra={"job_id": job_id})
        started = time.monotonic()
        try:
            await self._run_with_timeout(job_id, link, options_from_job(claimed))
        except Exception as e:
            return self._handle_failure(claimed, e)

        self._complete(job_id, started)
        return BatchOutcome(job_id, "processed")

    async def _run_with_timeout(
        self, job_id: str, link: RepositoryLink, options: GenerationOptions
    ) -> Tuple[str, ReadmeVersion, GenerationResult]:
        timeout = self.config.job_timeout_seconds
        try:
            # wait_for cancels the pipeline on expiry so it cannot write stale progress.
            with job_context(job_id):
                return await asyncio.wait_for(self._pipeline(job_id, link, options), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise JobTimeoutError(job_id, timeout) from e

    async def _pipeline(
        self, job_id: str, link: RepositoryLink, options: GenerationOptions
    ) -> Tuple[str, ReadmeVersion, GenerationResult]:
        self._set_progress(job_id, PROGRESS_ANALYZING)
        analysis = await self.analyzer.analyze(link.repository, link.installation_id)

        self._set_progress(job_id, PROGRESS_ANALYZED)
        data = RepositoryData.from_analysis(link.repository, analysis)

        self._set_progress(job_id, PROGRESS_GENERATING)
        result = await self.generator.generate(data, options)

        self._set_progress(job_id, PROGRESS_POSTPROCESSING)
        content = self.postprocessor.process(result.content, analysis)

        self._set_progress(job_id, PROGRESS_SAVING)
        version = self.store.create_version(
            job_id,
            content,
            model_used=result.model,
            tokens_used=result.tokens_used,
            generation_time_ms=result.generation_time_ms,
        )
        return content, version, result

    def _set_progress(self, job_id: str, progress: int) -> None:
        if self.store.update_job(job_id, progress=progress) is None:
            # Deleted by its owner mid-run.
            raise JobNotFoundError(job_id)

    def _complete(self, job_id: str, started: float) -> Optional[ReadmeJob]:
        job = self.store.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            progress=PROGRESS_DONE,
            completed_at=utcnow(),
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(f"Job {job_id} completed", extra={"job_id": job_id})
        return job

    def _handle_failure(self, job: ReadmeJob, exc: Exception) -> BatchOutcome:
        message = error_message(exc)

        if is_retryable(exc) and job.retry_count < self.config.retry_attempts:
            retry_count = job.retry_count + 1
            delay = self.config.retry_delay_seconds * retry_count
            updated = self.store.update_job(
                job.id,
                status=JobStatus.PENDING,
                retry_count=retry_count,
                progress=0,
                error_message=None,
                next_attempt_at=utcnow() + timedelta(seconds=delay),
            )
            if updated is None:
                return BatchOutcome(job.id, "skipped", reason="deleted", error=message)
            logger.warning(
                f"Job {job.id} failed, re-queuing (retry {retry_count}/{self.config.retry_attempts}) in {delay:g}s: {message}",
                extra={"job_id": job.id},
            )
            return BatchOutcome(job.id, "error", reason="retry_scheduled", error=message)

        updated = self.store.update_job(
            job.id,
            status=JobStatus.FAILED,
            error_message=message,
            completed_at=utcnow(),
        )
        if updated is None:
            return BatchOutcome(job.id, "skipped", reason="deleted", error=message)
        logger.warning(f"Job {job.id} failed permanently: {message}", extra={"job_id": job.id})
        return BatchOutcome(job.id, "failed", reason="pipeline_error", error=message)
