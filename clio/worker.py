"""
Polling worker for README generation jobs.

Every ``WORKER_POLL_INTERVAL`` seconds, starts a batch that fills the free
concurrency slots with the oldest claimable jobs. Batches overlap, so a slow
job never blocks new ones from starting. On SIGINT/SIGTERM the loop stops
polling and waits for in-flight jobs to finish.

Usage:
    clio-worker
    python -m clio.worker
"""

import asyncio
import logging
import signal
from typing import Optional, Set

from .core.config import settings
from .core.logging_config import setup_logging
from .database import init_db
from .dependencies import build_orchestrator
from .services.orchestrator import JobOrchestrator

logger = logging.getLogger("clio.worker")


class Worker:
    """Loop driver around :meth:`JobOrchestrator.run_batch`."""

    def __init__(self, orchestrator: JobOrchestrator, poll_interval: Optional[float] = None):
        self.orchestrator = orchestrator
        self.poll_interval = poll_interval if poll_interval is not None else settings.worker_poll_interval
        self._stop = asyncio.Event()
        self._batches: Set[asyncio.Task] = set()

    def stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Worker shutting down")
            self._stop.set()

    def _on_batch_done(self, task: asyncio.Task) -> None:
        self._batches.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Worker batch failed: {exc}", exc_info=exc)
            return
        for outcome in task.result():
            if outcome.status != "processed":
                logger.info(
                    f"Job {outcome.job_id} {outcome.status}: {outcome.reason or outcome.error}",
                    extra={"job_id": outcome.job_id},
                )

    def tick(self) -> asyncio.Task:
        task = asyncio.create_task(self.orchestrator.run_batch())
        self._batches.add(task)
        task.add_done_callback(self._on_batch_done)
        return task

    async def drain(self) -> None:
        """Wait for every running batch to finish."""
        if self._batches:
            logger.info(f"Draining {len(self.orchestrator.in_flight)} in-flight job(s)")
            await asyncio.gather(*list(self._batches), return_exceptions=True)

    async def run(self) -> None:
        logger.info(
            f"Worker started, polling every {self.poll_interval}s "
            f"(max {self.orchestrator.config.max_concurrent_jobs} concurrent jobs)"
        )
        while not self._stop.is_set():
            self.tick()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        await self.drain()
        logger.info("Worker stopped")


async def _serve() -> None:
    worker = Worker(build_orchestrator(settings))
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.stop)
        except NotImplementedError:
            # Windows event loops do not support signal handlers; Ctrl+C still raises.
            pass
    await worker.run()


def main() -> None:
    """Entry point for the ``clio-worker`` console script."""
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    init_db()
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Worker interrupted")


if __name__ == "__main__":
    main()
