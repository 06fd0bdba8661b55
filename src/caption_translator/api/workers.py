"""Background work for the API: job execution and periodic eviction."""

import asyncio
import logging

from caption_translator.jobs import JobStore
from caption_translator.pipeline import SubtitlePipeline

logger = logging.getLogger(__name__)


class JobRunner:
    """Runs submitted jobs in worker threads with bounded concurrency.

    Jobs wait on a semaphore before starting, so at most
    ``max_concurrent_jobs`` pipelines are in flight at once.
    """

    def __init__(self, pipeline: SubtitlePipeline, store: JobStore, max_concurrent_jobs: int = 2):
        self.pipeline = pipeline
        self.store = store
        self._semaphore = asyncio.Semaphore(max_concurrent_jobs)
        self._tasks: set[asyncio.Task] = set()
        self.active_jobs = 0

    def submit(self, job_id: str) -> asyncio.Task:
        """Schedule a queued job; returns immediately."""
        task = asyncio.create_task(self._run(job_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, job_id: str) -> None:
        async with self._semaphore:
            self.active_jobs += 1
            try:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self.pipeline.run_job, self.store, job_id)
            except Exception as e:
                logger.error(f"Job {job_id} crashed outside the pipeline: {e}")
                self.store.mark_failed(job_id, str(e))
            finally:
                self.active_jobs -= 1

    async def wait_idle(self) -> None:
        """Wait until every submitted job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel jobs still waiting for a slot. Running pipelines finish in their threads."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)


class EvictionWorker:
    """Periodically evicts jobs whose TTL has expired."""

    def __init__(self, store: JobStore, interval_seconds: float = 600):
        self.store = store
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start background worker."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Job eviction worker started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop background worker."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Job eviction worker stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break

            try:
                self.store.evict()
            except Exception as e:
                logger.error(f"Job eviction failed: {e}")
