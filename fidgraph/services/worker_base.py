"""
Base worker class for queue consumers

Combines:
- Redis queue consumption (BLMOVE into a per-worker processing list)
- Signal handling for graceful shutdown
- Bounded concurrency: N consumer loops share one worker identity
- Retry / failed-list handling for jobs whose handler raises
"""
import asyncio
import signal
import logging
from typing import FrozenSet

from fidgraph.services.job_queue import Delivery, JobQueue
from fidgraph.models.graph import Job

logger = logging.getLogger(__name__)


class BaseWorker:
    """
    Base class for queue workers

    Subclasses implement process(job). Returning normally acks the job;
    raising hands it back to the queue for another attempt.
    """

    # Job names enqueued with enqueue_unique; their marker is released on pickup
    unique_jobs: FrozenSet[str] = frozenset()

    def __init__(
        self,
        job_queue: JobQueue,
        worker_name: str,
        queue_name: str,
        concurrency: int = 1,
        max_attempts: int = 3,
        poll_timeout: int = 5,
    ):
        self.job_queue = job_queue
        self.worker_name = worker_name
        self.queue_name = queue_name
        self.concurrency = max(1, concurrency)
        self.max_attempts = max_attempts
        self.poll_timeout = poll_timeout
        self.running = False
        self.jobs_processed = 0
        self.jobs_failed = 0

    async def start(self):
        """
        Main worker loop

        1. Requeue anything a previous run of this worker left unfinished
        2. Run `concurrency` consumer loops until stopped
        """
        self._setup_signal_handlers()

        recovered = await self.job_queue.recover(self.queue_name, self.worker_name)
        if recovered:
            logger.warning(f"[{self.worker_name}] Requeued {recovered} unfinished job(s) from a previous run")

        self.running = True
        logger.info(
            f"[{self.worker_name}] Started, listening on {self.queue_name} "
            f"(concurrency={self.concurrency})"
        )

        await asyncio.gather(*(self._consume_loop(slot) for slot in range(self.concurrency)))

        logger.info(
            f"[{self.worker_name}] Shutting down. "
            f"Processed: {self.jobs_processed}, Failed: {self.jobs_failed}"
        )

    def stop(self):
        self.running = False

    async def _consume_loop(self, slot: int):
        while self.running:
            try:
                delivery = await self.job_queue.dequeue(
                    self.queue_name, self.worker_name, timeout=self.poll_timeout
                )
                if delivery:
                    await self.handle_delivery(delivery)

            except asyncio.CancelledError:
                logger.info(f"[{self.worker_name}#{slot}] Received cancellation signal")
                break
            except Exception as e:
                logger.error(f"[{self.worker_name}#{slot}] Worker loop error: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def handle_delivery(self, delivery: Delivery) -> bool:
        """Run one job and ack / retry it. Returns True on success."""
        job = delivery.job
        logger.debug(f"[{self.worker_name}] Received job: {job.name} ({job.id})")

        if job.name in self.unique_jobs:
            await self.job_queue.release_unique(self.queue_name, job.name)

        try:
            await self.process(job)
        except Exception as e:
            self.jobs_failed += 1
            await self.handle_error(delivery, e)
            return False

        await self.job_queue.ack(self.queue_name, delivery)
        self.jobs_processed += 1
        return True

    def _setup_signal_handlers(self):
        """Setup graceful shutdown on SIGTERM/SIGINT"""
        def shutdown_handler(signum, frame):
            logger.info(f"[{self.worker_name}] Received signal {signum}, shutting down...")
            self.running = False

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)

    async def process(self, job: Job):
        """
        Override in subclass - do the actual work

        Args:
            job: Job envelope from the queue
        """
        raise NotImplementedError(f"{self.__class__.__name__} must implement process()")

    async def handle_error(self, delivery: Delivery, error: Exception):
        """
        Handle job processing error

        Default: log, then retry until max_attempts, then park on the failed list.
        """
        job = delivery.job
        requeued = await self.job_queue.retry_or_fail(
            self.queue_name, delivery, self.max_attempts, f"{type(error).__name__}: {error}"
        )
        outcome = 'requeued' if requeued else 'moved to failed list'
        logger.error(
            f"[{self.worker_name}] Error processing job {job.name} "
            f"(attempt {job.attempts + 1}/{self.max_attempts}, {outcome}): {error}",
            exc_info=True,
        )
