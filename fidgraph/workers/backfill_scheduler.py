"""
Backfill scheduling

- production: createBatches repeats every BACKFILL_INTERVAL_SECONDS
  (aligned, 12h by default → 00:00 / 12:00 UTC)
- anything else: createBatches is enqueued once, immediately

BackfillScheduler polls the delayed set and promotes due occurrences onto
the wait list. Several schedulers may run; each occurrence is claimed once.
"""
import asyncio
import logging
from typing import Optional

from fidgraph.config.settings import Settings
from fidgraph.services.job_queue import JobQueue
from fidgraph.workers.followers_backfill import CREATE_BATCHES

logger = logging.getLogger(__name__)


async def trigger_backfill(job_queue: JobQueue, settings: Settings) -> Optional[str]:
    """
    Enqueue a createBatches run now.

    Idempotent while a run is pending: returns None instead of enqueueing a
    second createBatches. Safe to call concurrently with a scheduled run;
    overlapping runs only overwrite snapshots with equivalent ones.
    """
    job_id = await job_queue.enqueue_unique(
        settings.backfill_queue, CREATE_BATCHES, {}, ttl=settings.trigger_dedupe_seconds
    )
    if job_id:
        logger.info(f"Triggered followers backfill (job {job_id})")
    else:
        logger.info("Followers backfill already pending, not enqueueing another")
    return job_id


async def schedule_backfill(job_queue: JobQueue, settings: Settings) -> Optional[int]:
    """Register the recurring run, or trigger one now outside production"""
    if settings.is_production:
        run_at = await job_queue.schedule_repeat(
            settings.backfill_queue, CREATE_BATCHES, settings.backfill_interval_seconds
        )
        logger.info(
            f"Scheduled followers backfill every {settings.backfill_interval_seconds}s, "
            f"next run at {run_at}"
        )
        return run_at

    logger.info("not production, creating batch jobs immediately")
    await trigger_backfill(job_queue, settings)
    return None


class BackfillScheduler:
    """Poll loop that promotes due delayed jobs"""

    def __init__(self, job_queue: JobQueue, settings: Settings, poll_interval: float = 30.0):
        self.job_queue = job_queue
        self.settings = settings
        self.poll_interval = poll_interval
        self.running = False

    async def tick(self) -> int:
        moved = await self.job_queue.promote_due(self.settings.backfill_queue)
        if moved:
            logger.info(f"Promoted {moved} scheduled job(s) on {self.settings.backfill_queue}")
        return moved

    async def run(self):
        await schedule_backfill(self.job_queue, self.settings)
        self.running = True

        while self.running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.poll_interval)

    def stop(self):
        self.running = False
