#!/usr/bin/env python3
"""
Followers Backfill Scheduler
============================

Registers the recurring createBatches job (production) or enqueues one run
immediately (other environments), then keeps promoting due scheduled jobs.

Usage:
    python -m fidgraph.run_backfill_scheduler
"""
import asyncio
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from fidgraph.config.connections import close_all, create_job_queue
from fidgraph.config.settings import get_settings
from fidgraph.workers.backfill_scheduler import BackfillScheduler

POLL_INTERVAL = float(os.getenv('SCHEDULER_POLL_INTERVAL', '30'))  # seconds

log = logging.getLogger('backfill-scheduler')


async def run_scheduler():
    settings = get_settings()
    job_queue = await create_job_queue(settings)
    scheduler = BackfillScheduler(job_queue, settings, poll_interval=POLL_INTERVAL)

    log.info(f"Scheduler started for {settings.backfill_queue} ({settings.environment})")
    try:
        await scheduler.run()
    finally:
        await close_all(job_queue)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [backfill-scheduler] %(levelname)s: %(message)s'
    )
    try:
        asyncio.run(run_scheduler())
    except KeyboardInterrupt:
        log.info("Scheduler stopped")


if __name__ == '__main__':
    main()
