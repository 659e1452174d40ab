#!/usr/bin/env python3
"""
Trigger a followers backfill run once.

Usage:
    python -m fidgraph.trigger_followers_backfill

Enqueues a createBatches job unless one is already pending, prints the
current queue depth, and exits non-zero if Redis is unreachable.
"""
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

from fidgraph.config.connections import close_all, create_job_queue
from fidgraph.config.settings import get_settings
from fidgraph.workers.backfill_scheduler import trigger_backfill


async def trigger() -> int:
    settings = get_settings()
    queue = await create_job_queue(settings)

    try:
        print("Triggering followers backfill job...")
        job_id = await trigger_backfill(queue, settings)
        if job_id:
            print(f"✅ Created followers backfill job {job_id}")
        else:
            print("ℹ️  A followers backfill job is already pending")
        print(f"   Queue depth: {await queue.queue_length(settings.backfill_queue)}")
        return 0
    except Exception as e:
        print(f"❌ Failed to create followers backfill job: {e}")
        return 1
    finally:
        await close_all(queue)


def main():
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')
    sys.exit(asyncio.run(trigger()))


if __name__ == '__main__':
    main()
