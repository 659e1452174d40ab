#!/usr/bin/env python3
"""
Run Followers Backfill Worker

Consumes createBatches / processBatch-N jobs from the followers-backfill queue
and writes follow graph snapshots into the graph cache.

Usage:
    python -m fidgraph.run_backfill_worker
    WORKER_NAME=followers-backfill-2 python -m fidgraph.run_backfill_worker
"""
import os
from pathlib import Path

# Load .env from project root
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

import asyncio
import logging

from fidgraph.config.connections import (
    close_all,
    create_graph_cache,
    create_hub_client,
    create_job_queue,
    create_redis,
)
from fidgraph.config.settings import get_settings
from fidgraph.workers.followers_backfill import FollowersBackfillWorker

logger = logging.getLogger(__name__)


async def run_backfill_worker():
    """Build clients, run the worker until signalled, then close clients."""
    settings = get_settings()
    worker_name = os.getenv('WORKER_NAME', 'followers-backfill-1')

    redis_client = await create_redis(settings)
    job_queue = await create_job_queue(settings, redis_client)
    hub = create_hub_client(settings)

    worker = FollowersBackfillWorker(
        job_queue=job_queue,
        hub_client=hub,
        graph_cache=create_graph_cache(redis_client, settings),
        queue_name=settings.backfill_queue,
        worker_name=worker_name,
        concurrency=settings.backfill_worker_concurrency,
        batch_size=settings.backfill_batch_size,
        page_size=settings.backfill_page_size,
        snapshot_ttl=settings.graph_cache_ttl,
        max_attempts=settings.queue_max_attempts,
    )

    try:
        await worker.start()
    finally:
        await close_all(hub, job_queue)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(run_backfill_worker())


if __name__ == "__main__":
    main()
