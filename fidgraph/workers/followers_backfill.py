"""
FollowersBackfillWorker - authoritative follow graph refresh for every fid

Jobs on the followers-backfill queue:

1. createBatches
   - Enumeration: ask the hub how many fids are registered, assume the dense
     range 1..N
   - Batching: partition into fixed-size batches, enqueue one processBatch-N
     job per partition

2. processBatch-N
   - Every fid of the batch is processed concurrently
   - Per fid: walk followers and following exhaustively (concurrently), then
     write one GraphSnapshot to the cache (single transaction)
   - A failing fid is logged and reported; the rest of the batch carries on
   - The job completes even when every fid fails. Only whole-job failures
     (enumeration, a crash) go back to the queue for a retry

Re-running a batch overwrites snapshots with freshly computed ones, so queue
redelivery is harmless.
"""
import asyncio
import logging
import math
from typing import List, Optional

from fidgraph.models.edges import EdgeQuery
from fidgraph.models.graph import BackfillBatch, BatchReport, GraphSnapshot, Job
from fidgraph.services.counting import collect_edge_ids
from fidgraph.services.errors import BackfillError, HubError, SubjectBackfillError
from fidgraph.services.graph_cache import GraphCache
from fidgraph.services.hub_client import HubClient
from fidgraph.services.job_queue import JobQueue
from fidgraph.services.worker_base import BaseWorker

logger = logging.getLogger(__name__)

QUEUE_NAME = 'followers-backfill'
CREATE_BATCHES = 'createBatches'
PROCESS_BATCH_PREFIX = 'processBatch-'

DEFAULT_BATCH_SIZE = 100


def partition_fids(total: int, batch_size: int = DEFAULT_BATCH_SIZE) -> List[BackfillBatch]:
    """
    Split 1..total into ceil(total / batch_size) contiguous batches.

    Batches cover the range with no gaps or overlaps; only the last one may
    be short.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    if total <= 0:
        return []

    total_batches = math.ceil(total / batch_size)
    return [
        BackfillBatch(
            batch_number=index + 1,
            fids=list(range(start, min(start + batch_size, total + 1))),
            total_batches=total_batches,
        )
        for index, start in enumerate(range(1, total + 1, batch_size))
    ]


class FollowersBackfillWorker(BaseWorker):
    """
    Consumes createBatches / processBatch-N jobs.

    In-flight hub calls are bounded by concurrency x batch_size x 2; put a
    token bucket on the HubClient to keep that under the hub's rate limit.
    """

    unique_jobs = frozenset({CREATE_BATCHES})

    def __init__(
        self,
        job_queue: JobQueue,
        hub_client: HubClient,
        graph_cache: GraphCache,
        queue_name: str = QUEUE_NAME,
        worker_name: str = 'followers-backfill',
        concurrency: int = 10,
        batch_size: int = DEFAULT_BATCH_SIZE,
        page_size: int = 1000,
        snapshot_ttl: Optional[int] = None,
        max_attempts: int = 3,
    ):
        super().__init__(
            job_queue=job_queue,
            worker_name=worker_name,
            queue_name=queue_name,
            concurrency=concurrency,
            max_attempts=max_attempts,
        )
        self.hub = hub_client
        self.cache = graph_cache
        self.batch_size = batch_size
        self.page_size = page_size
        self.snapshot_ttl = snapshot_ttl

    async def process(self, job: Job):
        if job.name == CREATE_BATCHES:
            await self.create_batches()
        elif job.name.startswith(PROCESS_BATCH_PREFIX):
            await self.process_batch(BackfillBatch.from_dict(job.data))
        else:
            logger.warning(f"[{self.worker_name}] Ignoring unknown job {job.name}")

    # =========================================================================
    # Enumeration + batching
    # =========================================================================

    async def create_batches(self) -> List[BackfillBatch]:
        """
        Enqueue one processBatch job per partition of 1..N.

        Assumes fids are allocated densely from 1; N is the hub's
        registration count.
        """
        try:
            total = await self.hub.get_fid_registration_count()
        except HubError as e:
            raise BackfillError(f"Could not enumerate fids: {e}") from e

        batches = partition_fids(total, self.batch_size)
        logger.info(
            f"[{self.worker_name}] Creating {len(batches)} batches of {self.batch_size} "
            f"for fids 1..{total}"
        )

        for batch in batches:
            await self.job_queue.enqueue(self.queue_name, batch.job_name, batch.to_dict())

        logger.info(f"[{self.worker_name}] Enqueued {len(batches)} batch processing jobs")
        return batches

    # =========================================================================
    # Batch processing
    # =========================================================================

    async def process_batch(self, batch: BackfillBatch) -> BatchReport:
        logger.info(
            f"[{self.worker_name}] Processing batch {batch.batch_number}/{batch.total_batches} "
            f"with {len(batch.fids)} fids"
        )

        results = await asyncio.gather(
            *(self.backfill_fid(fid) for fid in batch.fids),
            return_exceptions=True,
        )

        report = BatchReport(batch_number=batch.batch_number, total_batches=batch.total_batches)
        for fid, result in zip(batch.fids, results):
            if isinstance(result, Exception):
                logger.error(f"[{self.worker_name}] Failed to backfill fid {fid}: {result}")
                report.failed[fid] = str(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                report.succeeded.append(fid)

        log = logger.warning if report.failed else logger.info
        log(f"[{self.worker_name}] Completed {report.summary()}")
        return report

    async def build_snapshot(self, fid: int) -> GraphSnapshot:
        """Walk both directions of fid's follow graph to the end"""
        try:
            (followers, newest_follower), (following, newest_following) = await asyncio.gather(
                collect_edge_ids(self.hub, EdgeQuery.followers(fid), self.page_size),
                collect_edge_ids(self.hub, EdgeQuery.following(fid), self.page_size),
            )
        except HubError as e:
            raise SubjectBackfillError(fid, f"hub walk failed: {e}") from e

        return GraphSnapshot.from_edges(
            fid=fid,
            followers=followers,
            following=following,
            last_updated_at=max(newest_follower, newest_following),
        )

    async def backfill_fid(self, fid: int) -> GraphSnapshot:
        snapshot = await self.build_snapshot(fid)
        if not await self.cache.put(snapshot, ttl=self.snapshot_ttl):
            raise SubjectBackfillError(fid, "cache write failed")

        logger.debug(
            f"[{self.worker_name}] Cached fid {fid}: {snapshot.follower_count} followers, "
            f"{snapshot.following_count} following"
        )
        return snapshot
