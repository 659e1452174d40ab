"""
Redis-based job queue with at-least-once delivery

Producers LPUSH onto the wait list; consumers BLMOVE from its tail into their
own processing list and remove the job from there once handled (ack). A
consumer that crashes leaves its jobs in the processing list, and recover()
puts them back on the wait list when that consumer restarts.

Keys (per queue):
- queue:{name}:wait              → pending jobs
- queue:{name}:active:{consumer} → jobs being processed by one consumer
- queue:{name}:failed            → jobs that exhausted their attempts
- queue:{name}:delayed           → sorted set of jobs due at a timestamp
- queue:{name}:repeat            → repeatable job definitions
- queue:{name}:unique:{job}      → marker held while a unique job is pending
"""
import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import redis.asyncio as redis

from fidgraph.models.graph import Job

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Delivery:
    """A dequeued job plus what is needed to ack it"""
    job: Job
    raw: str
    consumer: str


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def next_occurrence(every_seconds: int, now: float) -> int:
    """
    Next run time aligned to multiples of the interval since the epoch.

    every_seconds=43200 fires at 00:00 and 12:00 UTC, like '0 */12 * * *'.
    """
    return (int(now) // every_seconds + 1) * every_seconds


class JobQueue:
    """
    Redis-based job queue system

    Each job is consumed by exactly ONE consumer at a time; a job may be
    delivered again after a consumer crash, so handlers must be idempotent.
    """

    def __init__(self, redis_url: str = None, client=None):
        self.redis = client
        self.redis_url = redis_url

    async def connect(self):
        """Initialize Redis connection"""
        if self.redis is None:
            self.redis = await redis.from_url(self.redis_url, decode_responses=True)

    async def close(self):
        """Close Redis connection"""
        if self.redis:
            await self.redis.aclose()

    # Keys

    @staticmethod
    def wait_key(queue_name: str) -> str:
        return f"queue:{queue_name}:wait"

    @staticmethod
    def active_key(queue_name: str, consumer: str) -> str:
        return f"queue:{queue_name}:active:{consumer}"

    @staticmethod
    def failed_key(queue_name: str) -> str:
        return f"queue:{queue_name}:failed"

    @staticmethod
    def delayed_key(queue_name: str) -> str:
        return f"queue:{queue_name}:delayed"

    @staticmethod
    def repeat_key(queue_name: str) -> str:
        return f"queue:{queue_name}:repeat"

    @staticmethod
    def unique_key(queue_name: str, job_name: str) -> str:
        return f"queue:{queue_name}:unique:{job_name}"

    # Producing

    async def enqueue(self, queue_name: str, job_name: str, data: Dict = None) -> str:
        """
        Add job to queue, returns the job id

        Example:
            await queue.enqueue('followers-backfill', 'processBatch-3', {
                'batchNumber': 3, 'fids': [...], 'totalBatches': 12
            })
        """
        job = Job(
            id=uuid.uuid4().hex,
            name=job_name,
            data=data or {},
            enqueued_at=_iso(time.time()),
        )
        await self.redis.lpush(self.wait_key(queue_name), json.dumps(job.to_dict()))
        return job.id

    async def enqueue_unique(
        self,
        queue_name: str,
        job_name: str,
        data: Dict = None,
        ttl: int = 900,
    ) -> Optional[str]:
        """
        Enqueue unless a job with the same name is already pending.

        The marker is released when a consumer picks the job up (or after
        `ttl` seconds). Returns None when the job was not enqueued.
        """
        acquired = await self.redis.set(self.unique_key(queue_name, job_name), '1', nx=True, ex=ttl)
        if not acquired:
            return None
        return await self.enqueue(queue_name, job_name, data)

    async def release_unique(self, queue_name: str, job_name: str):
        await self.redis.delete(self.unique_key(queue_name, job_name))

    async def schedule_repeat(
        self,
        queue_name: str,
        job_name: str,
        every_seconds: int,
        data: Dict = None,
        now: float = None,
    ) -> int:
        """
        Register a repeatable job; returns the first run timestamp.

        Idempotent: registering the same job again while its next occurrence
        is pending adds nothing, because occurrences have deterministic ids.
        """
        now = time.time() if now is None else now
        definition = {'name': job_name, 'data': data or {}, 'every': every_seconds}
        await self.redis.hset(self.repeat_key(queue_name), job_name, json.dumps(definition))
        run_at = next_occurrence(every_seconds, now)
        await self._add_occurrence(queue_name, definition, run_at)
        return run_at

    async def remove_repeat(self, queue_name: str, job_name: str):
        await self.redis.hdel(self.repeat_key(queue_name), job_name)

    async def _add_occurrence(self, queue_name: str, definition: Dict, run_at: int):
        job = Job(
            id=f"repeat:{definition['name']}:{run_at}",
            name=definition['name'],
            data=definition['data'],
            enqueued_at=_iso(run_at),
        )
        await self.redis.zadd(self.delayed_key(queue_name), {json.dumps(job.to_dict()): run_at}, nx=True)

    async def promote_due(self, queue_name: str, now: float = None) -> int:
        """
        Move due delayed jobs onto the wait list; returns how many moved.

        Safe with several schedulers running: ZREM decides which one claims
        an occurrence. Repeatable jobs are re-armed for their next run.
        """
        now = time.time() if now is None else now
        delayed = self.delayed_key(queue_name)
        due = await self.redis.zrangebyscore(delayed, '-inf', now)
        moved = 0

        for raw in due:
            if not await self.redis.zrem(delayed, raw):
                continue  # claimed by another scheduler
            await self.redis.lpush(self.wait_key(queue_name), raw)
            moved += 1

            job = Job.from_dict(json.loads(raw))
            definition_raw = await self.redis.hget(self.repeat_key(queue_name), job.name)
            if job.id.startswith('repeat:') and definition_raw:
                definition = json.loads(definition_raw)
                await self._add_occurrence(
                    queue_name, definition, next_occurrence(definition['every'], now)
                )

        return moved

    # Consuming

    async def dequeue(self, queue_name: str, consumer: str, timeout: int = 5) -> Optional[Delivery]:
        """
        Blocking move of the oldest job into `consumer`'s processing list

        Blocks until job available or timeout
        Returns None on timeout

        A payload that does not decode to a job is moved to the failed list
        and the next job is taken.
        """
        active = self.active_key(queue_name, consumer)
        while True:
            raw = await self.redis.blmove(
                self.wait_key(queue_name),
                active,
                timeout,
                src='RIGHT',
                dest='LEFT',
            )
            if raw is None:
                return None
            try:
                return Delivery(job=Job.from_dict(json.loads(raw)), raw=raw, consumer=consumer)
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Discarding malformed job on {queue_name}: {e} ({raw[:200]!r})")
                await self._quarantine(queue_name, active, raw, f"malformed job: {e}")

    async def _quarantine(self, queue_name: str, active: str, raw: str, error: str):
        """Park an undecodable payload on the failed list, wrapped so it stays readable"""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.lrem(active, 1, raw)
            pipe.lpush(self.failed_key(queue_name), json.dumps({'raw': raw, 'error': error}))
            await pipe.execute()

    async def ack(self, queue_name: str, delivery: Delivery):
        """Job handled: drop it from the processing list"""
        await self.redis.lrem(self.active_key(queue_name, delivery.consumer), 1, delivery.raw)

    async def retry_or_fail(self, queue_name: str, delivery: Delivery, max_attempts: int, error: str) -> bool:
        """
        Handler raised: requeue with attempts+1, or park on the failed list.

        Returns True if the job was requeued.
        """
        job = delivery.job
        attempts = job.attempts + 1
        retry = attempts < max_attempts
        payload = job.to_dict()
        payload['attempts'] = attempts
        if not retry:
            payload['error'] = error

        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.lrem(self.active_key(queue_name, delivery.consumer), 1, delivery.raw)
            target = self.wait_key(queue_name) if retry else self.failed_key(queue_name)
            pipe.lpush(target, json.dumps(payload))
            await pipe.execute()
        return retry

    async def recover(self, queue_name: str, consumer: str) -> int:
        """
        Requeue jobs left in `consumer`'s processing list by a crashed run.

        Recovered jobs go to the consuming end of the wait list so they run
        before newer work.
        """
        recovered = 0
        while True:
            raw = await self.redis.lmove(
                self.active_key(queue_name, consumer),
                self.wait_key(queue_name),
                src='RIGHT',
                dest='RIGHT',
            )
            if raw is None:
                return recovered
            recovered += 1

    # Introspection

    async def queue_length(self, queue_name: str) -> int:
        """Get current queue length"""
        return await self.redis.llen(self.wait_key(queue_name))

    async def failed_jobs(self, queue_name: str, limit: int = 100) -> List[Dict]:
        raws = await self.redis.lrange(self.failed_key(queue_name), 0, limit - 1)
        return [json.loads(raw) for raw in raws]
