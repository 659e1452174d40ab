"""
Connection Configuration
========================

Factories for the clients every process needs. Each process builds its
clients once at start-up, passes them to the services that need them, and
closes them on shutdown; nothing here is a module-level singleton.

    redis_client = await create_redis(settings)
    cache = create_graph_cache(redis_client, settings)
    queue = await create_job_queue(settings, redis_client)
    hub = create_hub_client(settings)
    ...
    await close_all(hub, queue)
"""
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from fidgraph.config.settings import Settings
from fidgraph.services.errors import CacheUnavailable
from fidgraph.services.graph_cache import GraphCache
from fidgraph.services.hub_client import HubClient
from fidgraph.services.job_queue import JobQueue
from fidgraph.services.rate_limiter import AsyncTokenBucket

logger = logging.getLogger(__name__)


async def create_redis(settings: Settings, check: bool = True):
    """Create a Redis client; with check=True, fail fast if Redis is unreachable"""
    client = redis.from_url(settings.redis_url, decode_responses=True)
    if check:
        try:
            await client.ping()
        except RedisError as e:
            await client.aclose()
            raise CacheUnavailable(f"Redis at {settings.redis_url} is unreachable: {e}") from e
    logger.info(f"Connected to Redis at {settings.redis_url}")
    return client


def create_graph_cache(redis_client, settings: Settings) -> GraphCache:
    return GraphCache(
        redis_client,
        namespace=settings.graph_cache_namespace,
        default_ttl=settings.graph_cache_ttl,
    )


async def create_job_queue(settings: Settings, redis_client=None) -> JobQueue:
    """Create and connect the job queue, sharing `redis_client` when given"""
    queue = JobQueue(settings.redis_url, client=redis_client)
    await queue.connect()
    return queue


def create_hub_client(settings: Settings) -> HubClient:
    return HubClient(
        settings.hub_http_url,
        timeout=settings.hub_timeout_seconds,
        rate_limiter=AsyncTokenBucket.from_rate(settings.hub_rate_limit_per_second),
    )


async def close_all(*resources):
    """Close clients in order, logging (not raising) individual failures"""
    for resource in resources:
        if resource is None:
            continue
        try:
            close = getattr(resource, 'aclose', None) or resource.close
            await close()
        except Exception as e:
            logger.warning(f"Error closing {type(resource).__name__}: {e}")
