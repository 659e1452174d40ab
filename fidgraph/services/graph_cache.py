"""
GraphCache - Redis-backed read-through store of follow graph snapshots.

Each fid has three keys so a count lookup never loads the id lists:
    {ns}:follow_count:{fid}   → {"fid", "followerCount", "followingCount", "lastUpdated"}
    {ns}:followers:{fid}      → [fid, ...]
    {ns}:following:{fid}      → [fid, ...]

Best-effort by contract:
- reads return None on any Redis failure or undecodable value (fail open)
- writes and deletes log and swallow failures, returning False

Expiry: snapshots are kept until the next backfill overwrites them unless a
TTL is configured, in which case every write uses the same TTL.
"""
import json
import logging
from typing import Any, List, Optional

from redis.exceptions import RedisError

from fidgraph.models.graph import GraphCounts, GraphSnapshot

logger = logging.getLogger(__name__)


def dumps(value: Any) -> str:
    """Canonical JSON: equal values always serialize to equal bytes"""
    return json.dumps(value, sort_keys=True, separators=(',', ':'))


class GraphCache:
    """
    Snapshot cache keyed by fid.

    `redis` is a redis.asyncio client created with decode_responses=True; it
    is shared by concurrent callers without any extra locking since every
    operation is a single atomic command or a MULTI/EXEC block.
    """

    def __init__(self, redis, namespace: str = 'fidgraph', default_ttl: Optional[int] = None):
        self.redis = redis
        self.namespace = namespace
        self.default_ttl = default_ttl or None

    # Keys

    def count_key(self, fid: int) -> str:
        return f"{self.namespace}:follow_count:{fid}"

    def followers_key(self, fid: int) -> str:
        return f"{self.namespace}:followers:{fid}"

    def following_key(self, fid: int) -> str:
        return f"{self.namespace}:following:{fid}"

    def _keys(self, fid: int) -> List[str]:
        return [self.count_key(fid), self.followers_key(fid), self.following_key(fid)]

    # Reads

    async def get_counts(self, fid: int) -> Optional[GraphCounts]:
        """Aggregate counts only (one small key)"""
        try:
            raw = await self.redis.get(self.count_key(fid))
        except RedisError as e:
            logger.error(f"Error retrieving cached follow counts for fid {fid}: {e}")
            return None
        if raw is None:
            return None
        try:
            return GraphCounts.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding malformed follow count entry for fid {fid}: {e}")
            return None

    async def get_followers(self, fid: int) -> Optional[List[int]]:
        return await self._get_id_list(self.followers_key(fid), fid)

    async def get_following(self, fid: int) -> Optional[List[int]]:
        return await self._get_id_list(self.following_key(fid), fid)

    async def _get_id_list(self, key: str, fid: int) -> Optional[List[int]]:
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            logger.error(f"Error retrieving {key} for fid {fid}: {e}")
            return None
        return _decode_id_list(raw, key)

    async def get(self, fid: int) -> Optional[GraphSnapshot]:
        """
        Full snapshot (counts + both id lists) or None.

        All three keys are read in one MGET; a snapshot with any key missing
        is treated as absent.
        """
        try:
            raw_counts, raw_followers, raw_following = await self.redis.mget(self._keys(fid))
        except RedisError as e:
            logger.error(f"Error retrieving cached snapshot for fid {fid}: {e}")
            return None

        if raw_counts is None or raw_followers is None or raw_following is None:
            return None

        try:
            counts = GraphCounts.from_dict(json.loads(raw_counts))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding malformed snapshot for fid {fid}: {e}")
            return None
        followers = _decode_id_list(raw_followers, self.followers_key(fid))
        following = _decode_id_list(raw_following, self.following_key(fid))
        if followers is None or following is None:
            return None

        return GraphSnapshot(
            fid=fid,
            followers=followers,
            following=following,
            last_updated_at=counts.last_updated_at,
        )

    # Writes

    async def put(self, snapshot: GraphSnapshot, ttl: Optional[int] = None) -> bool:
        """
        Replace the snapshot for snapshot.fid.

        The three keys are written in one MULTI/EXEC transaction, so readers
        never observe a half-written snapshot. Returns False on failure.
        """
        ttl = ttl or self.default_ttl
        fid = snapshot.fid
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(self.count_key(fid), dumps(snapshot.counts.to_dict()), ex=ttl)
                pipe.set(self.followers_key(fid), dumps(snapshot.followers), ex=ttl)
                pipe.set(self.following_key(fid), dumps(snapshot.following), ex=ttl)
                await pipe.execute()
        except RedisError as e:
            logger.error(f"Error caching snapshot for fid {fid}: {e}")
            return False
        return True

    async def delete(self, fid: int) -> bool:
        try:
            await self.redis.delete(*self._keys(fid))
        except RedisError as e:
            logger.error(f"Error invalidating cached snapshot for fid {fid}: {e}")
            return False
        return True

    async def clear(self) -> int:
        """
        Delete every key in this cache's namespace.

        Uses SCAN rather than FLUSHDB because the job queue shares the
        database. Returns the number of keys removed (0 on failure).
        """
        removed = 0
        try:
            batch: List[str] = []
            async for key in self.redis.scan_iter(match=f"{self.namespace}:*", count=500):
                batch.append(key)
                if len(batch) >= 500:
                    removed += await self.redis.delete(*batch)
                    batch = []
            if batch:
                removed += await self.redis.delete(*batch)
        except RedisError as e:
            logger.error(f"Error clearing graph cache namespace {self.namespace}: {e}")
        return removed


def _decode_id_list(raw: Optional[str], key: str) -> Optional[List[int]]:
    if raw is None:
        return None
    try:
        value = json.loads(raw)
        return [int(item) for item in value]
    except (ValueError, TypeError) as e:
        logger.warning(f"Discarding malformed id list at {key}: {e}")
        return None
