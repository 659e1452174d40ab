"""
GraphCountService - the operations the API layer calls.

- get_follow_count(fid, mode)                      → FollowCounts
- get_reaction_count(fid, target_hash, kind, mode) → ReactionCount
- get_reaction_counts(fid, target_hash, mode)      → ReactionCounts (likes + recasts)
- get_replies_count(fid, target_hash, mode)        → ReplyCount
- trigger_backfill()                               → job id, or None if one is pending

Modes:
- 'fast': one bounded page per count (approximate above the cap)
- 'full': walk every page, within soft safety limits

Follow counts come from the backfilled GraphCache when present; a cache hit
makes no hub calls at all. Nothing here raises on hub or cache failure: the
result degrades to partial numbers or zero.
"""
import asyncio
import logging
from typing import Optional

from fidgraph.config.settings import Settings
from fidgraph.models.edges import EdgeQuery, ReactionKind
from fidgraph.models.graph import FollowCounts, ReactionCount, ReactionCounts, ReplyCount
from fidgraph.services.counting import CountLimits, CountResult, fast_count, full_count
from fidgraph.services.graph_cache import GraphCache
from fidgraph.services.hub_client import HubClient
from fidgraph.services.job_queue import JobQueue
from fidgraph.workers.backfill_scheduler import trigger_backfill

logger = logging.getLogger(__name__)

FAST = 'fast'
FULL = 'full'
MODES = (FAST, FULL)


class GraphCountService:

    def __init__(
        self,
        hub_client: HubClient,
        graph_cache: GraphCache,
        settings: Settings,
        job_queue: Optional[JobQueue] = None,
    ):
        self.hub = hub_client
        self.cache = graph_cache
        self.settings = settings
        self.job_queue = job_queue
        self.limits = CountLimits(
            page_size=settings.full_count_page_size,
            max_pages=settings.full_count_max_pages,
            max_items=settings.full_count_max_items,
            deadline_seconds=settings.full_count_deadline_seconds,
        )

    async def count(self, query: EdgeQuery, mode: str = FAST) -> CountResult:
        """Run one sub-count with the strategy for `mode`"""
        if mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {mode!r}")
        if mode == FULL:
            return await full_count(self.hub, query, self.limits)
        return await fast_count(self.hub, query, cap=self.settings.fast_count_cap)

    async def get_follow_count(self, fid: int, mode: str = FAST) -> FollowCounts:
        cached = await self.cache.get_counts(fid)
        if cached is not None:
            logger.debug(
                f"Follow counts for fid {fid} from cache: "
                f"{cached.follower_count} followers, {cached.following_count} following"
            )
            return FollowCounts(followers=cached.follower_count, following=cached.following_count)

        logger.debug(f"Cache miss for fid {fid}, counting from hub ({mode})")
        followers, following = await asyncio.gather(
            self.count(EdgeQuery.followers(fid), mode),
            self.count(EdgeQuery.following(fid), mode),
        )
        return FollowCounts(followers=followers.count, following=following.count)

    async def get_reaction_count(
        self,
        fid: int,
        target_hash: str,
        kind: ReactionKind,
        mode: str = FAST,
    ) -> ReactionCount:
        result = await self.count(EdgeQuery.reactions(fid, target_hash, ReactionKind(kind)), mode)
        return ReactionCount(count=result.count)

    async def get_reaction_counts(self, fid: int, target_hash: str, mode: str = FAST) -> ReactionCounts:
        likes, recasts = await asyncio.gather(
            self.get_reaction_count(fid, target_hash, ReactionKind.LIKE, mode),
            self.get_reaction_count(fid, target_hash, ReactionKind.RECAST, mode),
        )
        return ReactionCounts(likes=likes.count, recasts=recasts.count)

    async def get_replies_count(self, fid: int, target_hash: str, mode: str = FAST) -> ReplyCount:
        """Direct replies to the cast (fid, target_hash); deleted replies do not count"""
        result = await self.count(EdgeQuery.replies(fid, target_hash), mode)
        return ReplyCount(count=result.count)

    async def trigger_backfill(self) -> Optional[str]:
        if self.job_queue is None:
            raise RuntimeError("GraphCountService was created without a job queue")
        return await trigger_backfill(self.job_queue, self.settings)
