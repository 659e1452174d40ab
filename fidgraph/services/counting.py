"""
Count strategies built on EdgePageIterator.

- fast_count: one bounded page. Approximate lower bound, exact when the true
  cardinality is at most the cap.
- full_count: walk every page, with soft safety limits (pages, items,
  wall-clock). Hitting a limit or an upstream failure returns the partial sum.
- collect_edge_ids: authoritative walk for the backfill. No limits, and an
  upstream failure raises instead of returning a partial list.

All three count the same edges: EdgeQuery.matches decides, so a cached
snapshot agrees with a full count of the same upstream state.

None of these share state, so callers run independent counts (followers and
following, likes and recasts) concurrently with asyncio.gather.
"""
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from fidgraph.models.edges import EdgeQuery
from fidgraph.utils.pagination import EdgePageIterator

logger = logging.getLogger(__name__)

DEFAULT_FAST_CAP = 500
DEFAULT_PAGE_SIZE = 1000

# Stop reasons
EXHAUSTED = 'exhausted'
CAPPED = 'capped'
MAX_PAGES = 'max_pages'
MAX_ITEMS = 'max_items'
DEADLINE = 'deadline'
UPSTREAM_ERROR = 'upstream_error'


@dataclass(frozen=True)
class CountLimits:
    """Soft safety limits for full_count; None disables a limit"""
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: Optional[int] = 10000
    max_items: Optional[int] = 1_000_000
    deadline_seconds: Optional[float] = None

    @classmethod
    def unbounded(cls, page_size: int = DEFAULT_PAGE_SIZE) -> 'CountLimits':
        return cls(page_size=page_size, max_pages=None, max_items=None, deadline_seconds=None)


@dataclass(frozen=True)
class CountResult:
    count: int
    pages: int
    complete: bool  # False when truncated by a cap, a limit, or an upstream error
    stop_reason: str = EXHAUSTED


async def fast_count(client, query: EdgeQuery, cap: int = DEFAULT_FAST_CAP) -> CountResult:
    """
    Count matching additions on the first page of at most `cap` items.

    complete=False means the true total may be larger than `count`.
    """
    pages = EdgePageIterator(client, query, page_size=cap)
    count = 0
    async for page in pages:
        count = sum(1 for edge in page.edges if query.matches(edge))
        break

    if pages.error is not None:
        return CountResult(count=count, pages=pages.pages_fetched, complete=False,
                           stop_reason=UPSTREAM_ERROR)
    if pages.exhausted:
        return CountResult(count=count, pages=pages.pages_fetched, complete=True)
    return CountResult(count=count, pages=pages.pages_fetched, complete=False, stop_reason=CAPPED)


async def full_count(client, query: EdgeQuery, limits: CountLimits = CountLimits()) -> CountResult:
    """
    Count matching additions across all pages.

    Never raises for safety limits or upstream errors; both are expected
    degradation paths for very large graphs and return the sum so far.
    """
    started = time.monotonic()
    pages = EdgePageIterator(client, query, page_size=limits.page_size)
    count = 0
    stop_reason = EXHAUSTED

    async for page in pages:
        count += sum(1 for edge in page.edges if query.matches(edge))

        if pages.done:
            break
        if limits.max_pages is not None and pages.pages_fetched >= limits.max_pages:
            stop_reason = MAX_PAGES
            break
        if limits.max_items is not None and count >= limits.max_items:
            stop_reason = MAX_ITEMS
            break
        if limits.deadline_seconds is not None and time.monotonic() - started >= limits.deadline_seconds:
            stop_reason = DEADLINE
            break

    if pages.error is not None:
        stop_reason = UPSTREAM_ERROR

    if stop_reason != EXHAUSTED:
        logger.warning(
            f"full_count {query.describe()} stopped early ({stop_reason}) after "
            f"{pages.pages_fetched} page(s), partial count {count}"
        )
        return CountResult(count=count, pages=pages.pages_fetched, complete=False,
                           stop_reason=stop_reason)

    return CountResult(count=count, pages=pages.pages_fetched, complete=True)


async def collect_edge_ids(
    client,
    query: EdgeQuery,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Tuple[List[int], int]:
    """
    Exhaustively list the fids at the other end of matching edges.

    Returns (ids, newest edge timestamp). Raises HubError if the walk did not
    reach the end of data, so a partial list is never mistaken for a full one.
    """
    pages = EdgePageIterator(client, query, page_size=page_size)
    ids: List[int] = []
    newest = 0

    async for page in pages:
        for edge in page.edges:
            if not query.matches(edge):
                continue
            ids.append(query.related_fid(edge))
            newest = max(newest, edge.added_at)

    if pages.error is not None:
        raise pages.error
    logger.debug(f"Collected {len(ids)} ids for {query.describe()} in {pages.pages_fetched} page(s)")
    return ids, newest
