"""
Cursor pagination over hub edge listings.

EdgePageIterator wraps the hub's pageToken contract. It stops on the first of:
1. upstream failure (HubError) - remembered on .error, logged once
2. empty / missing nextPageToken
3. end-of-stream sentinel token (a non-empty token that decodes to (null, null))
4. short page (fewer items than requested) - yielded, then stop

Rule 4 wins over a present token: hub tokens have been seen to point past the
end of data.
"""
import base64
import binascii
import logging
from typing import Optional

from fidgraph.models.edges import EdgePage, EdgeQuery
from fidgraph.services.errors import HubError

logger = logging.getLogger(__name__)


def _is_null_pair(text: str) -> bool:
    """'[null,null]', '(null, null)', 'null,null' (whitespace-insensitive)"""
    compact = ''.join(text.split()).strip('[]()')
    return compact.lower() == 'null,null'


def _b64_candidates(token: str):
    padded = token + '=' * (-len(token) % 4)
    for decode in (base64.b64decode, base64.urlsafe_b64decode):
        try:
            yield decode(padded).decode('utf-8')
        except (binascii.Error, ValueError):
            continue


def is_end_of_stream_token(token: Optional[str]) -> bool:
    """
    True if `token` is the hub's (null, null) end-of-stream marker.

    The marker is syntactically a non-empty token, so a naive
    `while token:` loop would keep paging forever.
    """
    if not token:
        return False
    if _is_null_pair(token):
        return True
    return any(_is_null_pair(text) for text in _b64_candidates(token))


class EdgePageIterator:
    """
    Lazy, finite, non-restartable sequence of EdgePages.

    Usage:
        pages = EdgePageIterator(client, EdgeQuery.followers(3), page_size=1000)
        async for page in pages:
            ...
        if pages.error:
            ...  # stopped early, results are partial

    Each step issues exactly one upstream call. Pages are strictly sequential
    since every token is only known after the previous response.
    """

    def __init__(self, client, query: EdgeQuery, page_size: int):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.client = client
        self.query = query
        self.page_size = page_size

        self.pages_fetched = 0
        self.exhausted = False  # reached the end of data
        self.error: Optional[HubError] = None
        self._next_token: Optional[str] = None
        self._done = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> EdgePage:
        if self._done:
            raise StopAsyncIteration

        try:
            page = await self.client.list_edges(self.query, self.page_size, self._next_token)
        except HubError as e:
            self.error = e
            self._done = True
            logger.warning(
                f"Pagination of {self.query.describe()} stopped after "
                f"{self.pages_fetched} page(s): {e}"
            )
            raise StopAsyncIteration

        self.pages_fetched += 1
        token = page.next_page_token

        if not token or is_end_of_stream_token(token) or page.item_count < self.page_size:
            self._done = True
            self.exhausted = True
        else:
            self._next_token = token

        return page

    @property
    def done(self) -> bool:
        return self._done
