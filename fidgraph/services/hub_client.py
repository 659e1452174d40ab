"""
HubClient - read-only HTTP client for the hub's /v1 API.

Only the calls the count engine needs:
- list_edges(query, page_size, page_token) → EdgePage
- get_info(db_stats) → HubInfo

Every response is validated against the pydantic wire models before it is
handed to callers. Failures are raised as HubError subclasses; deciding
whether to degrade is the caller's job.

Usage:
    client = HubClient("http://localhost:3381")
    page = await client.list_edges(EdgeQuery.followers(3), page_size=1000)
    await client.close()
"""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from fidgraph.models.edges import EdgePage, EdgeQuery, HubInfo, MessagesResponse
from fidgraph.services.errors import HubResponseError, HubUnavailableError
from fidgraph.services.rate_limiter import AsyncTokenBucket

logger = logging.getLogger(__name__)


class HubClient:
    """
    Hub HTTP API client.

    One httpx.AsyncClient is shared by all concurrent calls; construct once at
    process start and close on shutdown.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 25.0,
        rate_limiter: Optional[AsyncTokenBucket] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.rate_limiter = rate_limiter
        self.requests_made = 0
        self.http = httpx.AsyncClient(
            base_url=f"{self.base_url}/v1/",
            timeout=timeout,
            headers={'Content-Type': 'application/json'},
            transport=transport,
        )

    async def close(self):
        """Close the underlying connection pool"""
        await self.http.aclose()

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """GET /v1/<endpoint> and return decoded JSON"""
        if self.rate_limiter:
            await self.rate_limiter.acquire()

        clean_params = {k: v for k, v in params.items() if v is not None}
        self.requests_made += 1
        logger.debug(f"GET /v1/{endpoint} {clean_params}")

        try:
            response = await self.http.get(endpoint, params=clean_params)
        except httpx.TimeoutException as e:
            raise HubUnavailableError(f"Timeout calling {endpoint}: {e}", endpoint=endpoint) from e
        except httpx.RequestError as e:
            raise HubUnavailableError(f"Request to {endpoint} failed: {e}", endpoint=endpoint) from e

        if response.status_code != 200:
            detail = ''
            try:
                detail = response.json().get('details', '')
            except (ValueError, AttributeError):
                pass
            raise HubUnavailableError(
                detail or f"HTTP {response.status_code} from {endpoint}",
                status=response.status_code,
                endpoint=endpoint,
            )

        try:
            return response.json()
        except ValueError as e:
            raise HubResponseError(f"Invalid JSON from {endpoint}: {e}", endpoint=endpoint) from e

    async def list_edges(
        self,
        query: EdgeQuery,
        page_size: int,
        page_token: Optional[str] = None,
    ) -> EdgePage:
        """
        Fetch one page of edges matching `query`.

        The hub may return fewer items than page_size.
        """
        params: Dict[str, Any] = query.params()
        params['pageSize'] = page_size
        if page_token:
            params['pageToken'] = page_token

        payload = await self._get(query.endpoint, params)
        try:
            response = MessagesResponse.model_validate(payload)
        except ValidationError as e:
            raise HubResponseError(
                f"Unexpected {query.endpoint} payload: {e.error_count()} validation error(s)",
                endpoint=query.endpoint,
            ) from e
        return EdgePage.from_response(response)

    async def get_info(self, db_stats: bool = False) -> HubInfo:
        """Hub info; db_stats=True includes registration counts"""
        payload = await self._get('info', {'dbstats': 1} if db_stats else {})
        try:
            return HubInfo.model_validate(payload)
        except ValidationError as e:
            raise HubResponseError(f"Unexpected info payload: {e}", endpoint='info') from e

    async def get_fid_registration_count(self) -> int:
        """Total number of registered fids reported by the hub"""
        info = await self.get_info(db_stats=True)
        if info.db_stats is None or info.db_stats.num_fid_registrations is None:
            raise HubResponseError("info response has no dbStats.numFidRegistrations", endpoint='info')
        return info.db_stats.num_fid_registrations
