"""
HubClient Tests
===============

Request shaping and error mapping, using httpx.MockTransport in place of a hub.
"""
import json

import httpx
import pytest

from fidgraph.models.edges import EdgeQuery, ReactionKind
from fidgraph.services.errors import HubResponseError, HubUnavailableError
from fidgraph.services.hub_client import HubClient


def link_message(fid: int, target: int, timestamp: int = 100, kind: str = 'MESSAGE_TYPE_LINK_ADD'):
    return {
        'data': {
            'type': kind,
            'fid': fid,
            'timestamp': timestamp,
            'network': 'FARCASTER_NETWORK_MAINNET',
            'linkBody': {'type': 'follow', 'targetFid': target},
        },
        'hash': f'0x{fid:04x}',
        'signer': '0xsigner',
    }


def reaction_message(fid: int, target_fid: int, target_hash: str, kind: str = 'REACTION_TYPE_LIKE'):
    return {
        'data': {
            'type': 'MESSAGE_TYPE_REACTION_ADD',
            'fid': fid,
            'timestamp': 200,
            'reactionBody': {
                'type': kind,
                'targetCastId': {'fid': target_fid, 'hash': target_hash},
            },
        },
        'hash': '0xreaction',
    }


def cast_message(fid: int, parent_fid: int, parent_hash: str):
    return {
        'data': {
            'type': 'MESSAGE_TYPE_CAST_ADD',
            'fid': fid,
            'timestamp': 300,
            'castAddBody': {
                'text': 'gm',
                'embeds': [],
                'mentions': [],
                'parentCastId': {'fid': parent_fid, 'hash': parent_hash},
            },
        },
        'hash': f'0xreply{fid}',
    }


def make_client(handler) -> HubClient:
    return HubClient('http://hub.test:3381/', transport=httpx.MockTransport(handler))


class TestListEdges:

    @pytest.mark.asyncio
    async def test_followers_request_and_parse(self):
        seen = []

        def handler(request: httpx.Request):
            seen.append(request)
            return httpx.Response(200, json={
                'messages': [link_message(1, 7), link_message(2, 7, kind='MESSAGE_TYPE_LINK_REMOVE')],
                'nextPageToken': 'abc',
            })

        client = make_client(handler)
        page = await client.list_edges(EdgeQuery.followers(7), page_size=1000, page_token='prev')
        await client.close()

        request = seen[0]
        assert request.url.path == '/v1/linksByTargetFid'
        assert request.url.params['target_fid'] == '7'
        assert request.url.params['link_type'] == 'follow'
        assert request.url.params['pageSize'] == '1000'
        assert request.url.params['pageToken'] == 'prev'

        assert page.next_page_token == 'abc'
        assert page.item_count == 2
        first, second = page.edges
        assert (first.source_fid, first.target_fid, first.is_addition) == (1, 7, True)
        assert second.is_addition is False
        assert client.requests_made == 1

    @pytest.mark.asyncio
    async def test_first_page_sends_no_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={'messages': []})

        client = make_client(handler)
        page = await client.list_edges(EdgeQuery.following(3), page_size=500)
        await client.close()

        assert seen[0].url.path == '/v1/linksByFid'
        assert seen[0].url.params['fid'] == '3'
        assert 'pageToken' not in seen[0].url.params
        assert page.edges == ()
        assert page.next_page_token is None

    @pytest.mark.asyncio
    async def test_reactions_request_and_parse(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={
                'messages': [reaction_message(9, 7, '0xcast', 'REACTION_TYPE_RECAST')],
            })

        client = make_client(handler)
        query = EdgeQuery.reactions(7, '0xcast', ReactionKind.RECAST)
        page = await client.list_edges(query, page_size=100)
        await client.close()

        params = seen[0].url.params
        assert seen[0].url.path == '/v1/reactionsByCast'
        assert params['target_fid'] == '7'
        assert params['target_hash'] == '0xcast'
        assert params['reaction_type'] == 'Recast'

        edge = page.edges[0]
        assert edge.edge_type == 'REACTION_TYPE_RECAST'
        assert edge.target_hash == '0xcast'
        assert query.matches(edge)

    @pytest.mark.asyncio
    async def test_replies_request_and_parse(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={
                'messages': [
                    cast_message(9, 7, '0xcast'),
                    {
                        'data': {
                            'type': 'MESSAGE_TYPE_CAST_REMOVE',
                            'fid': 10,
                            'timestamp': 301,
                            'castRemoveBody': {'targetHash': '0xreply10'},
                        },
                    },
                ],
            })

        client = make_client(handler)
        query = EdgeQuery.replies(7, '0xcast')
        page = await client.list_edges(query, page_size=500)
        await client.close()

        params = seen[0].url.params
        assert seen[0].url.path == '/v1/castsByParent'
        assert params['fid'] == '7'
        assert params['hash'] == '0xcast'
        assert params['pageSize'] == '500'

        reply, removal = page.edges
        assert (reply.source_fid, reply.target_fid, reply.target_hash) == (9, 7, '0xcast')
        assert query.matches(reply)
        assert not removal.is_addition
        assert not query.matches(removal)

    @pytest.mark.asyncio
    async def test_http_error_uses_details(self):
        def handler(request):
            return httpx.Response(400, json={'errCode': 'bad_request', 'details': 'fid not found'})

        client = make_client(handler)
        with pytest.raises(HubUnavailableError) as exc:
            await client.list_edges(EdgeQuery.followers(7), page_size=10)
        await client.close()

        assert exc.value.status == 400
        assert exc.value.endpoint == 'linksByTargetFid'
        assert 'fid not found' in str(exc.value)

    @pytest.mark.asyncio
    async def test_server_error_without_json(self):
        def handler(request):
            return httpx.Response(502, text='bad gateway')

        client = make_client(handler)
        with pytest.raises(HubUnavailableError) as exc:
            await client.list_edges(EdgeQuery.followers(7), page_size=10)
        await client.close()

        assert exc.value.status == 502

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(handler)
        with pytest.raises(HubUnavailableError):
            await client.list_edges(EdgeQuery.followers(7), page_size=10)
        await client.close()

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(HubUnavailableError):
            await client.list_edges(EdgeQuery.followers(7), page_size=10)
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b'{not json')

        client = make_client(handler)
        with pytest.raises(HubResponseError):
            await client.list_edges(EdgeQuery.followers(7), page_size=10)
        await client.close()

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        def handler(request):
            return httpx.Response(200, content=json.dumps({'messages': [{'data': {'type': 'NOPE'}}]}))

        client = make_client(handler)
        with pytest.raises(HubResponseError):
            await client.list_edges(EdgeQuery.followers(7), page_size=10)
        await client.close()


class TestInfo:

    @pytest.mark.asyncio
    async def test_registration_count(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={
                'version': '1.2.3',
                'isSyncing': False,
                'dbStats': {'numMessages': 10, 'numFidRegistrations': 812345},
            })

        client = make_client(handler)
        total = await client.get_fid_registration_count()
        await client.close()

        assert total == 812345
        assert seen[0].url.path == '/v1/info'
        assert seen[0].url.params['dbstats'] == '1'

    @pytest.mark.asyncio
    async def test_missing_db_stats(self):
        def handler(request):
            return httpx.Response(200, json={'version': '1.2.3'})

        client = make_client(handler)
        with pytest.raises(HubResponseError):
            await client.get_fid_registration_count()
        await client.close()
