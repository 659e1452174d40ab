"""
GraphCache Tests
================

Snapshot layout, best-effort failure handling and namespace clearing.
"""
import json

import pytest

from fidgraph.models.graph import GraphSnapshot
from fidgraph.services.graph_cache import GraphCache, dumps


def snapshot(fid: int = 7) -> GraphSnapshot:
    return GraphSnapshot.from_edges(fid, followers=[3, 1, 2], following=[9], last_updated_at=1234)


class TestPut:

    @pytest.mark.asyncio
    async def test_writes_three_keys(self, graph_cache, fake_redis):
        assert await graph_cache.put(snapshot())

        counts = json.loads(fake_redis.strings['test:follow_count:7'])
        assert counts == {'fid': 7, 'followerCount': 3, 'followingCount': 1, 'lastUpdated': 1234}
        assert json.loads(fake_redis.strings['test:followers:7']) == [3, 1, 2]
        assert json.loads(fake_redis.strings['test:following:7']) == [9]

    @pytest.mark.asyncio
    async def test_no_ttl_by_default(self, graph_cache, fake_redis):
        await graph_cache.put(snapshot())

        assert fake_redis.ttls['test:follow_count:7'] is None

    @pytest.mark.asyncio
    async def test_uniform_ttl(self, fake_redis):
        cache = GraphCache(fake_redis, namespace='test', default_ttl=86400)
        await cache.put(snapshot())

        assert {fake_redis.ttls[key] for key in cache._keys(7)} == {86400}

    @pytest.mark.asyncio
    async def test_same_snapshot_same_bytes(self, graph_cache, fake_redis):
        await graph_cache.put(snapshot())
        first = dict(fake_redis.strings)
        await graph_cache.put(snapshot())

        assert fake_redis.strings == first

    @pytest.mark.asyncio
    async def test_failure_returns_false(self, graph_cache, fake_redis):
        fake_redis.fail = True

        assert await graph_cache.put(snapshot()) is False


class TestReads:

    @pytest.mark.asyncio
    async def test_round_trip(self, graph_cache):
        await graph_cache.put(snapshot())

        result = await graph_cache.get(7)

        assert result == snapshot()
        assert result.follower_count == 3

    @pytest.mark.asyncio
    async def test_counts_only(self, graph_cache):
        await graph_cache.put(snapshot())

        counts = await graph_cache.get_counts(7)

        assert counts.follower_count == 3
        assert counts.following_count == 1
        assert counts.last_updated_at == 1234

    @pytest.mark.asyncio
    async def test_id_lists(self, graph_cache):
        await graph_cache.put(snapshot())

        assert await graph_cache.get_followers(7) == [3, 1, 2]
        assert await graph_cache.get_following(7) == [9]

    @pytest.mark.asyncio
    async def test_miss(self, graph_cache):
        assert await graph_cache.get(7) is None
        assert await graph_cache.get_counts(7) is None
        assert await graph_cache.get_followers(7) is None

    @pytest.mark.asyncio
    async def test_partial_snapshot_is_a_miss(self, graph_cache, fake_redis):
        await graph_cache.put(snapshot())
        del fake_redis.strings['test:following:7']

        assert await graph_cache.get(7) is None

    @pytest.mark.asyncio
    async def test_malformed_entry_is_a_miss(self, graph_cache, fake_redis):
        fake_redis.strings['test:follow_count:7'] = '{"fid": 7'
        fake_redis.strings['test:followers:7'] = 'not a list'

        assert await graph_cache.get_counts(7) is None
        assert await graph_cache.get_followers(7) is None

    @pytest.mark.asyncio
    async def test_redis_down_is_a_miss(self, graph_cache, fake_redis):
        await graph_cache.put(snapshot())
        fake_redis.fail = True

        assert await graph_cache.get(7) is None
        assert await graph_cache.get_counts(7) is None
        assert await graph_cache.get_following(7) is None


class TestInvalidation:

    @pytest.mark.asyncio
    async def test_delete(self, graph_cache):
        await graph_cache.put(snapshot(7))
        await graph_cache.put(snapshot(8))

        assert await graph_cache.delete(7)

        assert await graph_cache.get(7) is None
        assert await graph_cache.get(8) is not None

    @pytest.mark.asyncio
    async def test_delete_failure(self, graph_cache, fake_redis):
        fake_redis.fail = True

        assert await graph_cache.delete(7) is False

    @pytest.mark.asyncio
    async def test_clear_only_touches_namespace(self, graph_cache, fake_redis):
        await graph_cache.put(snapshot(7))
        await graph_cache.put(snapshot(8))
        await fake_redis.lpush('queue:followers-backfill:wait', 'job')
        await fake_redis.set('other:follow_count:7', '{}')

        removed = await graph_cache.clear()

        assert removed == 6
        assert await graph_cache.get(7) is None
        assert 'other:follow_count:7' in fake_redis.strings
        assert await fake_redis.llen('queue:followers-backfill:wait') == 1

    @pytest.mark.asyncio
    async def test_clear_failure(self, graph_cache, fake_redis):
        fake_redis.fail = True

        assert await graph_cache.clear() == 0


def test_dumps_is_canonical():
    assert dumps({'b': 1, 'a': [1, 2]}) == '{"a":[1,2],"b":1}'
