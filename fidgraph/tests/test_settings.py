"""
Settings Tests
==============
"""
import pytest

from fidgraph.config.connections import close_all, create_graph_cache, create_hub_client
from fidgraph.config.settings import Settings
from fidgraph.services.graph_counts import GraphCountService
from fidgraph.services.rate_limiter import AsyncTokenBucket


def test_defaults(monkeypatch):
    for name in ('ENVIRONMENT', 'HUB_HTTP_URL', 'FAST_COUNT_CAP', 'GRAPH_CACHE_TTL'):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.hub_http_url == 'http://localhost:3381'
    assert settings.fast_count_cap == 500
    assert settings.full_count_page_size == 1000
    assert settings.full_count_max_pages == 10000
    assert settings.full_count_max_items == 1_000_000
    assert settings.backfill_batch_size == 100
    assert settings.backfill_worker_concurrency == 10
    assert settings.backfill_interval_seconds == 43200
    assert settings.graph_cache_ttl is None
    assert not settings.is_production


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('ENVIRONMENT', 'Production')
    monkeypatch.setenv('HUB_HTTP_URL', 'http://hub.internal:2281/')
    monkeypatch.setenv('FAST_COUNT_CAP', '250')
    monkeypatch.setenv('GRAPH_CACHE_TTL', '86400')

    settings = Settings(_env_file=None)

    assert settings.is_production
    assert settings.hub_http_url == 'http://hub.internal:2281'
    assert settings.fast_count_cap == 250
    assert settings.graph_cache_ttl == 86400


@pytest.mark.parametrize('value', ['0', ''])
def test_zero_ttl_means_no_expiry(monkeypatch, value):
    monkeypatch.setenv('GRAPH_CACHE_TTL', value)
    monkeypatch.setenv('FULL_COUNT_DEADLINE_SECONDS', value)

    settings = Settings(_env_file=None)

    assert settings.graph_cache_ttl is None
    assert settings.full_count_deadline_seconds is None


def test_service_limits_follow_settings(settings, hub, graph_cache):
    tuned = settings.model_copy(update={'full_count_max_pages': 5, 'full_count_deadline_seconds': 2.5})

    service = GraphCountService(hub, graph_cache, tuned)

    assert service.limits.max_pages == 5
    assert service.limits.deadline_seconds == 2.5
    assert service.limits.page_size == 1000


def test_rate_limit_zero_is_unlimited():
    assert AsyncTokenBucket.from_rate(0) is None
    assert AsyncTokenBucket.from_rate(-1) is None
    assert isinstance(AsyncTokenBucket.from_rate(20), AsyncTokenBucket)


@pytest.mark.asyncio
async def test_factories_use_settings(settings, fake_redis):
    tuned = settings.model_copy(update={
        'graph_cache_namespace': 'fg', 'graph_cache_ttl': 60, 'hub_rate_limit_per_second': 5,
    })
    cache = create_graph_cache(fake_redis, tuned)
    hub = create_hub_client(tuned)

    assert cache.count_key(3) == 'fg:follow_count:3'
    assert cache.default_ttl == 60
    assert hub.base_url == tuned.hub_http_url
    assert hub.rate_limiter is not None

    await close_all(hub, None)
