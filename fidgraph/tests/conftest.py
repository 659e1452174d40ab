"""
Pytest configuration for fidgraph tests.
"""

import pytest

from fidgraph.config.settings import Settings
from fidgraph.services.graph_cache import GraphCache
from fidgraph.services.job_queue import JobQueue
from fidgraph.tests.fakes import FakeRedis, LedgerHub

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment='development',
        fast_count_cap=500,
        full_count_page_size=1000,
        backfill_batch_size=100,
        backfill_page_size=1000,
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def graph_cache(fake_redis):
    return GraphCache(fake_redis, namespace='test')


@pytest.fixture
def job_queue(fake_redis):
    return JobQueue(client=fake_redis)


@pytest.fixture
def hub():
    return LedgerHub()
