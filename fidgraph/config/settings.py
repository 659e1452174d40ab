from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - docker-compose.yml environment section
    - .env file
    - System environment

    Variable names are the upper-cased field names:
    - HUB_HTTP_URL, HUB_TIMEOUT_SECONDS (upstream hub)
    - REDIS_URL (queue + graph cache)
    - BACKFILL_BATCH_SIZE, BACKFILL_WORKER_CONCURRENCY, ... (backfill)
    """

    # Environment
    environment: str = "development"

    # Upstream hub (HTTP API, /v1 is appended by the client)
    hub_http_url: str = "http://localhost:3381"
    hub_timeout_seconds: float = 25.0
    hub_rate_limit_per_second: float = 0.0  # 0 = unlimited

    # Redis
    redis_url: str = "redis://localhost:6379"

    # Graph cache
    graph_cache_namespace: str = "fidgraph"
    graph_cache_ttl: Optional[int] = None  # seconds; None/0 = keep until next backfill

    # Online counting
    fast_count_cap: int = 500
    full_count_page_size: int = 1000
    full_count_max_pages: int = 10000
    full_count_max_items: int = 1_000_000
    full_count_deadline_seconds: Optional[float] = None

    # Backfill
    backfill_queue: str = "followers-backfill"
    backfill_batch_size: int = 100
    backfill_page_size: int = 1000
    backfill_worker_concurrency: int = 10
    backfill_interval_seconds: int = 12 * 60 * 60
    queue_max_attempts: int = 3
    trigger_dedupe_seconds: int = 15 * 60

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars

    @field_validator('graph_cache_ttl', 'full_count_deadline_seconds', mode='before')
    @classmethod
    def zero_means_none(cls, v):
        """Treat 0 / empty string as 'no limit'"""
        if v in (None, '', 0, '0'):
            return None
        return v

    @field_validator('hub_http_url', mode='before')
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalize base URL so the client can append /v1/<endpoint>"""
        if isinstance(v, str):
            return v.rstrip('/')
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
