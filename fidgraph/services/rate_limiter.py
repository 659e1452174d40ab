"""
Async token bucket used as admission control in front of the hub.

Backfill fan-out is worker_concurrency x batch_size x 2 concurrent walks;
the bucket caps the request rate those walks produce regardless of fan-out.
"""
import asyncio
import time
from typing import Optional


class AsyncTokenBucket:
    """
    Token bucket refilled continuously at `rate` tokens per second.

    Capacity defaults to one second worth of tokens, so short bursts are
    allowed while the average converges to `rate`.
    """

    def __init__(self, rate: float, capacity: Optional[float] = None):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity if capacity is not None else max(rate, 1.0)
        self.tokens = self.capacity
        self.last_refill = time.monotonic()
        self.lock = asyncio.Lock()

    def _refill(self):
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.last_refill = now
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)

    async def acquire(self, tokens: float = 1.0):
        """Wait until `tokens` are available, then take them"""
        async with self.lock:
            self._refill()
            if self.tokens < tokens:
                wait_time = (tokens - self.tokens) / self.rate
                await asyncio.sleep(wait_time)
                self._refill()
            self.tokens -= tokens

    @classmethod
    def from_rate(cls, rate: float) -> Optional['AsyncTokenBucket']:
        """None for a non-positive rate (unlimited)"""
        if not rate or rate <= 0:
            return None
        return cls(rate)
