import asyncio
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import AsyncMock, MagicMock

import pytest

from infrastructure.rate_limiting import InMemoryRateLimiter, RedisRateLimiter, minute_bucket


@pytest.mark.asyncio
async def test_eleventh_call_in_same_minute_is_rejected(rate_limiter):
    results = [await rate_limiter.allow("cust-1") for _ in range(10)]
    assert all(results)
    assert await rate_limiter.allow("cust-1") is False


@pytest.mark.asyncio
async def test_next_minute_bucket_starts_fresh(rate_limiter, clock):
    for _ in range(11):
        await rate_limiter.allow("cust-1")
    clock.advance(minutes=1)
    assert await rate_limiter.allow("cust-1") is True


@pytest.mark.asyncio
async def test_customers_are_counted_separately(rate_limiter):
    for _ in range(10):
        await rate_limiter.allow("cust-1")
    assert await rate_limiter.allow("cust-2") is True


@pytest.mark.asyncio
async def test_empty_customer_is_rejected(rate_limiter):
    assert await rate_limiter.allow("") is False


@pytest.mark.asyncio
async def test_stale_buckets_are_pruned(rate_limiter, clock):
    for _ in range(5):
        await rate_limiter.allow("cust-1")
        clock.advance(minutes=1)
    await rate_limiter.allow("cust-1")
    # current minute and the previous one at most
    assert rate_limiter.tracked_keys() <= 2


def test_concurrent_calls_never_undercount(clock):
    limiter = InMemoryRateLimiter(max_per_minute=10, shards=4, clock=clock)

    def call() -> bool:
        return asyncio.run(limiter.allow("cust-1"))

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: call(), range(40)))
    assert results.count(True) == 10


def test_minute_bucket_format(clock):
    assert minute_bucket(clock()) == "2025-10-19-12-00"


class _Pipeline:
    def __init__(self, count: int) -> None:
        self.count = count
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def incr(self, key):
        self.commands.append(("incr", key))

    def expire(self, key, ttl):
        self.commands.append(("expire", key, ttl))

    async def execute(self):
        return [self.count, True]


@pytest.mark.asyncio
async def test_redis_limiter_uses_incr_and_expire(clock):
    pipe = _Pipeline(count=11)
    client = MagicMock()
    client.pipeline.return_value = pipe
    client.aclose = AsyncMock()
    limiter = RedisRateLimiter(client, max_per_minute=10, clock=clock)

    assert await limiter.allow("cust-1") is False
    assert pipe.commands[0] == ("incr", "ratelimit:cust-1:2025-10-19-12-00")
    assert pipe.commands[1][0] == "expire"
    client.pipeline.assert_called_once_with(transaction=True)

    pipe.count = 3
    assert await limiter.allow("cust-1") is True
    await limiter.close()
    client.aclose.assert_awaited_once()
