"""
基于 Redis 的限流器，多进程/多实例共享计数

键格式: ``{namespace}:ratelimit:{customer_id}:{YYYY-MM-DD-HH-MM}``，INCR 后设置过期，
两条命令放在同一个事务管道里执行。
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from redis import asyncio as aioredis

from core.logging_config import get_logger

from .memory import _utcnow, minute_bucket


logger = get_logger(__name__)

# 桶过期时间留出一分钟余量，时钟漂移时不会过早清除
BUCKET_TTL_SECONDS = 120


class RedisRateLimiter:
    def __init__(
        self,
        client: "aioredis.Redis",
        max_per_minute: int,
        namespace: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_per_minute <= 0:
            raise ValueError("max_per_minute must be positive")
        self._client = client
        self._max = max_per_minute
        self._namespace = namespace
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, max_per_minute: int, *, max_connections: int = 10, namespace: Optional[str] = None):
        client = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=max_connections,
        )
        return cls(client, max_per_minute, namespace=namespace)

    def key_for(self, customer_id: str, now: datetime) -> str:
        key = f"ratelimit:{customer_id}:{minute_bucket(now)}"
        return f"{self._namespace}:{key}" if self._namespace else key

    async def allow(self, customer_id: str) -> bool:
        if not customer_id:
            return False
        key = self.key_for(customer_id, self._clock())
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, BUCKET_TTL_SECONDS)
            count, _ = await pipe.execute()
        if int(count) > self._max:
            logger.debug("rate_limit_exceeded", customer_id=customer_id, key=key, count=count)
            return False
        return True

    async def close(self) -> None:
        await self._client.aclose()
