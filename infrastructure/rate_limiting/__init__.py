"""限流器实现与工厂"""
from __future__ import annotations

from typing import Optional

from application.ports.rate_limiter import RateLimiter
from core.config import settings as app_settings
from core.settings import PaymentSettings, payment_settings

from .memory import InMemoryRateLimiter, minute_bucket
from .redis import RedisRateLimiter


def create_rate_limiter(settings: Optional[PaymentSettings] = None) -> RateLimiter:
    settings = settings or payment_settings
    limit = settings.rate_limit
    if limit.backend == "redis":
        if not app_settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置，无法使用 redis 限流")
        return RedisRateLimiter.from_url(
            app_settings.redis.url,
            limit.max_requests_per_minute,
            max_connections=app_settings.redis.max_connections,
            namespace=app_settings.redis.namespace,
        )
    return InMemoryRateLimiter(limit.max_requests_per_minute, shards=limit.shards)


__all__ = [
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "create_rate_limiter",
    "minute_bucket",
]
