"""
进程内限流器：按 (customer, 分钟) 计数，锁按客户分片
"""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Tuple

from core.logging_config import get_logger


logger = get_logger(__name__)

MINUTE_FORMAT = "%Y-%m-%d-%H-%M"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def minute_bucket(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime(MINUTE_FORMAT)


class _Shard:
    __slots__ = ("lock", "counters")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.counters: Dict[Tuple[str, str], int] = {}


class InMemoryRateLimiter:
    """
    固定窗口限流（每分钟一个桶）。

    同一客户的计数在同一把锁下自增，被拒绝的请求同样计数；
    早于上一分钟的桶在写入时顺带清理。
    """

    def __init__(
        self,
        max_per_minute: int,
        shards: int = 16,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_per_minute <= 0:
            raise ValueError("max_per_minute must be positive")
        self._max = max_per_minute
        self._shards: List[_Shard] = [_Shard() for _ in range(max(1, shards))]
        self._clock = clock

    def _shard_for(self, customer_id: str) -> _Shard:
        return self._shards[hash(customer_id) % len(self._shards)]

    async def allow(self, customer_id: str) -> bool:
        if not customer_id:
            return False
        now = self._clock()
        bucket = minute_bucket(now)
        keep = {bucket, minute_bucket(now - timedelta(minutes=1))}
        shard = self._shard_for(customer_id)
        with shard.lock:
            key = (customer_id, bucket)
            count = shard.counters.get(key, 0) + 1
            shard.counters[key] = count
            stale = [k for k in shard.counters if k[1] not in keep]
            for k in stale:
                del shard.counters[k]
        if count > self._max:
            logger.debug("rate_limit_exceeded", customer_id=customer_id, bucket=bucket, count=count)
            return False
        return True

    def tracked_keys(self) -> int:
        """当前保留的桶数量（用于观察清理效果）"""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.counters)
        return total
