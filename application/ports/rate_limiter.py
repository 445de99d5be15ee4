"""
Rate limiter port: a yes/no decision per customer.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class RateLimiter(Protocol):
    async def allow(self, customer_id: str) -> bool:
        """Count the call and return False once the customer exceeded its per-minute budget."""
        ...
