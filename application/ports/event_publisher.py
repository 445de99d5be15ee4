"""
Event publisher port.

The orchestrator decides the destination; the publisher only delivers.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.payment.events import DomainEvent, EventDestination


@runtime_checkable
class EventPublisher(Protocol):
    async def publish(self, event: DomainEvent, destination: EventDestination) -> None: ...
