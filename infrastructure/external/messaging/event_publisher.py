"""Adapter from the application EventPublisher port to a topic Publisher."""
from __future__ import annotations

import asyncio

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.logging_config import get_logger
from domain.payment.events import DomainEvent, EventDestination

from .base import Publisher, PublishResult
from .config import TopicConfig
from .envelope import envelope_for_event
from .exceptions import PublishError


logger = get_logger(__name__)


class MessagingEventPublisher:
    """Event stream and message queue are two topics on the same broker."""

    def __init__(
        self,
        publisher: Publisher,
        topics: TopicConfig,
        *,
        retry_max: int = 3,
        retry_base_backoff: float = 0.2,
    ) -> None:
        self._publisher = publisher
        self._topics = topics
        self._retry_max = retry_max
        self._retry_base_backoff = retry_base_backoff

    def topic_for(self, destination: EventDestination) -> str:
        if destination == EventDestination.EVENT_STREAM:
            return self._topics.stream
        return self._topics.queue

    async def publish(self, event: DomainEvent, destination: EventDestination) -> PublishResult:
        topic = self.topic_for(destination)
        env = envelope_for_event(event)
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_max),
            wait=wait_exponential(multiplier=self._retry_base_backoff, min=0, max=2.0),
            retry=retry_if_exception_type(PublishError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "payment_event_publish_retry",
                        topic=topic,
                        event_type=event.event_type.value,
                        attempt=attempt.retry_state.attempt_number,
                    )
                # confluent producer calls block; keep them off the event loop
                return await asyncio.to_thread(self._publisher.publish, topic, env)

    def close(self) -> None:
        self._publisher.close()
