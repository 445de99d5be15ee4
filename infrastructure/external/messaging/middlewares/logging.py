from __future__ import annotations

from core.logging_config import get_logger

from ..base import Envelope, PublishMiddleware, PublishResult
from ..envelope import H_EVENT_TYPE, get_header


class LoggingMiddleware(PublishMiddleware):
    def __init__(self, logger=None) -> None:
        self.log = logger or get_logger("messaging")

    def before_publish(self, topic: str, env: Envelope) -> Envelope:  # type: ignore[override]
        self.log.debug(
            "message_publishing",
            topic=topic,
            key=(env.key or b"").decode("utf-8", "replace"),
            event_type=get_header(env.headers, H_EVENT_TYPE),
        )
        return env

    def after_publish(self, topic: str, env: Envelope, result: PublishResult) -> None:  # type: ignore[override]
        self.log.info(
            "message_published",
            topic=topic,
            partition=result.partition,
            offset=result.offset,
            event_type=get_header(env.headers, H_EVENT_TYPE),
        )
