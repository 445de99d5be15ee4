from __future__ import annotations

import threading
from typing import List, Optional, Tuple

from ..base import Envelope, PublishMiddleware, PublishResult, Publisher, Serializer


class InMemoryPublisher(Publisher):
    """Keeps serialized messages per topic; used in development and tests."""

    def __init__(
        self,
        serializer: Serializer,
        middlewares: Optional[List[PublishMiddleware]] = None,
    ) -> None:
        self.serializer = serializer
        self.middlewares = middlewares or []
        self.messages: List[Tuple[str, Envelope, bytes]] = []
        self._offsets: dict[str, int] = {}
        self._lock = threading.Lock()
        self.closed = False

    def publish(self, topic: str, env: Envelope) -> PublishResult:
        for m in self.middlewares:
            env = m.before_publish(topic, env)
        value = env.payload if isinstance(env.payload, (bytes, bytearray)) else self.serializer.dumps(env.payload)
        with self._lock:
            offset = self._offsets.get(topic, 0)
            self._offsets[topic] = offset + 1
            self.messages.append((topic, env, bytes(value)))
        result = PublishResult(topic=topic, partition=0, offset=offset)
        for m in self.middlewares:
            m.after_publish(topic, env, result)
        return result

    def on_topic(self, topic: str) -> List[Envelope]:
        return [env for t, env, _ in self.messages if t == topic]

    def close(self) -> None:
        self.closed = True
