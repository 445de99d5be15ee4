from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol


Headers = Dict[str, bytes]


@dataclass(slots=True)
class Envelope:
    payload: Any
    key: Optional[bytes] = None
    headers: Headers = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = "v1"


@dataclass(slots=True)
class PublishResult:
    topic: str
    partition: int
    offset: int
    timestamp: Optional[int] = None


class Serializer(Protocol):
    def dumps(self, obj: Any) -> bytes: ...

    def loads(self, data: bytes) -> Any: ...


class PublishMiddleware(Protocol):
    def before_publish(self, topic: str, env: Envelope) -> Envelope: ...

    def after_publish(self, topic: str, env: Envelope, result: PublishResult) -> None: ...


class Publisher(abc.ABC):
    """Blocking topic publisher; async callers run it in a worker thread."""

    @abc.abstractmethod
    def publish(self, topic: str, env: Envelope) -> PublishResult: ...

    @abc.abstractmethod
    def close(self) -> None: ...
