from __future__ import annotations

from typing import List, Optional

from .base import PublishMiddleware, Publisher, Serializer
from .config import MessagingConfig
from .providers.inmemory import InMemoryPublisher


def create_publisher(
    cfg: MessagingConfig,
    serializer: Serializer,
    middlewares: Optional[List[PublishMiddleware]] = None,
) -> Publisher:
    if cfg.provider == "inmemory":
        return InMemoryPublisher(serializer, middlewares)
    if cfg.provider == "kafka":
        # confluent-kafka is only loaded when Kafka is actually selected
        from .providers.kafka.publisher import KafkaPublisher
        return KafkaPublisher(cfg.kafka, serializer, middlewares)
    raise ValueError(f"Unsupported provider: {cfg.provider}")


def create_event_publisher(settings=None, kafka_settings=None):
    """从配置组装应用层使用的事件发布器（API 与 Celery 共用）"""
    from core.config import settings as app_settings
    from core.settings import payment_settings

    from .config_builder import messaging_config_from_settings
    from .event_publisher import MessagingEventPublisher
    from .middlewares import LoggingMiddleware
    from .serializers import JsonSerializer

    es = (settings or payment_settings).events
    cfg = messaging_config_from_settings(kafka_settings or app_settings.kafka, es)
    publisher = create_publisher(cfg, JsonSerializer(), [LoggingMiddleware()])
    return MessagingEventPublisher(
        publisher,
        cfg.topics,
        retry_max=cfg.publish_retry_max,
        retry_base_backoff=cfg.publish_retry_base_backoff,
    )
