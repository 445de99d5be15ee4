from .base import Envelope, PublishResult, Publisher, Serializer
from .config import KafkaConfig, MessagingConfig, ProducerTuning, SASLConfig, TLSConfig, TopicConfig
from .event_publisher import MessagingEventPublisher
from .factory import create_event_publisher, create_publisher

__all__ = [
    "Envelope",
    "PublishResult",
    "Publisher",
    "Serializer",
    "MessagingConfig",
    "KafkaConfig",
    "ProducerTuning",
    "TLSConfig",
    "SASLConfig",
    "TopicConfig",
    "MessagingEventPublisher",
    "create_publisher",
    "create_event_publisher",
]
