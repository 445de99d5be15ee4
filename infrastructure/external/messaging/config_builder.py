"""Messaging config builder (composition root for messaging layer).

Maps the application's Kafka and event settings to the MessagingConfig
dataclasses used by the messaging infrastructure, so core configuration
stays free of provider details.
"""
from __future__ import annotations

from typing import Protocol

from .config import KafkaConfig, MessagingConfig, ProducerTuning, SASLConfig, TLSConfig, TopicConfig


class KafkaSettingsLike(Protocol):
    bootstrap_servers: str
    client_id: str

    tls_enable: bool
    tls_ca_location: str | None
    tls_certificate: str | None
    tls_key: str | None
    tls_verify: bool

    sasl_mechanism: str | None
    sasl_username: str | None
    sasl_password: str | None

    producer_acks: str
    producer_enable_idempotence: bool
    producer_compression_type: str
    producer_linger_ms: int
    producer_message_timeout_ms: int
    producer_delivery_wait_s: float


class EventSettingsLike(Protocol):
    provider: str
    stream_topic: str
    queue_topic: str
    publish_retry_max: int
    publish_retry_base_backoff: float


def messaging_config_from_settings(ks: KafkaSettingsLike, es: EventSettingsLike) -> MessagingConfig:
    """Build MessagingConfig by plain field mapping."""
    kafka = KafkaConfig(
        bootstrap_servers=ks.bootstrap_servers,
        client_id=ks.client_id,
        tls=TLSConfig(
            enable=ks.tls_enable,
            ca_location=ks.tls_ca_location,
            certificate=ks.tls_certificate,
            key=ks.tls_key,
            verify=ks.tls_verify,
        ),
        sasl=SASLConfig(
            mechanism=ks.sasl_mechanism,
            username=ks.sasl_username,
            password=ks.sasl_password,
        ),
        producer=ProducerTuning(
            acks=ks.producer_acks,
            enable_idempotence=ks.producer_enable_idempotence,
            compression_type=ks.producer_compression_type,
            linger_ms=ks.producer_linger_ms,
            message_timeout_ms=ks.producer_message_timeout_ms,
            delivery_wait_s=ks.producer_delivery_wait_s,
        ),
    )
    return MessagingConfig(
        provider="kafka" if es.provider == "kafka" else "inmemory",
        kafka=kafka,
        topics=TopicConfig(stream=es.stream_topic, queue=es.queue_topic),
        publish_retry_max=es.publish_retry_max,
        publish_retry_base_backoff=es.publish_retry_base_backoff,
    )


__all__ = ["messaging_config_from_settings", "KafkaSettingsLike", "EventSettingsLike"]
