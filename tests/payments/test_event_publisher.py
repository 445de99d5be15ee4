from datetime import datetime, timezone
from decimal import Decimal

import pytest

from application.services.event_dispatch import EventDispatcher, destinations_for
from domain.payment.events import (
    DomainEvent,
    EventDestination,
    PaymentEventType,
    PaymentProcessedPayload,
)
from infrastructure.external.messaging import MessagingEventPublisher, TopicConfig, create_event_publisher
from infrastructure.external.messaging.base import Publisher, PublishResult
from infrastructure.external.messaging.config import KafkaConfig, SASLConfig, TLSConfig
from infrastructure.external.messaging.envelope import H_EVENT_TYPE, H_SUBJECT, get_header
from infrastructure.external.messaging.exceptions import PublishError
from infrastructure.external.messaging.middlewares import LoggingMiddleware
from infrastructure.external.messaging.providers.inmemory import InMemoryPublisher
from infrastructure.external.messaging.providers.kafka.publisher import producer_conf
from infrastructure.external.messaging.serializers import JsonSerializer


TX = "7b0c9a6e-3f1d-4f5e-9c55-2a1a0f7e8b11"


def processed_event() -> DomainEvent:
    return DomainEvent(
        event_type=PaymentEventType.PAYMENT_PROCESSED,
        transaction_id=TX,
        payload=PaymentProcessedPayload(
            transaction_id=TX,
            amount=Decimal("100.00"),
            currency="BRL",
            status="Approved",
            customer_id="cust-1",
            payment_method="CreditCard",
            authorization_code="AUTH123456",
            processed_at=datetime(2025, 10, 19, 12, 0, tzinfo=timezone.utc),
        ),
    )


class FlakyPublisher(Publisher):
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.attempts = 0

    def publish(self, topic, env):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise PublishError("broker not ready")
        return PublishResult(topic=topic, partition=0, offset=self.attempts)

    def close(self):
        pass


def test_routing_table():
    assert destinations_for(PaymentEventType.PAYMENT_PROCESSED) == (EventDestination.EVENT_STREAM,)
    assert destinations_for(PaymentEventType.PAYMENT_FAILED) == (EventDestination.MESSAGE_QUEUE,)
    assert destinations_for(PaymentEventType.PAYMENT_REFUNDED) == (EventDestination.MESSAGE_QUEUE,)
    assert set(destinations_for(PaymentEventType.HIGH_VALUE_TRANSACTION)) == {
        EventDestination.EVENT_STREAM,
        EventDestination.MESSAGE_QUEUE,
    }
    assert destinations_for(PaymentEventType.PAYMENT_CANCELLED) == (EventDestination.MESSAGE_QUEUE,)
    assert destinations_for(PaymentEventType.PAYMENT_STATUS_CHANGED) == (EventDestination.MESSAGE_QUEUE,)


@pytest.mark.asyncio
async def test_event_lands_on_stream_topic_as_json():
    serializer = JsonSerializer()
    inner = InMemoryPublisher(serializer, [LoggingMiddleware()])
    publisher = MessagingEventPublisher(inner, TopicConfig(stream="s", queue="q"))

    result = await publisher.publish(processed_event(), EventDestination.EVENT_STREAM)

    assert result.topic == "s"
    assert inner.on_topic("q") == []
    topic, env, raw = inner.messages[0]
    assert env.key == TX.encode()
    assert get_header(env.headers, H_EVENT_TYPE) == "PaymentProcessing.Payment.Processed"
    assert get_header(env.headers, H_SUBJECT) == f"payment/{TX}/processed"
    body = serializer.loads(raw)
    assert body["data"]["amount"] == "100.00"
    assert body["data"]["processed_at"] == "2025-10-19T12:00:00+00:00"
    assert body["transaction_id"] == TX


@pytest.mark.asyncio
async def test_publish_retries_transient_errors():
    inner = FlakyPublisher(failures=2)
    publisher = MessagingEventPublisher(inner, TopicConfig(), retry_max=3, retry_base_backoff=0)

    result = await publisher.publish(processed_event(), EventDestination.MESSAGE_QUEUE)

    assert inner.attempts == 3
    assert result.topic == "payments.queue"


@pytest.mark.asyncio
async def test_publish_gives_up_after_retry_budget():
    inner = FlakyPublisher(failures=10)
    publisher = MessagingEventPublisher(inner, TopicConfig(), retry_max=2, retry_base_backoff=0)

    with pytest.raises(PublishError):
        await publisher.publish(processed_event(), EventDestination.MESSAGE_QUEUE)
    assert inner.attempts == 2


@pytest.mark.asyncio
async def test_dispatcher_swallows_publish_errors():
    publisher = MessagingEventPublisher(FlakyPublisher(failures=10), TopicConfig(), retry_max=1, retry_base_backoff=0)
    dispatcher = EventDispatcher(publisher, timeout=1.0)

    assert await dispatcher.dispatch(processed_event()) == 0


def test_default_settings_build_inmemory_publisher():
    publisher = create_event_publisher()
    assert isinstance(publisher, MessagingEventPublisher)
    assert publisher.topic_for(EventDestination.EVENT_STREAM) == "payments.events"
    assert publisher.topic_for(EventDestination.MESSAGE_QUEUE) == "payments.queue"
    publisher.close()


def test_kafka_producer_conf_with_sasl_ssl():
    cfg = KafkaConfig(
        bootstrap_servers="broker:9093",
        tls=TLSConfig(enable=True, ca_location="/ca.pem"),
        sasl=SASLConfig(mechanism="PLAIN", username="u", password="p"),
    )
    conf = producer_conf(cfg)
    assert conf["bootstrap.servers"] == "broker:9093"
    assert conf["security.protocol"] == "SASL_SSL"
    assert conf["sasl.username"] == "u"
    assert conf["ssl.ca.location"] == "/ca.pem"
    assert producer_conf(KafkaConfig())["security.protocol"] == "PLAINTEXT"
