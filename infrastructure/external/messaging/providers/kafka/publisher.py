from __future__ import annotations

import time
from typing import List, Optional

from confluent_kafka import Producer

from ...base import Envelope, PublishMiddleware, PublishResult, Publisher, Serializer
from ...config import KafkaConfig
from ...exceptions import PublishError


def _to_confluent_headers(headers: dict[str, bytes]) -> List[tuple[str, bytes]]:
    return [(k, v) for k, v in headers.items()]


def producer_conf(cfg: KafkaConfig) -> dict:
    conf: dict = {
        "bootstrap.servers": cfg.bootstrap_servers,
        "client.id": cfg.client_id,
        "enable.idempotence": cfg.producer.enable_idempotence,
        "compression.type": cfg.producer.compression_type,
        "linger.ms": cfg.producer.linger_ms,
        "acks": cfg.producer.acks,
        # Prefer message.timeout.ms over deprecated delivery.timeout.ms
        "message.timeout.ms": cfg.producer.message_timeout_ms,
    }
    use_tls = cfg.tls.enable
    use_sasl = bool(cfg.sasl.mechanism)
    if use_tls:
        conf["security.protocol"] = "SASL_SSL" if use_sasl else "SSL"
    else:
        conf["security.protocol"] = "SASL_PLAINTEXT" if use_sasl else "PLAINTEXT"

    if use_tls:
        conf.update({
            "ssl.ca.location": cfg.tls.ca_location,
            "ssl.certificate.location": cfg.tls.certificate,
            "ssl.key.location": cfg.tls.key,
            "enable.ssl.certificate.verification": cfg.tls.verify,
        })
    if use_sasl:
        conf.update({
            "sasl.mechanism": cfg.sasl.mechanism,
            "sasl.username": cfg.sasl.username,
            "sasl.password": cfg.sasl.password,
        })
    return conf


class KafkaPublisher(Publisher):
    """Waits for the delivery report of each message; at-least-once with idempotent producer."""

    def __init__(
        self,
        cfg: KafkaConfig,
        serializer: Serializer,
        middlewares: Optional[List[PublishMiddleware]] = None,
    ) -> None:
        self.cfg = cfg
        self.serializer = serializer
        self.middlewares = middlewares or []
        self._producer = Producer(producer_conf(cfg))
        # local timeouts for backpressure and delivery waiting (seconds)
        self._send_wait_s = cfg.producer.send_wait_s
        self._delivery_wait_s = cfg.producer.delivery_wait_s

    def publish(self, topic: str, env: Envelope) -> PublishResult:
        for m in self.middlewares:
            env = m.before_publish(topic, env)

        value_bytes = env.payload if isinstance(env.payload, (bytes, bytearray)) else self.serializer.dumps(env.payload)
        meta_holder: dict = {}

        def _delivery(err, msg):
            if err is not None:
                meta_holder["error"] = err
            else:
                meta_holder["result"] = PublishResult(
                    topic=msg.topic(), partition=msg.partition(), offset=msg.offset(), timestamp=msg.timestamp()[1]
                )

        # Backpressure handling: retry on BufferError after polling, with deadline
        send_deadline = time.monotonic() + self._send_wait_s
        while True:
            try:
                self._producer.produce(
                    topic=topic,
                    key=env.key,
                    value=bytes(value_bytes),
                    headers=_to_confluent_headers(env.headers),
                    on_delivery=_delivery,
                )
                break
            except BufferError:
                self._producer.poll(0.1)
                if time.monotonic() >= send_deadline:
                    raise PublishError("Producer queue full: timed out while retrying produce()")

        # Wait only for this message's delivery callback (do not flush all)
        delivery_deadline = time.monotonic() + self._delivery_wait_s
        while "error" not in meta_holder and "result" not in meta_holder:
            self._producer.poll(0.05)
            if time.monotonic() >= delivery_deadline:
                raise PublishError("Delivery wait timeout for produced message")

        if "error" in meta_holder:
            raise PublishError(str(meta_holder["error"]))
        result = meta_holder["result"]

        for m in self.middlewares:
            m.after_publish(topic, env, result)
        return result

    def close(self) -> None:
        remaining = self._producer.flush(5)
        if remaining:
            raise PublishError(f"{remaining} message(s) still queued on close")
