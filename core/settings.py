"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; every key is read from ``PAYMENT__*``,
e.g. ``PAYMENT__GATEWAY__PROVIDER=http`` or ``PAYMENT__RATE_LIMIT__BACKEND=redis``.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaymentTimeouts(BaseModel):
    """Per-call budgets in seconds for the orchestrator's external collaborators."""
    gateway: float = 10.0
    store: float = 5.0
    publisher: float = 5.0


class RateLimitSettings(BaseModel):
    max_requests_per_minute: int = 10
    backend: Literal["memory", "redis"] = "memory"
    shards: int = 16


class GatewaySettings(BaseModel):
    provider: Literal["simulated", "http"] = "simulated"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    connect_timeout: float = 1.0
    read_timeout: float = 5.0
    retry_max: int = 2
    retry_base_backoff: float = 0.2

    # simulated gateway latencies (seconds)
    card_latency: float = 0.1
    pix_latency: float = 0.05
    boleto_latency: float = 0.1


class EventSettings(BaseModel):
    provider: Literal["inmemory", "kafka"] = "inmemory"
    stream_topic: str = "payments.events"
    queue_topic: str = "payments.queue"
    publish_retry_max: int = 3
    publish_retry_base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    secret: Optional[str] = None  # HMAC-SHA256 key; verification disabled when unset
    signature_header: str = "X-Webhook-Signature"


class ReconciliationSettings(BaseModel):
    stale_after_minutes: int = 30
    batch_size: int = 100
    interval_seconds: int = 300


class PaymentSettings(BaseSettings):
    high_value_threshold: Decimal = Decimal("10000.00")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    events: EventSettings = Field(default_factory=EventSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
