"""
Factory for payment gateway adapters.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import PaymentGateway
from core.settings import PaymentSettings, payment_settings


def get_payment_gateway(settings: Optional[PaymentSettings] = None) -> PaymentGateway:
    cfg = (settings or payment_settings).gateway
    name = cfg.provider.lower()
    if name == "simulated":
        from .simulated_gateway import SimulatedPaymentGateway
        return SimulatedPaymentGateway(
            card_latency=cfg.card_latency,
            pix_latency=cfg.pix_latency,
            boleto_latency=cfg.boleto_latency,
        )
    if name == "http":
        from .http_gateway import HttpPaymentGateway
        if not cfg.base_url:
            raise ValueError("PAYMENT__GATEWAY__BASE_URL is required for the http gateway")
        return HttpPaymentGateway(
            base_url=cfg.base_url,
            api_key=cfg.api_key,
            timeouts={"connect": cfg.connect_timeout, "read": cfg.read_timeout},
            retry={"max": cfg.retry_max, "base": cfg.retry_base_backoff},
        )
    raise ValueError(f"Unsupported payment gateway: {name}")
