"""
In-process gateway used for development, demos and tests.

Outcomes are driven by the request itself:
- credit card ending in 0000 is declined by the issuer
- debit card ending in 1111 is declined for insufficient funds
- PIX always settles immediately
- boleto is issued and stays Pending until a webhook confirms it
"""
from __future__ import annotations

import asyncio
import random
from typing import Optional

from application.dtos.payments import GatewayOutcome, PaymentRequest
from core.logging_config import get_logger
from domain.payment.entity import PaymentStatus
from domain.payment.validation import digits_only


logger = get_logger(__name__)


class SimulatedPaymentGateway:
    provider = "simulated"

    def __init__(
        self,
        *,
        card_latency: float = 0.0,
        pix_latency: float = 0.0,
        boleto_latency: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._card_latency = card_latency
        self._pix_latency = pix_latency
        self._boleto_latency = boleto_latency
        self._rng = rng or random.Random()

    def _code(self, prefix: str, width: int) -> str:
        return f"{prefix}{self._rng.randrange(10 ** width):0{width}d}"

    @staticmethod
    def _card_number(request: PaymentRequest) -> str:
        return digits_only(request.card.number) if request.card else ""

    async def _card(
        self,
        request: PaymentRequest,
        decline_suffix: str,
        approved_message: str,
        declined_message: str,
    ) -> GatewayOutcome:
        if self._card_latency:
            await asyncio.sleep(self._card_latency)
        number = self._card_number(request)
        approved = bool(number) and not number.endswith(decline_suffix)
        outcome = GatewayOutcome(
            status=PaymentStatus.APPROVED if approved else PaymentStatus.DECLINED,
            authorization_code=self._code("AUTH", 6) if approved else None,
            processed_amount=request.amount,
            message=approved_message if approved else declined_message,
        )
        logger.info(
            "gateway_card_processed",
            provider=self.provider,
            transaction_id=request.transaction_id,
            payment_method=request.payment_method.value,
            status=outcome.status.value,
        )
        return outcome

    async def process_credit_card(self, request: PaymentRequest) -> GatewayOutcome:
        return await self._card(
            request, "0000", "Payment approved successfully", "Card declined by issuer"
        )

    async def process_debit(self, request: PaymentRequest) -> GatewayOutcome:
        return await self._card(
            request, "1111", "Debit payment approved successfully", "Insufficient funds"
        )

    async def process_pix(self, request: PaymentRequest) -> GatewayOutcome:
        if self._pix_latency:
            await asyncio.sleep(self._pix_latency)
        logger.info("gateway_pix_processed", provider=self.provider, transaction_id=request.transaction_id)
        return GatewayOutcome(
            status=PaymentStatus.APPROVED,
            authorization_code=self._code("PIX", 10),
            processed_amount=request.amount,
            message="PIX payment processed successfully",
        )

    async def process_boleto(self, request: PaymentRequest) -> GatewayOutcome:
        if self._boleto_latency:
            await asyncio.sleep(self._boleto_latency)
        logger.info("gateway_boleto_issued", provider=self.provider, transaction_id=request.transaction_id)
        return GatewayOutcome(
            status=PaymentStatus.PENDING,
            authorization_code=self._code("BOL", 8),
            processed_amount=request.amount,
            message="Boleto generated successfully",
        )
