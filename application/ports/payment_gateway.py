"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters
(simulated in-process gateway, remote HTTP gateway).
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import GatewayOutcome, PaymentRequest


@runtime_checkable
class PaymentGateway(Protocol):
    """One capability per payment method.

    Card methods resolve to Approved or Declined, PIX to Approved and boleto to
    Pending. Implementations may raise; the orchestrator maps errors to Failed.
    """

    provider: str

    async def process_credit_card(self, request: PaymentRequest) -> GatewayOutcome: ...

    async def process_debit(self, request: PaymentRequest) -> GatewayOutcome: ...

    async def process_pix(self, request: PaymentRequest) -> GatewayOutcome: ...

    async def process_boleto(self, request: PaymentRequest) -> GatewayOutcome: ...
