"""Conversions between request DTOs, the Payment entity and response DTOs."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from application.dtos.payments import PaymentFees, PaymentRequest, PaymentResponse
from domain.payment.entity import (
    Address,
    CardSnapshot,
    CustomerSnapshot,
    Payment,
    PaymentStatus,
)
from domain.payment.validation import digits_only
from shared.codes.payment_codes import PaymentCode


def mask_card_number(number: str) -> str:
    """First 4 + **** + last 4; short inputs are fully masked."""
    digits = digits_only(number)
    if len(digits) < 8:
        return "****"
    return f"{digits[:4]}****{digits[-4:]}"


def request_to_entity(request: PaymentRequest, *, now: datetime) -> Payment:
    customer = request.customer
    address = customer.address
    card = None
    if request.card is not None:
        card = CardSnapshot(
            masked_number=mask_card_number(request.card.number),
            holder_name=request.card.holder_name,
            brand=request.card.brand,
        )
    return Payment(
        id=None,
        transaction_id=request.transaction_id,
        amount=request.amount,
        currency=request.currency,
        payment_method=request.payment_method,
        status=PaymentStatus.PROCESSING,
        customer=CustomerSnapshot(
            customer_id=customer.customer_id,
            name=customer.name,
            email=str(customer.email),
            document=digits_only(customer.document),
            address=Address(
                street=address.street,
                number=address.number,
                complement=address.complement,
                neighborhood=address.neighborhood,
                city=address.city,
                state=address.state,
                zip_code=address.zip_code,
                country=address.country,
            ),
        ),
        card=card,
        metadata=dict(request.metadata or {}),
        created_at=now,
        updated_at=now,
    )


def entity_to_response(payment: Payment, *, code: int = PaymentCode.SUCCESS) -> PaymentResponse:
    fees = payment.fees
    return PaymentResponse(
        transaction_id=payment.transaction_id,
        status=payment.status,
        code=code,
        authorization_code=payment.authorization_code,
        processed_at=payment.processed_at or payment.updated_at,
        message=payment.message or "",
        processed_amount=payment.processed_amount,
        refunded_amount=payment.refunded_amount,
        fees=PaymentFees(
            processing_fee=fees.processing_fee,
            gateway_fee=fees.gateway_fee,
            total_fees=fees.total_fees,
            net_amount=fees.net_amount,
        ) if fees else None,
    )


def failed_response(
    transaction_id: Optional[str],
    message: str,
    code: int,
    *,
    now: Optional[datetime] = None,
) -> PaymentResponse:
    return PaymentResponse(
        transaction_id=transaction_id or "",
        status=PaymentStatus.FAILED,
        code=code,
        processed_at=now,
        message=message,
    )
