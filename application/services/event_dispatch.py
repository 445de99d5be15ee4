"""Best-effort event emission shared by the payment and webhook services."""
from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Optional, Tuple

from application.ports.event_publisher import EventPublisher
from core.logging_config import get_logger
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.events import (
    DomainEvent,
    EventDestination,
    HighValueTransactionPayload,
    PaymentCancelledPayload,
    PaymentEventType,
    PaymentFailedPayload,
    PaymentProcessedPayload,
    PaymentRefundedPayload,
    PaymentStatusChangedPayload,
)


logger = get_logger(__name__)

_ROUTES = {
    PaymentEventType.PAYMENT_PROCESSED: (EventDestination.EVENT_STREAM,),
    PaymentEventType.PAYMENT_FAILED: (EventDestination.MESSAGE_QUEUE,),
    PaymentEventType.PAYMENT_REFUNDED: (EventDestination.MESSAGE_QUEUE,),
    PaymentEventType.HIGH_VALUE_TRANSACTION: (
        EventDestination.EVENT_STREAM,
        EventDestination.MESSAGE_QUEUE,
    ),
}


def destinations_for(event_type: PaymentEventType) -> Tuple[EventDestination, ...]:
    return _ROUTES.get(event_type, (EventDestination.MESSAGE_QUEUE,))


def outcome_event(payment: Payment, high_value_threshold: Decimal) -> DomainEvent:
    """Pick the event for a processed payment; the high-value rule wins over the outcome."""
    if payment.amount >= high_value_threshold:
        return DomainEvent(
            event_type=PaymentEventType.HIGH_VALUE_TRANSACTION,
            transaction_id=payment.transaction_id,
            payload=HighValueTransactionPayload(
                transaction_id=payment.transaction_id,
                amount=payment.amount,
                currency=payment.currency.value,
                status=payment.status.value,
                customer_id=payment.customer.customer_id,
                payment_method=payment.payment_method.value,
                threshold=high_value_threshold,
            ),
        )
    if payment.status in (PaymentStatus.DECLINED, PaymentStatus.FAILED):
        return DomainEvent(
            event_type=PaymentEventType.PAYMENT_FAILED,
            transaction_id=payment.transaction_id,
            payload=PaymentFailedPayload(
                transaction_id=payment.transaction_id,
                amount=payment.amount,
                currency=payment.currency.value,
                status=payment.status.value,
                customer_id=payment.customer.customer_id,
                failure_reason=payment.message or "",
                retryable=payment.status == PaymentStatus.FAILED,
            ),
        )
    return DomainEvent(
        event_type=PaymentEventType.PAYMENT_PROCESSED,
        transaction_id=payment.transaction_id,
        payload=PaymentProcessedPayload(
            transaction_id=payment.transaction_id,
            amount=payment.amount,
            currency=payment.currency.value,
            status=payment.status.value,
            customer_id=payment.customer.customer_id,
            payment_method=payment.payment_method.value,
            authorization_code=payment.authorization_code,
            processed_at=payment.processed_at,
        ),
    )


def cancelled_event(payment: Payment, previous_status: PaymentStatus) -> DomainEvent:
    return DomainEvent(
        event_type=PaymentEventType.PAYMENT_CANCELLED,
        transaction_id=payment.transaction_id,
        payload=PaymentCancelledPayload(
            transaction_id=payment.transaction_id,
            amount=payment.amount,
            currency=payment.currency.value,
            customer_id=payment.customer.customer_id,
            previous_status=previous_status.value,
        ),
    )


def refunded_event(payment: Payment, reason: Optional[str]) -> DomainEvent:
    return DomainEvent(
        event_type=PaymentEventType.PAYMENT_REFUNDED,
        transaction_id=payment.transaction_id,
        payload=PaymentRefundedPayload(
            transaction_id=payment.transaction_id,
            refund_amount=payment.refunded_amount or Decimal("0"),
            currency=payment.currency.value,
            customer_id=payment.customer.customer_id,
            refund_reason=reason or "No reason provided",
            refunded_at=payment.updated_at,
        ),
    )


def status_changed_event(payment: Payment, previous_status: PaymentStatus, reason: str) -> DomainEvent:
    return DomainEvent(
        event_type=PaymentEventType.PAYMENT_STATUS_CHANGED,
        transaction_id=payment.transaction_id,
        payload=PaymentStatusChangedPayload(
            transaction_id=payment.transaction_id,
            previous_status=previous_status.value,
            new_status=payment.status.value,
            changed_at=payment.updated_at,
            reason=reason,
            gateway_transaction_id=payment.gateway_transaction_id,
        ),
    )


class EventDispatcher:
    """Routes an event to its destinations; delivery failures are logged, never raised."""

    def __init__(self, publisher: EventPublisher, timeout: float) -> None:
        self._publisher = publisher
        self._timeout = timeout

    async def dispatch(self, event: DomainEvent) -> int:
        delivered = 0
        for destination in destinations_for(event.event_type):
            try:
                await asyncio.wait_for(self._publisher.publish(event, destination), self._timeout)
                delivered += 1
            except Exception as exc:
                # drift signal: the state change is committed but the event is missing
                logger.error(
                    "payment_event_publish_failed",
                    event_type=event.event_type.value,
                    event_id=event.event_id,
                    transaction_id=event.transaction_id,
                    destination=destination.value,
                    error=str(exc) or exc.__class__.__name__,
                )
        if delivered:
            logger.info(
                "payment_event_published",
                event_type=event.event_type.value,
                transaction_id=event.transaction_id,
                destinations=delivered,
            )
        return delivered
