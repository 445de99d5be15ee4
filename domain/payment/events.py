"""
Payment domain events.

Each event type carries its own payload dataclass; ``DomainEvent`` is the common
envelope handed to the publisher together with a destination hint. Domain stays
free of infrastructure imports.
"""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


class PaymentEventType(str, Enum):
    PAYMENT_PROCESSED = "PaymentProcessing.Payment.Processed"
    PAYMENT_FAILED = "PaymentProcessing.Payment.Failed"
    HIGH_VALUE_TRANSACTION = "PaymentProcessing.Transaction.HighValue"
    PAYMENT_REFUNDED = "PaymentProcessing.Payment.Refunded"
    PAYMENT_STATUS_CHANGED = "PaymentProcessing.Payment.StatusChanged"
    PAYMENT_CANCELLED = "PaymentProcessing.Payment.Cancelled"


class EventDestination(str, Enum):
    EVENT_STREAM = "event_stream"
    MESSAGE_QUEUE = "message_queue"


@dataclass(frozen=True)
class PaymentProcessedPayload:
    transaction_id: str
    amount: Decimal
    currency: str
    status: str
    customer_id: str
    payment_method: str
    authorization_code: Optional[str]
    processed_at: Optional[datetime]


@dataclass(frozen=True)
class PaymentFailedPayload:
    transaction_id: str
    amount: Decimal
    currency: str
    status: str
    customer_id: str
    failure_reason: str
    retryable: bool = False


@dataclass(frozen=True)
class HighValueTransactionPayload:
    transaction_id: str
    amount: Decimal
    currency: str
    status: str
    customer_id: str
    payment_method: str
    threshold: Decimal
    requires_approval: bool = True


@dataclass(frozen=True)
class PaymentCancelledPayload:
    transaction_id: str
    amount: Decimal
    currency: str
    customer_id: str
    previous_status: str
    reason: str = "User cancellation"


@dataclass(frozen=True)
class PaymentRefundedPayload:
    transaction_id: str
    refund_amount: Decimal
    currency: str
    customer_id: str
    refund_reason: str
    refunded_at: Optional[datetime]


@dataclass(frozen=True)
class PaymentStatusChangedPayload:
    transaction_id: str
    previous_status: str
    new_status: str
    changed_at: Optional[datetime]
    reason: str = ""
    gateway_transaction_id: Optional[str] = None


EventPayload = Union[
    PaymentProcessedPayload,
    PaymentFailedPayload,
    HighValueTransactionPayload,
    PaymentCancelledPayload,
    PaymentRefundedPayload,
    PaymentStatusChangedPayload,
]

_SUBJECT_SUFFIX = {
    PaymentEventType.PAYMENT_PROCESSED: "processed",
    PaymentEventType.PAYMENT_FAILED: "failed",
    PaymentEventType.HIGH_VALUE_TRANSACTION: "high-value",
    PaymentEventType.PAYMENT_REFUNDED: "refunded",
    PaymentEventType.PAYMENT_STATUS_CHANGED: "status-changed",
    PaymentEventType.PAYMENT_CANCELLED: "cancelled",
}


def subject_for(event_type: PaymentEventType, transaction_id: str) -> str:
    return f"payment/{transaction_id}/{_SUBJECT_SUFFIX[event_type]}"


@dataclass
class DomainEvent:
    event_type: PaymentEventType
    transaction_id: str
    payload: EventPayload
    subject: str = ""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.subject:
            self.subject = subject_for(self.event_type, self.transaction_id)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "transaction_id": self.transaction_id,
            "subject": self.subject,
            "occurred_at": self.occurred_at,
            "data": asdict(self.payload),
        }
