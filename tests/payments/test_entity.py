from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.common.exceptions import (
    DomainValidationException,
    InvalidStatusTransitionException,
    RefundExceedsPaymentException,
)
from domain.payment.entity import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    Address,
    Currency,
    CustomerSnapshot,
    Payment,
    PaymentMethod,
    PaymentStatus,
    is_valid_transition,
)
from shared.codes.payment_codes import PaymentCode

NOW = datetime(2025, 10, 19, 12, 0, tzinfo=timezone.utc)


def build_payment(status=PaymentStatus.PROCESSING, amount="100.00", processed="0") -> Payment:
    return Payment(
        id=1,
        transaction_id="7b0c9a6e-3f1d-4f5e-9c55-2a1a0f7e8b11",
        amount=Decimal(amount),
        currency=Currency.BRL,
        payment_method=PaymentMethod.CREDIT_CARD,
        status=status,
        customer=CustomerSnapshot(
            customer_id="cust-1",
            name="Maria Silva",
            email="maria@example.com",
            document="52998224725",
            address=Address(
                street="Rua das Flores",
                number="123",
                neighborhood="Centro",
                city="Sao Paulo",
                state="SP",
                zip_code="01000-000",
                country="Brazil",
            ),
        ),
        processed_amount=Decimal(processed),
        created_at=NOW,
        updated_at=NOW,
    )


def test_amount_must_be_positive():
    with pytest.raises(DomainValidationException):
        build_payment(amount="0")


def test_terminal_states_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert VALID_TRANSITIONS[status] == frozenset()
        for target in PaymentStatus:
            assert not is_valid_transition(status, target)


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (PaymentStatus.PENDING, PaymentStatus.PROCESSING, True),
        (PaymentStatus.PENDING, PaymentStatus.EXPIRED, True),
        (PaymentStatus.PENDING, PaymentStatus.APPROVED, False),
        (PaymentStatus.PROCESSING, PaymentStatus.PENDING, True),
        (PaymentStatus.PROCESSING, PaymentStatus.DECLINED, True),
        (PaymentStatus.PROCESSING, PaymentStatus.REFUNDED, False),
        (PaymentStatus.APPROVED, PaymentStatus.REFUNDED, True),
        (PaymentStatus.APPROVED, PaymentStatus.CANCELLED, False),
    ],
)
def test_transition_table(current, target, allowed):
    assert is_valid_transition(current, target) is allowed


def test_cancel_approved_payment_is_rejected():
    payment = build_payment(PaymentStatus.APPROVED, processed="100.00")
    with pytest.raises(InvalidStatusTransitionException) as exc_info:
        payment.cancel(now=NOW)
    assert "Cannot cancel" in exc_info.value.message
    assert payment.status == PaymentStatus.APPROVED


def test_cancel_pending_payment():
    payment = build_payment(PaymentStatus.PENDING)
    payment.cancel(now=NOW)
    assert payment.status == PaymentStatus.CANCELLED
    assert payment.message == "Payment cancelled by user"


def test_refund_requires_approved():
    payment = build_payment(PaymentStatus.PENDING)
    with pytest.raises(InvalidStatusTransitionException) as exc_info:
        payment.refund(Decimal("10.00"), now=NOW)
    assert "Cannot refund" in exc_info.value.message
    assert payment.status == PaymentStatus.PENDING


def test_refund_cannot_exceed_processed_amount():
    payment = build_payment(PaymentStatus.APPROVED, processed="100.00")
    with pytest.raises(RefundExceedsPaymentException) as exc_info:
        payment.refund(Decimal("100.01"), now=NOW)
    assert "exceed" in exc_info.value.message
    assert exc_info.value.code == PaymentCode.REFUND_EXCEEDS_PAYMENT
    assert payment.refunded_amount is None


def test_refund_records_latest_amount():
    payment = build_payment(PaymentStatus.APPROVED, processed="100.00")
    payment.refund(Decimal("40.00"), "customer request", now=NOW)
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refunded_amount == Decimal("40.00")
    assert payment.message == "Refund processed: customer request"


def test_webhook_refund_with_invalid_amount_keeps_amounts():
    payment = build_payment(PaymentStatus.APPROVED, processed="100.00")
    payment.apply_webhook(
        PaymentStatus.REFUNDED,
        gateway_transaction_id="gw-1",
        gateway_response="refunded",
        amount=Decimal("-5"),
        now=NOW,
    )
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refunded_amount is None
    assert payment.processed_amount == Decimal("100.00")
    assert payment.gateway_transaction_id == "gw-1"


def test_webhook_applied_check_needs_status_and_gateway_id():
    payment = build_payment(PaymentStatus.APPROVED)
    payment.gateway_transaction_id = "gw-1"
    assert payment.is_webhook_applied(PaymentStatus.APPROVED, "gw-1")
    assert not payment.is_webhook_applied(PaymentStatus.APPROVED, "gw-2")
    assert not payment.is_webhook_applied(PaymentStatus.REFUNDED, "gw-1")
