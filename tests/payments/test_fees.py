from decimal import Decimal

import pytest

from domain.payment.entity import PaymentMethod
from domain.payment.fees import calculate_fees, quantize_money


@pytest.mark.parametrize(
    "method,processing,gateway",
    [
        (PaymentMethod.CREDIT_CARD, "3.50", "0.30"),
        (PaymentMethod.DEBIT, "2.00", "0.20"),
        (PaymentMethod.PIX, "0.50", "0.10"),
        (PaymentMethod.BOLETO, "1.50", "0.25"),
    ],
)
def test_fee_schedule_for_100(method, processing, gateway):
    fees = calculate_fees(Decimal("100.00"), method)
    assert fees.processing_fee == Decimal(processing)
    assert fees.gateway_fee == Decimal(gateway)
    assert fees.total_fees == Decimal(processing) + Decimal(gateway)
    assert fees.net_amount == Decimal("100.00") - fees.total_fees


@pytest.mark.parametrize("amount", ["0.01", "3.00", "99.99", "1234.57", "15000.00", "999999.99"])
@pytest.mark.parametrize("method", list(PaymentMethod))
def test_fee_components_add_up(amount, method):
    value = Decimal(amount)
    fees = calculate_fees(value, method)
    assert fees.processing_fee + fees.gateway_fee == fees.total_fees
    assert value - fees.total_fees == fees.net_amount
    assert fees.processing_fee == quantize_money(fees.processing_fee)


def test_half_cent_rounds_away_from_zero():
    # 3.00 * 0.035 = 0.105
    assert calculate_fees(Decimal("3.00"), PaymentMethod.CREDIT_CARD).processing_fee == Decimal("0.11")


def test_fees_are_deterministic():
    first = calculate_fees(Decimal("250.10"), PaymentMethod.PIX)
    second = calculate_fees(Decimal("250.10"), PaymentMethod.PIX)
    assert first == second
