"""
费用计算 - 按支付方式计算处理费与网关费

processing_fee = round(amount * rate, 2)
gateway_fee    = 固定费用
total_fees     = processing_fee + gateway_fee
net_amount     = amount - total_fees
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .entity import Fees, PaymentMethod

_CENT = Decimal("0.01")

# (rate, fixed fee)
FEE_SCHEDULE: dict[PaymentMethod, tuple[Decimal, Decimal]] = {
    PaymentMethod.CREDIT_CARD: (Decimal("0.035"), Decimal("0.30")),
    PaymentMethod.DEBIT: (Decimal("0.02"), Decimal("0.20")),
    PaymentMethod.PIX: (Decimal("0.005"), Decimal("0.10")),
    PaymentMethod.BOLETO: (Decimal("0.015"), Decimal("0.25")),
}
DEFAULT_FEE = (Decimal("0.03"), Decimal("0.25"))


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_fees(amount: Decimal, method: PaymentMethod) -> Fees:
    """纯函数：相同输入总是得到相同结果，只做一次舍入"""
    rate, fixed = FEE_SCHEDULE.get(method, DEFAULT_FEE)
    processing_fee = quantize_money(Decimal(amount) * rate)
    total = processing_fee + fixed
    return Fees(
        processing_fee=processing_fee,
        gateway_fee=fixed,
        total_fees=total,
        net_amount=Decimal(amount) - total,
    )
