"""
支付领域实体 - 支付聚合根与状态机
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import (
    DomainValidationException,
    InvalidStatusTransitionException,
    RefundExceedsPaymentException,
)


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "Pending"          # 等待异步确认（如 boleto）
    PROCESSING = "Processing"    # 已落库，等待网关结果
    APPROVED = "Approved"
    DECLINED = "Declined"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"
    FAILED = "Failed"
    EXPIRED = "Expired"


class PaymentMethod(str, Enum):
    """支付方式枚举"""
    CREDIT_CARD = "CreditCard"
    DEBIT = "Debit"
    PIX = "Pix"
    BOLETO = "Boleto"


class Currency(str, Enum):
    BRL = "BRL"
    USD = "USD"
    EUR = "EUR"


CARD_METHODS = frozenset({PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT})

TERMINAL_STATUSES = frozenset({
    PaymentStatus.DECLINED,
    PaymentStatus.CANCELLED,
    PaymentStatus.REFUNDED,
    PaymentStatus.FAILED,
    PaymentStatus.EXPIRED,
})

# Single transition table shared by the orchestrator, webhooks and reconciliation.
VALID_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.PROCESSING,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    }),
    PaymentStatus.PROCESSING: frozenset({
        PaymentStatus.PENDING,
        PaymentStatus.APPROVED,
        PaymentStatus.DECLINED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    }),
    PaymentStatus.APPROVED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.DECLINED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.EXPIRED: frozenset(),
}


def is_valid_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Address:
    street: str
    number: str
    neighborhood: str
    city: str
    state: str
    zip_code: str
    country: str
    complement: Optional[str] = None


@dataclass(frozen=True)
class CustomerSnapshot:
    """创建时捕获的客户快照，之后不再回查"""
    customer_id: str
    name: str
    email: str
    document: str
    address: Address


@dataclass(frozen=True)
class CardSnapshot:
    """仅保存掩码卡号（前4 + 后4），原始卡号永不落库"""
    masked_number: str
    holder_name: str
    brand: str


@dataclass(frozen=True)
class Fees:
    processing_fee: Decimal
    gateway_fee: Decimal
    total_fees: Decimal
    net_amount: Decimal


@dataclass
class Payment:
    """
    支付聚合根 - 管理支付生命周期

    业务规则：
    1. transaction_id 唯一且创建后不可变
    2. 金额必须大于0
    3. 状态转换必须遵循 VALID_TRANSITIONS，终态不可再转换
    4. 退款金额不能超过已处理金额
    5. 费用字段只在网关结果返回后一次性写入
    """

    id: Optional[int]
    transaction_id: str
    amount: Decimal
    currency: Currency
    payment_method: PaymentMethod
    status: PaymentStatus
    customer: CustomerSnapshot
    card: Optional[CardSnapshot] = None

    authorization_code: Optional[str] = None
    message: Optional[str] = None

    processed_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    processing_fee: Optional[Decimal] = None
    gateway_fee: Optional[Decimal] = None
    total_fees: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    refunded_amount: Optional[Decimal] = None

    # 网关回调信息（webhook 写入）
    gateway_transaction_id: Optional[str] = None
    gateway_response: Optional[str] = None

    metadata: dict = field(default_factory=dict)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= 0:
            raise DomainValidationException(
                f"Payment amount must be greater than zero: {self.amount}",
                field="amount",
            )
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.processed_at = _ensure_utc(self.processed_at)
        if self.metadata is None:
            self.metadata = {}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def fees(self) -> Optional[Fees]:
        if self.total_fees is None:
            return None
        return Fees(
            processing_fee=self.processing_fee,
            gateway_fee=self.gateway_fee,
            total_fees=self.total_fees,
            net_amount=self.net_amount,
        )

    def can_transition_to(self, target: PaymentStatus) -> bool:
        return is_valid_transition(self.status, target)

    def transition_to(
        self,
        target: PaymentStatus,
        *,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionException(self.status.value, target.value)
        self.status = target
        if message is not None:
            self.message = message
        self.updated_at = now or _utcnow()

    def apply_gateway_outcome(
        self,
        *,
        status: PaymentStatus,
        authorization_code: Optional[str],
        processed_amount: Decimal,
        message: str,
        fees: Optional[Fees],
        now: Optional[datetime] = None,
    ) -> None:
        """写入网关结果；费用与结果一起落地"""
        now = now or _utcnow()
        self.transition_to(status, message=message, now=now)
        self.authorization_code = authorization_code
        self.processed_amount = processed_amount
        self.processed_at = now
        if fees is not None:
            self.processing_fee = fees.processing_fee
            self.gateway_fee = fees.gateway_fee
            self.total_fees = fees.total_fees
            self.net_amount = fees.net_amount

    def cancel(self, *, now: Optional[datetime] = None) -> None:
        if self.status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            raise InvalidStatusTransitionException(
                self.status.value,
                PaymentStatus.CANCELLED.value,
                message=f"Cannot cancel payment with status {self.status.value}",
            )
        self.transition_to(PaymentStatus.CANCELLED, message="Payment cancelled by user", now=now)

    def refund(self, amount: Decimal, reason: Optional[str] = None, *, now: Optional[datetime] = None) -> None:
        """
        应用退款

        refunded_amount 记录最近一次退款金额（覆盖写）
        """
        if self.status != PaymentStatus.APPROVED:
            raise InvalidStatusTransitionException(
                self.status.value,
                PaymentStatus.REFUNDED.value,
                message=f"Cannot refund payment with status {self.status.value}",
            )
        if amount <= 0:
            raise DomainValidationException(
                f"Refund amount must be greater than zero: {amount}",
                field="amount",
            )
        if amount > self.processed_amount:
            raise RefundExceedsPaymentException(amount, self.processed_amount)
        self.transition_to(
            PaymentStatus.REFUNDED,
            message=f"Refund processed: {reason or 'No reason provided'}",
            now=now,
        )
        self.refunded_amount = amount

    def is_webhook_applied(self, status: PaymentStatus, gateway_transaction_id: Optional[str]) -> bool:
        """同一目标状态且同一网关交易号视为已处理过的回调"""
        return self.status == status and self.gateway_transaction_id == gateway_transaction_id

    def apply_webhook(
        self,
        status: PaymentStatus,
        *,
        gateway_transaction_id: Optional[str],
        gateway_response: Optional[str],
        amount: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        应用网关异步回调

        退款回调仅在金额合法（>0 且不超过已处理金额）时覆盖 refunded_amount，
        否则保留原有金额字段，状态照常转换。
        """
        now = now or _utcnow()
        self.transition_to(status, now=now)
        self.gateway_transaction_id = gateway_transaction_id
        self.gateway_response = gateway_response
        self.processed_at = now
        if status == PaymentStatus.REFUNDED and amount is not None and 0 < amount <= self.processed_amount:
            self.refunded_amount = amount
