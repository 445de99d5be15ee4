"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator

from domain.payment.entity import Currency, PaymentMethod, PaymentStatus
from shared.codes.payment_codes import PaymentCode

T = TypeVar("T")


class AddressInfo(BaseModel):
    street: str = Field(..., min_length=1, max_length=200, description="街道")
    number: str = Field(..., min_length=1, max_length=50, description="门牌号")
    complement: Optional[str] = Field(None, max_length=100, description="补充地址")
    neighborhood: str = Field(..., min_length=1, max_length=100, description="街区")
    city: str = Field(..., min_length=1, max_length=100, description="城市")
    state: str = Field(..., min_length=2, max_length=2, description="州（两位缩写）")
    zip_code: str = Field(..., min_length=1, max_length=10, description="邮编")
    country: str = Field(..., min_length=1, max_length=100, description="国家")


class CustomerInfo(BaseModel):
    customer_id: str = Field(..., max_length=50, description="客户ID")
    name: str = Field(..., min_length=1, max_length=200, description="客户姓名")
    email: EmailStr = Field(..., description="邮箱地址")
    document: str = Field(..., max_length=20, description="CPF / CNPJ")
    address: AddressInfo


class CardInfo(BaseModel):
    number: str = Field(..., max_length=23, description="卡号，允许空格或连字符")
    holder_name: str = Field(..., min_length=1, max_length=100, description="持卡人")
    expiry_month: str = Field(..., min_length=1, max_length=2)
    expiry_year: str = Field(..., min_length=2, max_length=4)
    cvv: str = Field(..., min_length=3, max_length=4)
    brand: str = Field(..., max_length=20, description="VISA, MASTERCARD ...")


class PaymentRequest(BaseModel):
    transaction_id: str = Field(..., max_length=50, description="外部交易ID（UUID）")
    amount: Decimal = Field(..., ge=Decimal("0.01"), le=Decimal("1000000.00"), decimal_places=2)
    currency: Currency
    payment_method: PaymentMethod
    customer: CustomerInfo
    card: Optional[CardInfo] = None
    metadata: Optional[dict[str, Any]] = None


class PaymentFees(BaseModel):
    processing_fee: Decimal
    gateway_fee: Decimal
    total_fees: Decimal
    net_amount: Decimal


class PaymentResponse(BaseModel):
    """成功与失败共用的响应形态；失败时 status=Failed 且 processed_amount=0"""

    transaction_id: str
    status: PaymentStatus
    code: int = PaymentCode.SUCCESS
    authorization_code: Optional[str] = None
    processed_at: Optional[datetime] = None
    message: str = ""
    processed_amount: Decimal = Decimal("0")
    refunded_amount: Optional[Decimal] = None
    fees: Optional[PaymentFees] = None

    @property
    def succeeded(self) -> bool:
        return self.code == PaymentCode.SUCCESS


class RefundRequest(BaseModel):
    amount: Decimal = Field(..., ge=Decimal("0.01"), le=Decimal("1000000.00"))
    reason: Optional[str] = Field(None, max_length=500)


class PagedResult(BaseModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total_items: int = 0
    page: int = 1
    page_size: int = 10

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_items / self.page_size)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


class PaymentWebhook(BaseModel):
    """网关异步回调"""

    transaction_id: str = Field(..., max_length=50)
    status: PaymentStatus = Field(..., description="目标状态")
    amount: Optional[Decimal] = None
    gateway_transaction_id: Optional[str] = Field(None, max_length=200)
    gateway_response: Optional[str] = None
    event_type: Optional[str] = Field(None, max_length=100)
    event_date: Optional[datetime] = None
    data: Optional[dict[str, Any]] = None

    @field_validator("transaction_id")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()


class WebhookResult(BaseModel):
    success: bool
    code: int = PaymentCode.SUCCESS
    message: str
    transaction_id: Optional[str] = None
    status: Optional[PaymentStatus] = None
    already_applied: bool = False


class GatewayOutcome(BaseModel):
    """网关对单笔支付返回的结果"""

    model_config = ConfigDict(frozen=True)

    status: PaymentStatus
    authorization_code: Optional[str] = None
    processed_amount: Decimal = Decimal("0")
    message: str = ""
