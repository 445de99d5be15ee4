"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class PaymentNotFoundException(BusinessException):
    def __init__(self, transaction_id: str):
        super().__init__(
            code=PaymentCode.PAYMENT_NOT_FOUND,
            message="Payment not found",
            error_type="PaymentNotFound",
            details={"transaction_id": transaction_id},
        )


class PaymentAlreadyExistsException(BusinessException):
    """Raised by the store when the transaction_id uniqueness constraint fires."""

    def __init__(self, transaction_id: str):
        super().__init__(
            code=PaymentCode.DUPLICATE_TRANSACTION,
            message="Duplicate transaction ID",
            error_type="DuplicateTransaction",
            details={"transaction_id": transaction_id},
            field="transaction_id",
        )


class InvalidStatusTransitionException(BusinessException):
    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        super().__init__(
            code=PaymentCode.INVALID_STATUS_TRANSITION,
            message=message or f"Invalid status transition from {current} to {requested}",
            error_type="InvalidStatusTransition",
            details={"current_status": current, "requested_status": requested},
            field="status",
        )


class RefundExceedsPaymentException(BusinessException):
    def __init__(self, refund_amount: Decimal, processed_amount: Decimal):
        super().__init__(
            code=PaymentCode.REFUND_EXCEEDS_PAYMENT,
            message="Refund amount cannot exceed processed amount",
            error_type="RefundExceedsPayment",
            details={
                "refund_amount": str(refund_amount),
                "processed_amount": str(processed_amount),
            },
            field="amount",
        )
