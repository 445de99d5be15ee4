"""
Exceptions raised by gateway adapters, mapped to unified BusinessException variants.

The orchestrator turns any of them into a Failed outcome.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class GatewayError(BusinessException):
    def __init__(self, message: str, *, provider: str, status_code: int | None = None, details: Optional[dict] = None):
        full_details = {"provider": provider, "status_code": status_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.GATEWAY_FAILED,
            message=message,
            error_type="GatewayError",
            details=full_details,
        )


class GatewayRecoverableError(GatewayError):
    """Transient failure (5xx, 429); safe to retry."""
