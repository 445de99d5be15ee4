"""
Payment specific codes.

Every failed PaymentResponse carries one of these so the transport layer can
pick a status code without parsing the human-readable message.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Request rejected before any record exists (201xx)
    VALIDATION_FAILED = 20100
    RATE_LIMITED = 20101
    DUPLICATE_TRANSACTION = 20102

    # Lifecycle rule violations (202xx)
    PAYMENT_NOT_FOUND = 20200
    INVALID_STATUS_TRANSITION = 20201
    REFUND_EXCEEDS_PAYMENT = 20202

    # Gateway could not settle the payment (203xx); a decline is a normal outcome
    GATEWAY_FAILED = 20301

    # Webhook (204xx)
    WEBHOOK_REJECTED = 20400
    WEBHOOK_SIGNATURE_INVALID = 20401

    # Unexpected (6xxxx)
    PROCESSING_ERROR = 60000


__all__ = ["PaymentCode"]
