"""
网关异步回调处理

回调是 boleto 确认以及网关侧状态变化的主要通道；与同步处理共用同一张状态转换表。
同一回调重复投递时只确认，不再写库或发布事件。
"""
from __future__ import annotations

import asyncio
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Callable, Optional

from application.dtos.payments import PaymentWebhook, WebhookResult
from application.ports.event_publisher import EventPublisher
from application.services.event_dispatch import EventDispatcher, refunded_event, status_changed_event
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.common.exceptions import BusinessException, PaymentNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentStatus
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class WebhookApplicationService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        publisher: EventPublisher,
        settings: PaymentSettings = payment_settings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._settings = settings
        self._clock = clock
        self._events = EventDispatcher(publisher, timeout=settings.timeouts.publisher)

    @property
    def signature_header(self) -> str:
        return self._settings.webhook.signature_header

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """未配置 secret 时不校验；签名为请求体的 HMAC-SHA256 十六进制摘要"""
        secret = self._settings.webhook.secret
        if not secret:
            return True
        if not signature:
            return False
        expected = compute_signature(secret, body)
        return hmac.compare_digest(expected, signature.strip().lower())

    async def apply_webhook(self, webhook: PaymentWebhook) -> WebhookResult:
        transaction_id = webhook.transaction_id
        if not transaction_id:
            logger.warning("webhook_rejected", reason="missing transaction_id")
            return WebhookResult(
                success=False,
                code=PaymentCode.WEBHOOK_REJECTED,
                message="Webhook transaction ID is required",
            )

        log = logger.bind(transaction_id=transaction_id, target_status=webhook.status.value)
        store_timeout = self._settings.timeouts.store
        try:
            async with self._uow_factory() as uow:
                payment = await asyncio.wait_for(
                    uow.payment_repository.get_for_update(transaction_id), store_timeout
                )
                if payment is None:
                    raise PaymentNotFoundException(transaction_id)

                if payment.is_webhook_applied(webhook.status, webhook.gateway_transaction_id):
                    log.info("webhook_already_applied")
                    return WebhookResult(
                        success=True,
                        message="Webhook already applied",
                        transaction_id=transaction_id,
                        status=payment.status,
                        already_applied=True,
                    )

                previous_status = payment.status
                payment.apply_webhook(
                    webhook.status,
                    gateway_transaction_id=webhook.gateway_transaction_id,
                    gateway_response=webhook.gateway_response,
                    amount=webhook.amount,
                    now=self._clock(),
                )
                payment = await asyncio.wait_for(uow.payment_repository.update(payment), store_timeout)
        except BusinessException as exc:
            log.warning("webhook_rejected", reason=exc.message, code=int(exc.code))
            return WebhookResult(
                success=False,
                code=exc.code,
                message=exc.message,
                transaction_id=transaction_id,
            )
        except Exception:
            log.error("webhook_processing_failed", exc_info=True)
            return WebhookResult(
                success=False,
                code=PaymentCode.PROCESSING_ERROR,
                message="Error processing webhook",
                transaction_id=transaction_id,
            )

        log.info("webhook_applied", previous_status=previous_status.value)
        if payment.status == PaymentStatus.REFUNDED:
            event = refunded_event(payment, webhook.gateway_response)
        else:
            reason = f"Webhook: {webhook.gateway_response or webhook.status.value}"
            event = status_changed_event(payment, previous_status, reason)
        await self._events.dispatch(event)

        return WebhookResult(
            success=True,
            message="Webhook processed successfully",
            transaction_id=transaction_id,
            status=payment.status,
        )
