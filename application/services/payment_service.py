"""
Application service orchestrating the payment lifecycle.

Depends only on application ports (gateway, publisher, rate limiter) and the
unit of work; concrete adapters are injected from the composition root
(API dependencies or Celery tasks), keeping dependencies one-way.

Every operation returns a structured ``PaymentResponse``; business failures
carry a ``PaymentCode`` and a readable message, unexpected failures are logged
with full detail and surfaced only as a generic message.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from application.dtos.payments import (
    GatewayOutcome,
    PagedResult,
    PaymentRequest,
    PaymentResponse,
    RefundRequest,
)
from application.mappers import entity_to_response, failed_response, request_to_entity
from application.ports.event_publisher import EventPublisher
from application.ports.payment_gateway import PaymentGateway
from application.ports.rate_limiter import RateLimiter
from application.services.event_dispatch import (
    EventDispatcher,
    cancelled_event,
    outcome_event,
    refunded_event,
    status_changed_event,
)
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.common.exceptions import (
    BusinessException,
    PaymentAlreadyExistsException,
    PaymentNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import CARD_METHODS, Payment, PaymentMethod, PaymentStatus
from domain.payment.fees import calculate_fees
from domain.payment.repository import PaymentFilter
from domain.payment.validation import (
    validate_card_number,
    validate_document,
    validate_transaction_id_format,
)
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)

T = TypeVar("T")

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
DUPLICATE_MESSAGE = "Duplicate transaction ID"
PROCESSING_FAILED_MESSAGE = "Payment processing failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def collect_validation_errors(request: PaymentRequest) -> List[str]:
    errors: List[str] = []
    if not validate_document(request.customer.document):
        errors.append("Invalid customer document")
    if request.payment_method in CARD_METHODS and request.card is None:
        errors.append("Card information is required for card payments")
    if request.card is not None and not validate_card_number(request.card.number):
        errors.append("Invalid card number")
    if not validate_transaction_id_format(request.transaction_id):
        errors.append("Invalid transaction ID format")
    return errors


class PaymentApplicationService:
    """Payment lifecycle workflows bridging API/tasks and the domain."""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        publisher: EventPublisher,
        gateway: Optional[PaymentGateway] = None,
        rate_limiter: Optional[RateLimiter] = None,
        settings: PaymentSettings = payment_settings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._rate_limiter = rate_limiter
        self._settings = settings
        self._clock = clock
        self._events = EventDispatcher(publisher, timeout=settings.timeouts.publisher)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _store(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, self._settings.timeouts.store)

    async def _load(self, uow: AbstractUnitOfWork, transaction_id: str, *, for_update: bool = False) -> Payment:
        repository = uow.payment_repository
        read = repository.get_for_update if for_update else repository.get_by_transaction_id
        payment = await self._store(read(transaction_id))
        if payment is None:
            raise PaymentNotFoundException(transaction_id)
        return payment

    def _business_failure(self, transaction_id: str, exc: BusinessException) -> PaymentResponse:
        return failed_response(transaction_id, exc.message, exc.code, now=self._clock())

    def _gateway_call(self, method: PaymentMethod) -> Callable[[PaymentRequest], Awaitable[GatewayOutcome]]:
        handlers = {
            PaymentMethod.CREDIT_CARD: self._gateway.process_credit_card,
            PaymentMethod.DEBIT: self._gateway.process_debit,
            PaymentMethod.PIX: self._gateway.process_pix,
            PaymentMethod.BOLETO: self._gateway.process_boleto,
        }
        return handlers[method]

    async def _invoke_gateway(self, request: PaymentRequest) -> Optional[GatewayOutcome]:
        """None means the gateway could not produce an outcome (error or timeout)."""
        try:
            return await asyncio.wait_for(
                self._gateway_call(request.payment_method)(request),
                self._settings.timeouts.gateway,
            )
        except Exception as exc:
            logger.error(
                "payment_gateway_failed",
                transaction_id=request.transaction_id,
                payment_method=request.payment_method.value,
                error=str(exc) or exc.__class__.__name__,
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    async def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        if self._gateway is None or self._rate_limiter is None:
            raise RuntimeError("process_payment requires a gateway and a rate limiter")
        transaction_id = request.transaction_id
        logger.info(
            "payment_processing_started",
            transaction_id=transaction_id,
            payment_method=request.payment_method.value,
            customer_id=request.customer.customer_id,
        )
        try:
            if not await self._rate_limiter.allow(request.customer.customer_id):
                logger.warning(
                    "payment_rate_limited",
                    transaction_id=transaction_id,
                    customer_id=request.customer.customer_id,
                )
                return failed_response(
                    transaction_id, RATE_LIMIT_MESSAGE, PaymentCode.RATE_LIMITED, now=self._clock()
                )

            errors = collect_validation_errors(request)
            if errors:
                logger.warning("payment_validation_failed", transaction_id=transaction_id, errors=errors)
                return failed_response(
                    transaction_id, ", ".join(errors), PaymentCode.VALIDATION_FAILED, now=self._clock()
                )

            try:
                payment = await self._create_record(request)
            except PaymentAlreadyExistsException:
                logger.warning("payment_duplicate_rejected", transaction_id=transaction_id)
                return failed_response(
                    transaction_id, DUPLICATE_MESSAGE, PaymentCode.DUPLICATE_TRANSACTION, now=self._clock()
                )

            outcome = await self._invoke_gateway(request)
            payment, applied = await self._record_outcome(payment, outcome)
        except Exception:
            logger.error("payment_processing_error", transaction_id=transaction_id, exc_info=True)
            return failed_response(
                transaction_id, PROCESSING_FAILED_MESSAGE, PaymentCode.PROCESSING_ERROR, now=self._clock()
            )

        if not applied:
            # the record moved on while the gateway was busy; its stored state wins
            return entity_to_response(payment)

        await self._events.dispatch(outcome_event(payment, self._settings.high_value_threshold))

        logger.info(
            "payment_processing_completed",
            transaction_id=transaction_id,
            status=payment.status.value,
            authorization_code=payment.authorization_code,
        )
        code = PaymentCode.GATEWAY_FAILED if payment.status == PaymentStatus.FAILED else PaymentCode.SUCCESS
        return entity_to_response(payment, code=code)

    async def _create_record(self, request: PaymentRequest) -> Payment:
        """Persist the Processing record before the gateway is called."""
        async with self._uow_factory() as uow:
            existing = await self._store(uow.payment_repository.get_by_transaction_id(request.transaction_id))
            if existing is not None:
                raise PaymentAlreadyExistsException(request.transaction_id)
            payment = request_to_entity(request, now=self._clock())
            return await self._store(uow.payment_repository.create(payment))

    async def _record_outcome(
        self, payment: Payment, outcome: Optional[GatewayOutcome]
    ) -> Tuple[Payment, bool]:
        """
        Apply the gateway outcome to the locked, current stored state.

        Returns the stored payment and whether the outcome was applied. An
        outcome is discarded when the record already left Processing, e.g. it
        was cancelled while the gateway call was in flight.
        """
        if outcome is not None and not payment.can_transition_to(outcome.status):
            logger.error(
                "payment_gateway_unexpected_status",
                transaction_id=payment.transaction_id,
                status=outcome.status.value,
            )
            outcome = None

        if outcome is None:
            # no outcome from the gateway: nothing settled, no fees
            status, auth_code, processed, message, fees = (
                PaymentStatus.FAILED, None, Decimal("0"), PROCESSING_FAILED_MESSAGE, None
            )
        else:
            status = outcome.status
            auth_code = outcome.authorization_code
            processed = outcome.processed_amount
            message = outcome.message
            fees = calculate_fees(payment.amount, payment.payment_method)

        async with self._uow_factory() as uow:
            current = await self._load(uow, payment.transaction_id, for_update=True)
            if current.status != PaymentStatus.PROCESSING:
                logger.warning(
                    "payment_gateway_outcome_discarded",
                    transaction_id=current.transaction_id,
                    stored_status=current.status.value,
                    outcome_status=status.value,
                    authorization_code=auth_code,
                )
                return current, False
            current.apply_gateway_outcome(
                status=status,
                authorization_code=auth_code,
                processed_amount=processed,
                message=message,
                fees=fees,
                now=self._clock(),
            )
            return await self._store(uow.payment_repository.update(current)), True

    async def get_payment_status(self, transaction_id: str) -> PaymentResponse:
        try:
            async with self._uow_factory(readonly=True) as uow:
                payment = await self._load(uow, transaction_id)
        except BusinessException as exc:
            return self._business_failure(transaction_id, exc)
        except Exception:
            logger.error("payment_status_lookup_failed", transaction_id=transaction_id, exc_info=True)
            return failed_response(
                transaction_id, "Error retrieving payment status", PaymentCode.PROCESSING_ERROR, now=self._clock()
            )
        return entity_to_response(payment)

    async def cancel_payment(self, transaction_id: str) -> PaymentResponse:
        try:
            async with self._uow_factory() as uow:
                payment = await self._load(uow, transaction_id, for_update=True)
                previous_status = payment.status
                payment.cancel(now=self._clock())
                payment = await self._store(uow.payment_repository.update(payment))
        except BusinessException as exc:
            logger.warning("payment_cancel_rejected", transaction_id=transaction_id, reason=exc.message)
            return self._business_failure(transaction_id, exc)
        except Exception:
            logger.error("payment_cancel_failed", transaction_id=transaction_id, exc_info=True)
            return failed_response(
                transaction_id, "Error cancelling payment", PaymentCode.PROCESSING_ERROR, now=self._clock()
            )

        logger.info("payment_cancelled", transaction_id=transaction_id, previous_status=previous_status.value)
        await self._events.dispatch(cancelled_event(payment, previous_status))
        return entity_to_response(payment)

    async def refund_payment(self, transaction_id: str, refund: RefundRequest) -> PaymentResponse:
        try:
            async with self._uow_factory() as uow:
                payment = await self._load(uow, transaction_id, for_update=True)
                payment.refund(refund.amount, refund.reason, now=self._clock())
                payment = await self._store(uow.payment_repository.update(payment))
        except BusinessException as exc:
            logger.warning("payment_refund_rejected", transaction_id=transaction_id, reason=exc.message)
            return self._business_failure(transaction_id, exc)
        except Exception:
            logger.error("payment_refund_failed", transaction_id=transaction_id, exc_info=True)
            return failed_response(
                transaction_id, "Error processing refund", PaymentCode.PROCESSING_ERROR, now=self._clock()
            )

        logger.info("payment_refunded", transaction_id=transaction_id, refund_amount=str(refund.amount))
        await self._events.dispatch(refunded_event(payment, refund.reason))
        return entity_to_response(payment)

    async def list_payments(self, payment_filter: PaymentFilter) -> PagedResult[PaymentResponse]:
        try:
            async with self._uow_factory(readonly=True) as uow:
                items, total = await self._store(uow.payment_repository.list_by_filter(payment_filter))
        except Exception:
            logger.error("payment_list_failed", exc_info=True)
            return PagedResult[PaymentResponse](
                items=[], total_items=0, page=payment_filter.page, page_size=payment_filter.page_size
            )
        return PagedResult[PaymentResponse](
            items=[entity_to_response(p) for p in items],
            total_items=total,
            page=payment_filter.page,
            page_size=payment_filter.page_size,
        )

    async def reconcile_stale_payments(self, older_than: Optional[timedelta] = None) -> int:
        """Expire Pending and fail Processing payments stuck longer than ``older_than``."""
        reconciliation = self._settings.reconciliation
        now = self._clock()
        cutoff = now - (older_than or timedelta(minutes=reconciliation.stale_after_minutes))
        changed = []
        async with self._uow_factory() as uow:
            stale = await self._store(
                uow.payment_repository.list_stale(
                    [PaymentStatus.PENDING, PaymentStatus.PROCESSING],
                    cutoff,
                    limit=reconciliation.batch_size,
                )
            )
            for payment in stale:
                previous_status = payment.status
                if previous_status == PaymentStatus.PENDING:
                    payment.transition_to(
                        PaymentStatus.EXPIRED, message="Payment expired without confirmation", now=now
                    )
                    reason = "Reconciliation: pending payment expired"
                else:
                    payment.transition_to(
                        PaymentStatus.FAILED, message="Gateway outcome was never recorded", now=now
                    )
                    reason = "Reconciliation: processing payment failed"
                updated = await self._store(uow.payment_repository.update(payment))
                changed.append((updated, previous_status, reason))

        for payment, previous_status, reason in changed:
            await self._events.dispatch(status_changed_event(payment, previous_status, reason))
        logger.info("payments_reconciled", count=len(changed), cutoff=cutoff.isoformat())
        return len(changed)
