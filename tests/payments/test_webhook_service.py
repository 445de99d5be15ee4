import asyncio
from decimal import Decimal

import pytest

from application.dtos.payments import PaymentWebhook
from application.services.payment_service import PaymentApplicationService
from application.services.webhook_service import WebhookApplicationService, compute_signature
from core.settings import PaymentSettings, WebhookSettings
from domain.payment.entity import PaymentStatus
from domain.payment.events import EventDestination, PaymentEventType
from infrastructure.external.payments.simulated_gateway import SimulatedPaymentGateway
from shared.codes.payment_codes import PaymentCode

from conftest import RecordingPublisher, make_request


@pytest.fixture
def webhook_service(uow_factory, publisher, payment_settings, clock):
    return WebhookApplicationService(
        uow_factory=uow_factory, publisher=publisher, settings=payment_settings, clock=clock
    )


async def _create(uow_factory, rate_limiter, clock, **overrides):
    service = PaymentApplicationService(
        uow_factory=uow_factory,
        gateway=SimulatedPaymentGateway(),
        publisher=RecordingPublisher(),
        rate_limiter=rate_limiter,
        clock=clock,
    )
    request = make_request(**overrides)
    await service.process_payment(request)
    return request.transaction_id


@pytest.mark.asyncio
async def test_boleto_confirmation_is_idempotent(webhook_service, uow_factory, repository, publisher, rate_limiter, clock):
    tx = await _create(uow_factory, rate_limiter, clock, payment_method="Boleto", card=None)
    # Pending -> Processing -> Approved, the way the gateway reports a paid boleto
    processing = PaymentWebhook(transaction_id=tx, status=PaymentStatus.PROCESSING, gateway_transaction_id="gw-1")
    approved = PaymentWebhook(
        transaction_id=tx,
        status=PaymentStatus.APPROVED,
        gateway_transaction_id="gw-1",
        gateway_response="paid",
    )

    assert (await webhook_service.apply_webhook(processing)).success
    first = await webhook_service.apply_webhook(approved)
    updates = repository.update_calls
    published = len(publisher.published)

    second = await webhook_service.apply_webhook(approved)

    assert first.success and not first.already_applied
    assert second.success and second.already_applied
    assert repository.update_calls == updates
    assert len(publisher.published) == published
    stored = repository.rows[tx]
    assert stored.status == PaymentStatus.APPROVED
    assert stored.gateway_transaction_id == "gw-1"
    assert stored.gateway_response == "paid"


@pytest.mark.asyncio
async def test_status_change_event_published(webhook_service, uow_factory, publisher, rate_limiter, clock):
    tx = await _create(uow_factory, rate_limiter, clock, payment_method="Boleto", card=None)
    await webhook_service.apply_webhook(
        PaymentWebhook(transaction_id=tx, status=PaymentStatus.EXPIRED, gateway_transaction_id="gw-9")
    )
    event, destination = publisher.published[-1]
    assert event.event_type == PaymentEventType.PAYMENT_STATUS_CHANGED
    assert event.payload.previous_status == "Pending"
    assert event.payload.new_status == "Expired"
    assert event.payload.reason == "Webhook: Expired"
    assert destination == EventDestination.MESSAGE_QUEUE


@pytest.mark.asyncio
async def test_illegal_transition_is_rejected(webhook_service, uow_factory, repository, publisher, rate_limiter, clock):
    tx = await _create(uow_factory, rate_limiter, clock, payment_method="Pix", card=None)
    updates = repository.update_calls

    result = await webhook_service.apply_webhook(
        PaymentWebhook(transaction_id=tx, status=PaymentStatus.PENDING, gateway_transaction_id="gw-2")
    )

    assert result.success is False
    assert result.code == PaymentCode.INVALID_STATUS_TRANSITION
    assert repository.update_calls == updates
    assert repository.rows[tx].status == PaymentStatus.APPROVED
    assert publisher.published == []


@pytest.mark.asyncio
async def test_refund_webhook_sets_refunded_amount(webhook_service, uow_factory, repository, publisher, rate_limiter, clock):
    tx = await _create(uow_factory, rate_limiter, clock, payment_method="Pix", card=None)

    result = await webhook_service.apply_webhook(
        PaymentWebhook(
            transaction_id=tx,
            status=PaymentStatus.REFUNDED,
            amount=Decimal("25.00"),
            gateway_transaction_id="gw-3",
            gateway_response="chargeback",
        )
    )

    assert result.success
    assert repository.rows[tx].refunded_amount == Decimal("25.00")
    assert publisher.published[-1][0].event_type == PaymentEventType.PAYMENT_REFUNDED


@pytest.mark.asyncio
async def test_unknown_payment(webhook_service, publisher):
    result = await webhook_service.apply_webhook(
        PaymentWebhook(transaction_id="7b0c9a6e-3f1d-4f5e-9c55-2a1a0f7e8b11", status=PaymentStatus.APPROVED)
    )
    assert result.success is False
    assert result.code == PaymentCode.PAYMENT_NOT_FOUND
    assert publisher.published == []


@pytest.mark.asyncio
async def test_blank_transaction_id(webhook_service, repository):
    result = await webhook_service.apply_webhook(PaymentWebhook(transaction_id="   ", status=PaymentStatus.APPROVED))
    assert result.success is False
    assert result.code == PaymentCode.WEBHOOK_REJECTED


@pytest.mark.asyncio
async def test_publish_failure_keeps_update(uow_factory, repository, rate_limiter, clock):
    tx = await _create(uow_factory, rate_limiter, clock, payment_method="Boleto", card=None)
    service = WebhookApplicationService(uow_factory, RecordingPublisher(fail=True), PaymentSettings(), clock)

    result = await service.apply_webhook(
        PaymentWebhook(transaction_id=tx, status=PaymentStatus.CANCELLED, gateway_transaction_id="gw-4")
    )

    assert result.success
    assert repository.rows[tx].status == PaymentStatus.CANCELLED


def test_signature_disabled_without_secret(webhook_service):
    assert webhook_service.verify_signature(b"{}", None) is True


def test_signature_verification(uow_factory, publisher):
    settings = PaymentSettings(webhook=WebhookSettings(secret="s3cret"))
    service = WebhookApplicationService(uow_factory, publisher, settings)
    body = b'{"transaction_id": "abc", "status": "Approved"}'

    assert service.verify_signature(body, compute_signature("s3cret", body)) is True
    assert service.verify_signature(body, compute_signature("other", body)) is False
    assert service.verify_signature(body, None) is False


@pytest.mark.asyncio
async def test_concurrent_duplicate_webhooks_apply_once(webhook_service, uow_factory, repository, publisher, rate_limiter, clock):
    tx = await _create(uow_factory, rate_limiter, clock, payment_method="Boleto", card=None)
    webhook = PaymentWebhook(transaction_id=tx, status=PaymentStatus.PROCESSING, gateway_transaction_id="gw-9")
    updates = repository.update_calls

    first, second = await asyncio.gather(
        webhook_service.apply_webhook(webhook),
        webhook_service.apply_webhook(webhook),
    )

    assert first.success and second.success
    assert sorted([first.already_applied, second.already_applied]) == [False, True]
    assert repository.update_calls == updates + 1
    assert len(publisher.published) == 1
