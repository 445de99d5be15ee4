import json

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_payment_service, get_webhook_service
from application.services.payment_service import PaymentApplicationService
from application.services.webhook_service import WebhookApplicationService, compute_signature
from core.settings import PaymentSettings, WebhookSettings
from infrastructure.external.payments.simulated_gateway import SimulatedPaymentGateway
from infrastructure.rate_limiting import InMemoryRateLimiter
from main import app
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode

from conftest import DECLINED_CARD, make_request_data


@pytest.fixture
def client(uow_factory, publisher, clock):
    limiter = InMemoryRateLimiter(max_per_minute=3, clock=clock)
    settings = PaymentSettings(webhook=WebhookSettings(secret="s3cret"))

    def payment_service():
        return PaymentApplicationService(
            uow_factory=uow_factory,
            gateway=SimulatedPaymentGateway(),
            publisher=publisher,
            rate_limiter=limiter,
            settings=settings,
            clock=clock,
        )

    def webhook_service():
        return WebhookApplicationService(uow_factory, publisher, settings, clock)

    app.dependency_overrides[get_payment_service] = payment_service
    app.dependency_overrides[get_webhook_service] = webhook_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _pay(client, **overrides):
    return client.post("/api/v1/payments", json=make_request_data(**overrides))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"


def test_process_payment_approved(client):
    response = _pay(client)
    body = response.json()
    assert response.status_code == 200
    assert body["code"] == 0
    assert body["data"]["status"] == "Approved"
    assert body["data"]["fees"]["total_fees"] == "3.80"
    assert response.headers["X-Request-ID"]


def test_request_id_is_propagated(client):
    response = client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"


def test_decline_is_a_normal_outcome(client):
    card = dict(make_request_data()["card"], number=DECLINED_CARD)
    response = _pay(client, card=card)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "Declined"
    assert response.json()["data"]["message"] == "Card declined by issuer"


def test_duplicate_maps_to_409(client):
    data = make_request_data()
    client.post("/api/v1/payments", json=data)
    response = client.post("/api/v1/payments", json=data)
    body = response.json()
    assert response.status_code == 409
    assert body["code"] == PaymentCode.DUPLICATE_TRANSACTION
    assert body["data"]["status"] == "Failed"
    assert "Duplicate" in body["message"]


def test_rate_limit_maps_to_429(client):
    for _ in range(3):
        assert _pay(client).status_code == 200
    response = _pay(client)
    assert response.status_code == 429
    assert "Rate limit" in response.json()["message"]


def test_business_validation_maps_to_400(client):
    customer = dict(make_request_data()["customer"], document="00000000000")
    response = _pay(client, customer=customer)
    assert response.status_code == 400
    assert response.json()["code"] == PaymentCode.VALIDATION_FAILED


def test_schema_validation_maps_to_400(client):
    response = _pay(client, amount="0")
    assert response.status_code == 400
    assert response.json()["code"] == BusinessCode.PARAM_VALIDATION_ERROR


def test_status_not_found_maps_to_404(client):
    response = client.get("/api/v1/payments/7b0c9a6e-3f1d-4f5e-9c55-2a1a0f7e8b11")
    assert response.status_code == 404
    assert "not found" in response.json()["message"]


def test_status_cancel_and_refund(client):
    data = make_request_data()
    _pay(client, **data)
    tx = data["transaction_id"]

    status = client.get(f"/api/v1/payments/{tx}")
    assert status.status_code == 200
    assert status.json()["data"]["status"] == "Approved"

    cancel = client.post(f"/api/v1/payments/{tx}/cancel")
    assert cancel.status_code == 400
    assert "Cannot cancel" in cancel.json()["message"]

    too_much = client.post(f"/api/v1/payments/{tx}/refund", json={"amount": "500.00"})
    assert too_much.status_code == 400
    assert too_much.json()["code"] == PaymentCode.REFUND_EXCEEDS_PAYMENT

    refund = client.post(f"/api/v1/payments/{tx}/refund", json={"amount": "20.00", "reason": "partial"})
    assert refund.status_code == 200
    assert refund.json()["data"]["status"] == "Refunded"
    assert refund.json()["data"]["refunded_amount"] == "20.00"


def test_list_payments(client, clock):
    for _ in range(3):
        _pay(client, payment_method="Pix", card=None)
        clock.advance(seconds=1)

    response = client.get("/api/v1/payments", params={"page": 1, "page_size": 2, "payment_method": "Pix"})
    data = response.json()["data"]
    assert response.status_code == 200
    assert data["total_items"] == 3
    assert data["total_pages"] == 2
    assert data["has_next_page"] is True
    assert len(data["items"]) == 2


def _signed_post(client, payload: dict, secret: str = "s3cret"):
    body = json.dumps(payload).encode()
    return client.post(
        "/api/v1/webhooks/payment",
        content=body,
        headers={"Content-Type": "application/json", "X-Webhook-Signature": compute_signature(secret, body)},
    )


def test_webhook_confirms_boleto(client):
    data = make_request_data(payment_method="Boleto", card=None)
    _pay(client, **data)
    tx = data["transaction_id"]

    first = _signed_post(client, {"transaction_id": tx, "status": "Processing", "gateway_transaction_id": "gw-1"})
    second = _signed_post(client, {"transaction_id": tx, "status": "Approved", "gateway_transaction_id": "gw-1"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["data"]["status"] == "Approved"
    assert client.get(f"/api/v1/payments/{tx}").json()["data"]["status"] == "Approved"


def test_webhook_bad_signature(client):
    response = _signed_post(client, {"transaction_id": "x", "status": "Approved"}, secret="wrong")
    assert response.status_code == 401
    assert response.json()["code"] == PaymentCode.WEBHOOK_SIGNATURE_INVALID


def test_webhook_unknown_payment(client):
    response = _signed_post(
        client, {"transaction_id": "7b0c9a6e-3f1d-4f5e-9c55-2a1a0f7e8b11", "status": "Approved"}
    )
    assert response.status_code == 404


def test_webhook_invalid_body(client):
    response = _signed_post(client, {"transaction_id": "x", "status": "NotAStatus"})
    assert response.status_code == 400
