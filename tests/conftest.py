"""Pytest bootstrap configuration.

Settings are read at import time, so the environment is pinned before any
application module is imported.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PAYMENT__RATE_LIMIT__BACKEND", "memory")
os.environ.setdefault("PAYMENT__EVENTS__PROVIDER", "inmemory")

import asyncio
import contextvars
import copy
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import pytest

from application.dtos.payments import GatewayOutcome, PaymentRequest
from core.settings import PaymentSettings
from domain.common.exceptions import PaymentAlreadyExistsException, PaymentNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.events import DomainEvent, EventDestination
from domain.payment.repository import PaymentFilter, PaymentRepository
from infrastructure.rate_limiting import InMemoryRateLimiter


# row locks held by the unit of work running in the current task
_held_locks: contextvars.ContextVar[Optional[List[asyncio.Lock]]] = contextvars.ContextVar(
    "held_locks", default=None
)


VALID_CPF = "52998224725"
APPROVED_CARD = "4111111111111111"
DECLINED_CARD = "4111111111170000"


class InMemoryPaymentRepository(PaymentRepository):
    """Stores copies so that only update() makes a mutation visible."""

    def __init__(self) -> None:
        self.rows: Dict[str, Payment] = {}
        self.update_calls = 0
        self.fail_with: Optional[Exception] = None
        self.locked_reads = 0
        self._next_id = 1
        self._row_locks: Dict[str, asyncio.Lock] = {}

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def create(self, payment: Payment) -> Payment:
        self._check()
        if payment.transaction_id in self.rows:
            raise PaymentAlreadyExistsException(payment.transaction_id)
        stored = copy.deepcopy(payment)
        stored.id = self._next_id
        self._next_id += 1
        self.rows[payment.transaction_id] = stored
        return copy.deepcopy(stored)

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        self._check()
        # a real store suspends here, letting concurrent tasks interleave
        await asyncio.sleep(0)
        found = self.rows.get(transaction_id)
        return copy.deepcopy(found) if found else None

    async def get_for_update(self, transaction_id: str) -> Optional[Payment]:
        """Holds a per-row lock until the owning unit of work exits, like SELECT ... FOR UPDATE."""
        self._check()
        lock = self._row_locks.setdefault(transaction_id, asyncio.Lock())
        held = _held_locks.get()
        if held is None or lock not in held:
            await lock.acquire()
            if held is not None:
                held.append(lock)
        self.locked_reads += 1
        found = self.rows.get(transaction_id)
        return copy.deepcopy(found) if found else None

    async def update(self, payment: Payment) -> Payment:
        self._check()
        if payment.transaction_id not in self.rows:
            raise PaymentNotFoundException(payment.transaction_id)
        self.update_calls += 1
        self.rows[payment.transaction_id] = copy.deepcopy(payment)
        return copy.deepcopy(payment)

    async def list_by_filter(self, payment_filter: PaymentFilter) -> Tuple[List[Payment], int]:
        self._check()
        items = [
            p for p in self.rows.values()
            if (payment_filter.status is None or p.status == payment_filter.status)
            and (payment_filter.customer_id is None or p.customer.customer_id == payment_filter.customer_id)
            and (payment_filter.payment_method is None or p.payment_method == payment_filter.payment_method)
        ]
        items.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        page = items[payment_filter.offset: payment_filter.offset + payment_filter.page_size]
        return [copy.deepcopy(p) for p in page], len(items)

    async def list_stale(self, statuses, older_than, limit=100) -> List[Payment]:
        self._check()
        stale = [p for p in self.rows.values() if p.status in statuses and p.updated_at < older_than]
        return [copy.deepcopy(p) for p in stale[:limit]]


class FakeUnitOfWork(AbstractUnitOfWork):
    def __init__(self, repository: InMemoryPaymentRepository, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self.payment_repository = repository
        self.commits = 0
        self.rollbacks = 0
        self._token = None

    async def __aenter__(self) -> "FakeUnitOfWork":
        self._token = _held_locks.set([])
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            for lock in _held_locks.get() or []:
                lock.release()
            _held_locks.reset(self._token)

    async def commit(self) -> None:
        self.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakeUowFactory:
    def __init__(self, repository: InMemoryPaymentRepository) -> None:
        self.repository = repository

    def __call__(self, *, readonly: bool = False) -> FakeUnitOfWork:
        return FakeUnitOfWork(self.repository, readonly=readonly)


class RecordingPublisher:
    def __init__(self, fail: bool = False) -> None:
        self.published: List[Tuple[DomainEvent, EventDestination]] = []
        self.fail = fail

    async def publish(self, event: DomainEvent, destination: EventDestination) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.published.append((event, destination))

    @property
    def event_types(self) -> List[str]:
        return [event.event_type.value for event, _ in self.published]


class ScriptedGateway:
    """Returns a fixed outcome per method, or raises when told to."""

    provider = "scripted"

    def __init__(self, outcome: Optional[GatewayOutcome] = None, error: Optional[Exception] = None) -> None:
        self.outcome = outcome
        self.error = error
        self.calls: List[PaymentRequest] = []

    async def _respond(self, request: PaymentRequest) -> GatewayOutcome:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if self.outcome is not None:
            return self.outcome
        return GatewayOutcome(
            status=PaymentStatus.APPROVED,
            authorization_code="AUTH123456",
            processed_amount=request.amount,
            message="Payment approved successfully",
        )

    process_credit_card = _respond
    process_debit = _respond
    process_pix = _respond
    process_boleto = _respond


class FixedClock:
    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now or datetime(2025, 10, 19, 12, 0, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_request_data(**overrides) -> dict:
    data = {
        "transaction_id": str(uuid.uuid4()),
        "amount": "100.00",
        "currency": "BRL",
        "payment_method": "CreditCard",
        "customer": {
            "customer_id": "cust-1",
            "name": "Maria Silva",
            "email": "maria@example.com",
            "document": VALID_CPF,
            "address": {
                "street": "Rua das Flores",
                "number": "123",
                "neighborhood": "Centro",
                "city": "Sao Paulo",
                "state": "SP",
                "zip_code": "01000-000",
                "country": "Brazil",
            },
        },
        "card": {
            "number": APPROVED_CARD,
            "holder_name": "MARIA SILVA",
            "expiry_month": "12",
            "expiry_year": "2030",
            "cvv": "123",
            "brand": "VISA",
        },
    }
    data.update(overrides)
    return data


def make_request(**overrides) -> PaymentRequest:
    return PaymentRequest.model_validate(make_request_data(**overrides))


@pytest.fixture
def repository() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def uow_factory(repository) -> FakeUowFactory:
    return FakeUowFactory(repository)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def payment_settings() -> PaymentSettings:
    return PaymentSettings(high_value_threshold=Decimal("10000.00"))


@pytest.fixture
def rate_limiter(clock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(max_per_minute=10, clock=clock)
