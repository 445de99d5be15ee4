"""
API依赖项 - 应用服务装配

网关、事件发布器、限流器在进程内各保留一个实例；限流计数必须跨请求共享。
测试通过 app.dependency_overrides 替换这些依赖。
"""
from functools import lru_cache

from fastapi import Depends

from application.ports.event_publisher import EventPublisher
from application.ports.payment_gateway import PaymentGateway
from application.ports.rate_limiter import RateLimiter
from application.services.payment_service import PaymentApplicationService
from application.services.webhook_service import WebhookApplicationService
from core.settings import PaymentSettings, payment_settings
from infrastructure.external.messaging import create_event_publisher
from infrastructure.external.payments import get_payment_gateway
from infrastructure.rate_limiting import create_rate_limiter
from infrastructure.unit_of_work import uow_factory


def get_payment_settings() -> PaymentSettings:
    return payment_settings


@lru_cache(maxsize=1)
def get_gateway() -> PaymentGateway:
    return get_payment_gateway(payment_settings)


@lru_cache(maxsize=1)
def get_event_publisher() -> EventPublisher:
    return create_event_publisher(payment_settings)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    return create_rate_limiter(payment_settings)


async def get_payment_service(
    gateway: PaymentGateway = Depends(get_gateway),
    publisher: EventPublisher = Depends(get_event_publisher),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    settings: PaymentSettings = Depends(get_payment_settings),
) -> PaymentApplicationService:
    return PaymentApplicationService(
        uow_factory=uow_factory,
        gateway=gateway,
        publisher=publisher,
        rate_limiter=rate_limiter,
        settings=settings,
    )


async def get_webhook_service(
    publisher: EventPublisher = Depends(get_event_publisher),
    settings: PaymentSettings = Depends(get_payment_settings),
) -> WebhookApplicationService:
    return WebhookApplicationService(uow_factory=uow_factory, publisher=publisher, settings=settings)
