"""
支付对账任务

Pending 超时转 Expired，Processing 长时间无网关结果转 Failed，随后补发状态变更事件。
每次执行用 asyncio.run 独立事件循环，结束时释放连接池。
"""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Optional

from celery import shared_task

from application.services.payment_service import PaymentApplicationService
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.database import engine
from infrastructure.external.messaging import create_event_publisher
from infrastructure.unit_of_work import uow_factory

from ..config.beat import RECONCILE_TASK
from ..utils.base_task import BaseTask


logger = get_logger(__name__)


async def run_reconciliation(older_than_minutes: Optional[int] = None) -> int:
    """对账只需存储与事件发布，不创建网关与限流器"""
    publisher = create_event_publisher(payment_settings)
    service = PaymentApplicationService(
        uow_factory=uow_factory,
        publisher=publisher,
        settings=payment_settings,
    )
    older_than = timedelta(minutes=older_than_minutes) if older_than_minutes else None
    try:
        return await service.reconcile_stale_payments(older_than)
    finally:
        publisher.close()
        await engine.dispose()


@shared_task(
    name=RECONCILE_TASK,
    bind=True,
    base=BaseTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 3},
)
def reconcile_stale_payments(self, older_than_minutes: Optional[int] = None) -> int:
    count = asyncio.run(run_reconciliation(older_than_minutes))
    logger.info("reconciliation_task_completed", count=count, attempt=self.request.retries)
    return count
