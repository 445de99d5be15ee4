"""
支付仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import PaymentAlreadyExistsException, PaymentNotFoundException
from domain.payment.entity import (
    Address,
    CardSnapshot,
    Currency,
    CustomerSnapshot,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from domain.payment.repository import PaymentFilter, PaymentRepository
from infrastructure.models.payment import PaymentModel


logger = get_logger(__name__)


def _decimal(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        """将数据库模型转换为领域实体"""
        card = None
        if model.card_masked_number:
            card = CardSnapshot(
                masked_number=model.card_masked_number,
                holder_name=model.card_holder_name or "",
                brand=model.card_brand or "",
            )
        return Payment(
            id=model.id,
            transaction_id=model.transaction_id,
            amount=_decimal(model.amount),
            currency=Currency(model.currency),
            payment_method=PaymentMethod(model.payment_method),
            status=PaymentStatus(model.status),
            customer=CustomerSnapshot(
                customer_id=model.customer_id,
                name=model.customer_name,
                email=model.customer_email,
                document=model.customer_document,
                address=Address(
                    street=model.address_street,
                    number=model.address_number,
                    complement=model.address_complement,
                    neighborhood=model.address_neighborhood,
                    city=model.address_city,
                    state=model.address_state,
                    zip_code=model.address_zip_code,
                    country=model.address_country,
                ),
            ),
            card=card,
            authorization_code=model.authorization_code,
            message=model.message,
            processed_amount=_decimal(model.processed_amount) or Decimal("0"),
            processing_fee=_decimal(model.processing_fee),
            gateway_fee=_decimal(model.gateway_fee),
            total_fees=_decimal(model.total_fees),
            net_amount=_decimal(model.net_amount),
            refunded_amount=_decimal(model.refunded_amount),
            gateway_transaction_id=model.gateway_transaction_id,
            gateway_response=model.gateway_response,
            metadata=model.extra_metadata or {},
            created_at=model.created_at,
            updated_at=model.updated_at,
            processed_at=model.processed_at,
        )

    def _to_model(self, entity: Payment) -> PaymentModel:
        """将领域实体转换为数据库模型"""
        model = PaymentModel(
            id=entity.id,
            transaction_id=entity.transaction_id,
            amount=entity.amount,
            currency=entity.currency.value,
            payment_method=entity.payment_method.value,
            customer_id=entity.customer.customer_id,
            customer_name=entity.customer.name,
            customer_email=entity.customer.email,
            customer_document=entity.customer.document,
            address_street=entity.customer.address.street,
            address_number=entity.customer.address.number,
            address_complement=entity.customer.address.complement,
            address_neighborhood=entity.customer.address.neighborhood,
            address_city=entity.customer.address.city,
            address_state=entity.customer.address.state,
            address_zip_code=entity.customer.address.zip_code,
            address_country=entity.customer.address.country,
            card_masked_number=entity.card.masked_number if entity.card else None,
            card_holder_name=entity.card.holder_name if entity.card else None,
            card_brand=entity.card.brand if entity.card else None,
            created_at=entity.created_at or datetime.now(timezone.utc),
        )
        self._apply_mutable_fields(model, entity)
        return model

    @staticmethod
    def _apply_mutable_fields(model: PaymentModel, entity: Payment) -> None:
        model.status = entity.status.value
        model.authorization_code = entity.authorization_code
        model.message = entity.message
        model.processed_amount = entity.processed_amount
        model.processing_fee = entity.processing_fee
        model.gateway_fee = entity.gateway_fee
        model.total_fees = entity.total_fees
        model.net_amount = entity.net_amount
        model.refunded_amount = entity.refunded_amount
        model.gateway_transaction_id = entity.gateway_transaction_id
        model.gateway_response = entity.gateway_response
        model.extra_metadata = entity.metadata
        model.processed_at = entity.processed_at
        model.updated_at = entity.updated_at or datetime.now(timezone.utc)

    async def _get_model(self, transaction_id: str, *, for_update: bool = False) -> Optional[PaymentModel]:
        query = select(PaymentModel).where(PaymentModel.transaction_id == transaction_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        try:
            db_payment = self._to_model(payment)
            self.session.add(db_payment)
            await self.session.flush()
            await self.session.refresh(db_payment)
            logger.info(
                "payment_created",
                payment_id=db_payment.id,
                transaction_id=db_payment.transaction_id,
                payment_method=db_payment.payment_method,
            )
            return self._to_entity(db_payment)
        except IntegrityError as e:
            await self.session.rollback()
            msg = str(e).lower()
            if "transaction_id" in msg:
                logger.warning(
                    "payment_create_conflict",
                    transaction_id=payment.transaction_id,
                )
                raise PaymentAlreadyExistsException(payment.transaction_id)
            raise

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        """根据交易ID获取支付"""
        db_payment = await self._get_model(transaction_id)
        return self._to_entity(db_payment) if db_payment else None

    async def get_for_update(self, transaction_id: str) -> Optional[Payment]:
        """锁定目标行后读取，行锁持有到当前事务结束"""
        db_payment = await self._get_model(transaction_id, for_update=True)
        return self._to_entity(db_payment) if db_payment else None

    async def update(self, payment: Payment) -> Payment:
        """更新支付记录"""
        db_payment = await self._get_model(payment.transaction_id)
        if not db_payment:
            raise PaymentNotFoundException(payment.transaction_id)

        self._apply_mutable_fields(db_payment, payment)

        await self.session.flush()
        await self.session.refresh(db_payment)

        logger.info(
            "payment_updated",
            payment_id=db_payment.id,
            transaction_id=db_payment.transaction_id,
            status=db_payment.status,
        )
        return self._to_entity(db_payment)

    def _filtered(self, query, payment_filter: PaymentFilter):
        if payment_filter.status:
            query = query.where(PaymentModel.status == payment_filter.status.value)
        if payment_filter.customer_id:
            query = query.where(PaymentModel.customer_id == payment_filter.customer_id)
        if payment_filter.payment_method:
            query = query.where(PaymentModel.payment_method == payment_filter.payment_method.value)
        if payment_filter.start_date:
            query = query.where(PaymentModel.created_at >= payment_filter.start_date)
        if payment_filter.end_date:
            query = query.where(PaymentModel.created_at <= payment_filter.end_date)
        return query

    async def list_by_filter(self, payment_filter: PaymentFilter) -> Tuple[List[Payment], int]:
        """按条件分页查询支付"""
        count_query = self._filtered(select(func.count(PaymentModel.id)), payment_filter)
        total = (await self.session.execute(count_query)).scalar_one()

        query = (
            self._filtered(select(PaymentModel), payment_filter)
            .order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc())
            .offset(payment_filter.offset)
            .limit(payment_filter.page_size)
        )
        result = await self.session.execute(query)
        return [self._to_entity(p) for p in result.scalars().all()], total

    async def list_stale(
        self,
        statuses: List[PaymentStatus],
        older_than: datetime,
        limit: int = 100,
    ) -> List[Payment]:
        """查询滞留在指定状态的支付"""
        result = await self.session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.status.in_([s.value for s in statuses]),
                PaymentModel.updated_at < older_than,
            )
            .order_by(PaymentModel.updated_at.asc())
            .limit(limit)
            # 并发对账时跳过已被其他事务锁定的行
            .with_for_update(skip_locked=True)
        )
        return [self._to_entity(p) for p in result.scalars().all()]
