"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from .base import Base


class PaymentModel(Base):
    """
    支付数据库模型

    客户、地址、卡信息快照被展开为列；卡号只保存掩码形式
    所有业务规则都在 domain.payment.entity.Payment 中
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(64), nullable=False, comment="外部交易ID（UUID）")

    amount = Column(Numeric(precision=18, scale=2), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, comment="货币代码 BRL/USD/EUR")
    payment_method = Column(String(20), nullable=False, index=True, comment="CreditCard/Debit/Pix/Boleto")
    status = Column(String(20), nullable=False, index=True, comment="支付状态")

    # 客户快照
    customer_id = Column(String(100), nullable=False, index=True)
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(200), nullable=False)
    customer_document = Column(String(20), nullable=False)
    address_street = Column(String(200), nullable=False)
    address_number = Column(String(20), nullable=False)
    address_complement = Column(String(100), nullable=True)
    address_neighborhood = Column(String(100), nullable=False)
    address_city = Column(String(100), nullable=False)
    address_state = Column(String(2), nullable=False)
    address_zip_code = Column(String(20), nullable=False)
    address_country = Column(String(100), nullable=False)

    # 卡信息快照（仅卡支付）
    card_masked_number = Column(String(32), nullable=True)
    card_holder_name = Column(String(200), nullable=True)
    card_brand = Column(String(50), nullable=True)

    # 网关结果
    authorization_code = Column(String(100), nullable=True)
    message = Column(Text, nullable=True)
    processed_amount = Column(Numeric(precision=18, scale=2), nullable=False, default=0)
    processing_fee = Column(Numeric(precision=18, scale=2), nullable=True)
    gateway_fee = Column(Numeric(precision=18, scale=2), nullable=True)
    total_fees = Column(Numeric(precision=18, scale=2), nullable=True)
    net_amount = Column(Numeric(precision=18, scale=2), nullable=True)
    refunded_amount = Column(Numeric(precision=18, scale=2), nullable=True)

    gateway_transaction_id = Column(String(200), nullable=True)
    gateway_response = Column(Text, nullable=True)

    # 使用 extra_metadata 避免与 SQLAlchemy 的 metadata 冲突
    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间",
    )
    processed_at = Column(DateTime(timezone=True), nullable=True, comment="网关处理时间")

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_payments_transaction_id"),
        Index("ix_payments_created_at", "created_at"),
        Index("ix_payments_status_updated_at", "status", "updated_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentModel(id={self.id}, transaction_id='{self.transaction_id}', "
            f"method='{self.payment_method}', amount={self.amount}, status='{self.status}')>"
        )
