"""create_payments_table

Revision ID: 3c5e1f2a9b7d
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c5e1f2a9b7d'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name: str, nullable: bool = True, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision=18, scale=2), nullable=nullable, **kwargs)


def upgrade() -> None:
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=False, comment='外部交易ID（UUID）'),
        _money('amount', nullable=False, comment='支付金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='货币代码 BRL/USD/EUR'),
        sa.Column('payment_method', sa.String(length=20), nullable=False, comment='CreditCard/Debit/Pix/Boleto'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='支付状态'),
        # 客户快照
        sa.Column('customer_id', sa.String(length=100), nullable=False),
        sa.Column('customer_name', sa.String(length=200), nullable=False),
        sa.Column('customer_email', sa.String(length=200), nullable=False),
        sa.Column('customer_document', sa.String(length=20), nullable=False),
        sa.Column('address_street', sa.String(length=200), nullable=False),
        sa.Column('address_number', sa.String(length=20), nullable=False),
        sa.Column('address_complement', sa.String(length=100), nullable=True),
        sa.Column('address_neighborhood', sa.String(length=100), nullable=False),
        sa.Column('address_city', sa.String(length=100), nullable=False),
        sa.Column('address_state', sa.String(length=2), nullable=False),
        sa.Column('address_zip_code', sa.String(length=20), nullable=False),
        sa.Column('address_country', sa.String(length=100), nullable=False),
        # 卡信息快照
        sa.Column('card_masked_number', sa.String(length=32), nullable=True),
        sa.Column('card_holder_name', sa.String(length=200), nullable=True),
        sa.Column('card_brand', sa.String(length=50), nullable=True),
        # 网关结果与费用
        sa.Column('authorization_code', sa.String(length=100), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        _money('processed_amount', nullable=False, server_default='0'),
        _money('processing_fee'),
        _money('gateway_fee'),
        _money('total_fees'),
        _money('net_amount'),
        _money('refunded_amount'),
        sa.Column('gateway_transaction_id', sa.String(length=200), nullable=True),
        sa.Column('gateway_response', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True, comment='网关处理时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', name='uq_payments_transaction_id'),
    )

    op.create_index('ix_payments_created_at', 'payments', ['created_at'], unique=False)
    op.create_index('ix_payments_status_updated_at', 'payments', ['status', 'updated_at'], unique=False)
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'], unique=False)
    op.create_index(op.f('ix_payments_payment_method'), 'payments', ['payment_method'], unique=False)
    op.create_index(op.f('ix_payments_customer_id'), 'payments', ['customer_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_payments_customer_id'), table_name='payments')
    op.drop_index(op.f('ix_payments_payment_method'), table_name='payments')
    op.drop_index(op.f('ix_payments_status'), table_name='payments')
    op.drop_index('ix_payments_status_updated_at', table_name='payments')
    op.drop_index('ix_payments_created_at', table_name='payments')
    op.drop_table('payments')
