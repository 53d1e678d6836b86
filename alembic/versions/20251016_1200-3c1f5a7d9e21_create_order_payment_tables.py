"""create_order_payment_tables

Revision ID: 3c1f5a7d9e21
Revises:
Create Date: 2025-10-16 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c1f5a7d9e21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, comment='order status'),
        sa.Column('total_minor', sa.Integer(), nullable=False, comment='order total in minor units'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='ISO 4217 currency'),
        sa.Column('customer_id', sa.Integer(), nullable=True, comment='customer id'),
        sa.Column('customer_ip', sa.String(length=64), nullable=True, comment='customer ip at checkout'),
        sa.Column('needs_processing', sa.Boolean(), nullable=False, server_default=sa.true(), comment='order needs fulfilment'),
        sa.Column('shipping_minor', sa.Integer(), nullable=False, server_default='0', comment='shipping incl. tax'),
        sa.Column('meta', sa.JSON(), nullable=False, comment='order metadata'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1', comment='optimistic lock version'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='created at'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='updated at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False, comment='item name'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1', comment='quantity'),
        sa.Column('total_minor', sa.Integer(), nullable=False, comment='line total incl. tax'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'], unique=False)

    # Notes are append-only
    op.create_table(
        'order_notes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False, comment='note text'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_notes_order_id', 'order_notes', ['order_id'], unique=False)

    op.create_table(
        'payment_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True, comment='customer id'),
        sa.Column('token', sa.String(length=255), nullable=False, comment='gateway token'),
        sa.Column('card_summary', sa.String(length=32), nullable=False, server_default='', comment='masked card number'),
        sa.Column('gateway', sa.String(length=32), nullable=False, server_default='straumur'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_id', 'token', name='uq_payment_tokens_customer_token'),
    )
    op.create_index('ix_payment_tokens_customer_id', 'payment_tokens', ['customer_id'], unique=False)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active', comment='subscription status'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_order_id', 'subscriptions', ['order_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_subscriptions_order_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_payment_tokens_customer_id', table_name='payment_tokens')
    op.drop_table('payment_tokens')
    op.drop_index('ix_order_notes_order_id', table_name='order_notes')
    op.drop_table('order_notes')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_orders_customer_id', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_id', table_name='orders')
    op.drop_table('orders')
