"""create menu, orders and order_items

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-11-20 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUSES = ('pending', 'confirmed', 'preparing', 'ready', 'completed', 'cancelled')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'menu',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('image', sa.String(512), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(120), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity >= 0', name='ck_menu_quantity_non_negative'),
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            'status',
            sa.Enum(*ORDER_STATUSES, name='orderstatus', native_enum=False, length=20),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('table_id', sa.Integer(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.String(255), nullable=True),
    )
    op.create_index('idx_orders_table_id', 'orders', ['table_id'])
    op.create_index('idx_orders_status', 'orders', ['status'])
    op.create_index('idx_orders_created_at', 'orders', ['created_at'])
    op.create_index(
        'uq_orders_table_pending',
        'orders',
        ['table_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('meal_id', sa.Integer(), sa.ForeignKey('menu.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_meal_id', 'order_items', ['meal_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('order_items')
    op.drop_index('uq_orders_table_pending', table_name='orders')
    op.drop_index('idx_orders_created_at', table_name='orders')
    op.drop_index('idx_orders_status', table_name='orders')
    op.drop_index('idx_orders_table_id', table_name='orders')
    op.drop_table('orders')
    op.drop_table('menu')
