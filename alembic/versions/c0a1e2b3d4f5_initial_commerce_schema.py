"""initial_commerce_schema

Revision ID: c0a1e2b3d4f5
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = 'c0a1e2b3d4f5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

gst_type_enum = sa.Enum('inclusive', 'exclusive', name='gst_type_enum')
order_status_enum = sa.Enum(
    'confirmed', 'dispatched', 'delivered', 'cancelled', 'returned',
    name='order_status_enum',
)
order_payment_status_enum = sa.Enum(
    'unpaid', 'partial', 'paid', name='order_payment_status_enum'
)
order_action_enum = sa.Enum(
    'PLACED', 'DISPATCHED', 'DELIVERED', 'CANCELLED', 'RETURNED',
    name='order_action_enum',
)
invoice_status_enum = sa.Enum(
    'unpaid', 'partially_paid', 'paid', 'refunded', name='invoice_status_enum'
)
payment_status_enum = sa.Enum(
    'created', 'pending', 'captured', 'failed', 'refunded',
    name='payment_status_enum',
)
notification_type_enum = sa.Enum('payment', 'order', name='notification_type_enum')


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema - Create commerce tables."""

    # Parties
    op.create_table(
        'sellers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('auth_id', sa.String(length=255), nullable=True),
        sa.Column('brand_name', sa.String(length=255), nullable=False),
        sa.Column('gst_number', sa.String(length=20), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', JSONB(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sellers_auth_id', 'sellers', ['auth_id'], unique=True)

    op.create_table(
        'buyers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('auth_id', sa.String(length=255), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('shop_name', sa.String(length=255), nullable=True),
        sa.Column('shop_address', JSONB(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_buyers_auth_id', 'buyers', ['auth_id'], unique=True)

    # Catalog
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('hsn_code', sa.String(length=20), nullable=True),
        sa.Column('gst_percent', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('gst_type', gst_type_enum, server_default='exclusive', nullable=False),
        sa.Column('purchase_price_inr', sa.Numeric(12, 2), nullable=True),
        sa.Column('margin_percent', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('discount_percent', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('discount_amount_inr', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('mrp_inr', sa.Numeric(12, 2), nullable=True),
        sa.Column('final_price_inr', sa.Numeric(12, 2), nullable=True),
        sa.Column('stock', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=True),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=True),
        sa.Column('total_amount_inr', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount_inr', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('gst_amount_inr', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('final_amount_inr', sa.Numeric(12, 2), nullable=False),
        sa.Column('brand_amounts', JSONB(), nullable=True),
        sa.Column('shipping_address', JSONB(), nullable=True),
        sa.Column('status', order_status_enum, server_default='confirmed', nullable=False),
        sa.Column(
            'payment_status', order_payment_status_enum,
            server_default='unpaid', nullable=False,
        ),
        sa.Column('dispatch_info', JSONB(), nullable=True),
        sa.Column('invoice_url', sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['buyer_id'], ['buyers.id']),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('ix_orders_buyer_id_created_at', 'orders', ['buyer_id', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('hsn_code', sa.String(length=20), nullable=True),
        sa.Column('gst_percent', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_inr', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total_inr', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('quantity > 0', name='order_item_positive_quantity'),
        sa.CheckConstraint('unit_price_inr >= 0', name='order_item_price_non_negative'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'order_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('action', order_action_enum, nullable=False),
        sa.Column('actor_id', sa.String(length=255), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_logs_order_id', 'order_logs', ['order_id'])

    # Billing
    op.create_table(
        'invoices',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('number', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=True),
        sa.Column('subtotal_paise', sa.BigInteger(), nullable=False),
        sa.Column('discount_total_paise', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('gst_total_paise', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('grand_total_paise', sa.BigInteger(), nullable=False),
        sa.Column('amount_paid_paise', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('balance_due_paise', sa.BigInteger(), nullable=False),
        sa.Column('status', invoice_status_enum, server_default='unpaid', nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('buyer_snapshot', JSONB(), nullable=True),
        sa.Column('seller_snapshot', JSONB(), nullable=True),
        sa.Column('shipping_address', JSONB(), nullable=True),
        sa.Column('qr_id', sa.String(length=128), nullable=True),
        sa.Column('qr_payload', sa.Text(), nullable=True),
        sa.Column('qr_image', sa.Text(), nullable=True),
        sa.Column('pdf_url', sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('balance_due_paise >= 0', name='invoice_balance_non_negative'),
        sa.CheckConstraint('amount_paid_paise >= 0', name='invoice_paid_non_negative'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['buyer_id'], ['buyers.id']),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )
    op.create_index('ix_invoices_number', 'invoices', ['number'], unique=True)
    op.create_index('ix_invoices_buyer_id', 'invoices', ['buyer_id'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('invoice_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('hsn_code', sa.String(length=20), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_paise', sa.BigInteger(), nullable=False),
        sa.Column('line_total_paise', sa.BigInteger(), nullable=False),
        sa.Column('gst_percent', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('gst_paise', sa.BigInteger(), server_default='0', nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('invoice_id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('gateway', sa.String(length=32), nullable=False),
        sa.Column('amount_paise', sa.BigInteger(), nullable=False),
        sa.Column('status', payment_status_enum, server_default='created', nullable=False),
        sa.Column('gateway_order_id', sa.String(length=128), nullable=True),
        sa.Column('gateway_txn_id', sa.String(length=128), nullable=True),
        sa.Column('verified', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('raw_payload', JSONB(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['buyer_id'], ['buyers.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_payments_idempotency_key', 'payments', ['idempotency_key'], unique=True
    )
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])
    op.create_index('ix_payments_gateway_order_id', 'payments', ['gateway_order_id'])

    op.create_table(
        'invoice_payment_refs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('invoice_id', sa.Uuid(), nullable=False),
        sa.Column('payment_id', sa.Uuid(), nullable=False),
        sa.Column('amount_paise', sa.BigInteger(), nullable=False),
        sa.Column('gateway', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_invoice_payment_refs_invoice_id', 'invoice_payment_refs', ['invoice_id']
    )

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('type', notification_type_enum, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('data', JSONB(), nullable=True),
        sa.Column('seen', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_notifications_buyer_id_seen', 'notifications', ['buyer_id', 'seen']
    )


def downgrade() -> None:
    """Downgrade schema - Drop commerce tables."""
    op.drop_table('notifications')
    op.drop_table('invoice_payment_refs')
    op.drop_table('payments')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('order_logs')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('buyers')
    op.drop_table('sellers')

    bind = op.get_bind()
    for enum_type in (
        notification_type_enum,
        payment_status_enum,
        invoice_status_enum,
        order_action_enum,
        order_payment_status_enum,
        order_status_enum,
        gst_type_enum,
    ):
        enum_type.drop(bind, checkfirst=True)
