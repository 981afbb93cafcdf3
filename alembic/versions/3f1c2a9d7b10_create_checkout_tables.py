"""create_checkout_tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

payment_terms_enum = sa.Enum('net_30', 'net_45', 'net_60', name='payment_terms_enum')
campaign_status_enum = sa.Enum('draft', 'active', 'paused', 'ended', name='campaign_status_enum')
discount_type_enum = sa.Enum('percentage', 'fixed_amount', 'free_shipping', name='discount_type_enum')
order_status_enum = sa.Enum(
    'pending', 'completed', 'processing', 'shipped', 'delivered', 'cancelled', 'refunded',
    name='order_status_enum',
)
payment_status_enum = sa.Enum('awaiting', 'captured', 'failed', 'refunded', name='payment_status_enum')
fulfillment_status_enum = sa.Enum(
    'not_fulfilled', 'fulfilled', 'shipped', 'delivered', 'canceled',
    name='fulfillment_status_enum',
)
order_display_id_seq = sa.Sequence('order_display_id_seq', start=1001)
webhook_event_status_enum = sa.Enum(
    'processing', 'processed', 'failed', name='webhook_event_status_enum'
)


def _timestamps(updated: bool = True) -> list:
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=True)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True))
    return cols


def upgrade() -> None:
    """Upgrade schema - regions, catalog, wholesale, customers, promotions, orders, webhooks."""

    op.create_table(
        'regions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('currency_code', sa.String(3), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('countries', JSONB(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_regions'),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('handle', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('thumbnail', sa.String(500), nullable=True),
        sa.Column('is_wholesale_only', sa.Boolean(), server_default='false', nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('handle', name='uq_products_handle'),
    )

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('inventory_quantity', sa.Integer(), server_default='0', nullable=False),
        sa.Column('manage_inventory', sa.Boolean(), server_default='true', nullable=True),
        sa.Column('wholesale_price', sa.Integer(), nullable=True),
        sa.Column('moq', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'inventory_quantity >= 0', name='ck_product_variants_non_negative_stock'
        ),
        sa.CheckConstraint(
            'wholesale_price IS NULL OR wholesale_price >= 0',
            name='ck_product_variants_non_negative_wholesale_price',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'],
            name='fk_product_variants_product_id_products', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_product_variants'),
        sa.UniqueConstraint('sku', name='uq_product_variants_sku'),
    )

    op.create_table(
        'money_amounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('region_id', sa.Uuid(), nullable=False),
        sa.Column('currency_code', sa.String(3), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('min_quantity', sa.Integer(), nullable=True),
        sa.CheckConstraint('amount >= 0', name='ck_money_amounts_non_negative_amount'),
        sa.ForeignKeyConstraint(
            ['variant_id'], ['product_variants.id'],
            name='fk_money_amounts_variant_id_product_variants', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['region_id'], ['regions.id'],
            name='fk_money_amounts_region_id_regions', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_money_amounts'),
        sa.UniqueConstraint('variant_id', 'region_id', name='uq_money_amount_variant_region'),
    )

    op.create_table(
        'wholesale_tiers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('discount_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('min_order_value', sa.Integer(), server_default='0', nullable=False),
        sa.Column('min_order_quantity', sa.Integer(), server_default='0', nullable=False),
        sa.Column('default_moq', sa.Integer(), server_default='1', nullable=False),
        sa.Column('payment_terms', payment_terms_enum, nullable=False),
        sa.Column('priority', sa.Integer(), server_default='0', nullable=False),
        sa.Column('active', sa.Boolean(), server_default='true', nullable=True),
        sa.Column('version', sa.Integer(), server_default='1', nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'discount_percent >= 0 AND discount_percent <= 100',
            name='ck_wholesale_tiers_tier_discount_range',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_wholesale_tiers'),
        sa.UniqueConstraint('slug', name='uq_wholesale_tiers_slug'),
    )

    op.create_table(
        'bulk_discounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('min_quantity', sa.Integer(), nullable=False),
        sa.Column('discount_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('min_quantity > 0', name='ck_bulk_discounts_bulk_min_quantity_positive'),
        sa.CheckConstraint(
            'discount_percent >= 0 AND discount_percent <= 100',
            name='ck_bulk_discounts_bulk_discount_range',
        ),
        sa.ForeignKeyConstraint(
            ['variant_id'], ['product_variants.id'],
            name='fk_bulk_discounts_variant_id_product_variants', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_bulk_discounts'),
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('has_account', sa.Boolean(), server_default='false', nullable=True),
        sa.Column('is_wholesale', sa.Boolean(), server_default='false', nullable=True),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('wholesale_tier_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['wholesale_tier_id'], ['wholesale_tiers.id'],
            name='fk_customers_wholesale_tier_id_wholesale_tiers', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.UniqueConstraint('email', name='uq_customers_email'),
    )

    op.create_table(
        'addresses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('address_1', sa.String(255), nullable=False),
        sa.Column('address_2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('province', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('country_code', sa.String(2), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ['customer_id'], ['customers.id'],
            name='fk_addresses_customer_id_customers', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_addresses'),
    )

    op.create_table(
        'campaigns',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', campaign_status_enum, nullable=False),
        sa.Column('conversions', sa.Integer(), server_default='0', nullable=False),
        sa.Column('revenue', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_campaigns'),
    )

    op.create_table(
        'discounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(64), nullable=False),
        sa.Column('type', discount_type_enum, nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('usage_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('min_purchase_amount', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        sa.Column('campaign_id', sa.Uuid(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('value >= 0', name='ck_discounts_discount_value_non_negative'),
        sa.CheckConstraint(
            'usage_limit IS NULL OR usage_count <= usage_limit',
            name='ck_discounts_discount_usage_within_limit',
        ),
        sa.ForeignKeyConstraint(
            ['campaign_id'], ['campaigns.id'],
            name='fk_discounts_campaign_id_campaigns', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_discounts'),
        sa.UniqueConstraint('code', name='uq_discounts_code'),
    )

    op.execute(sa.schema.CreateSequence(order_display_id_seq))

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column(
            'display_id', sa.Integer(),
            server_default=order_display_id_seq.next_value(), nullable=False,
        ),
        sa.Column('status', order_status_enum, nullable=False),
        sa.Column('payment_status', payment_status_enum, nullable=False),
        sa.Column('fulfillment_status', fulfillment_status_enum, nullable=False),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('region_id', sa.Uuid(), nullable=False),
        sa.Column('shipping_address_id', sa.Uuid(), nullable=True),
        sa.Column('billing_address_id', sa.Uuid(), nullable=True),
        sa.Column('discount_id', sa.Uuid(), nullable=True),
        sa.Column('currency_code', sa.String(3), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('subtotal', sa.Integer(), nullable=False),
        sa.Column('discount_total', sa.Integer(), nullable=False),
        sa.Column('shipping_total', sa.Integer(), nullable=False),
        sa.Column('tax_total', sa.Integer(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('is_wholesale', sa.Boolean(), server_default='false', nullable=True),
        sa.Column('total_items', sa.Integer(), nullable=False),
        sa.Column('payment_intent_id', sa.String(255), nullable=True),
        sa.Column('payment_failure_reason', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', JSONB(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('total >= 0', name='ck_orders_order_total_non_negative'),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_order_subtotal_non_negative'),
        sa.ForeignKeyConstraint(
            ['customer_id'], ['customers.id'],
            name='fk_orders_customer_id_customers', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(['region_id'], ['regions.id'], name='fk_orders_region_id_regions'),
        sa.ForeignKeyConstraint(
            ['shipping_address_id'], ['addresses.id'],
            name='fk_orders_shipping_address_id_addresses',
        ),
        sa.ForeignKeyConstraint(
            ['billing_address_id'], ['addresses.id'],
            name='fk_orders_billing_address_id_addresses',
        ),
        sa.ForeignKeyConstraint(
            ['discount_id'], ['discounts.id'],
            name='fk_orders_discount_id_discounts', ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('display_id', name='uq_orders_display_id'),
    )
    op.create_index('ix_orders_payment_intent_id', 'orders', ['payment_intent_id'])

    op.create_table(
        'line_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('thumbnail', sa.String(500), nullable=True),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('compare_at_unit_price', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('metadata', JSONB(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('quantity > 0', name='ck_line_items_line_item_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_line_items_line_item_price_non_negative'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_line_items_order_id_orders', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_line_items'),
    )

    op.create_table(
        'discount_usage',
        sa.Column('discount_id', sa.Uuid(), nullable=False),
        sa.Column('customer_id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=True),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['discount_id'], ['discounts.id'],
            name='fk_discount_usage_discount_id_discounts', ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['customer_id'], ['customers.id'],
            name='fk_discount_usage_customer_id_customers', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_discount_usage_order_id_orders', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('discount_id', 'customer_id', name='pk_discount_usage'),
    )

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('status', webhook_event_status_enum, nullable=False),
        sa.Column('payment_intent_id', sa.String(255), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_webhook_events'),
        sa.UniqueConstraint('event_id', name='uq_webhook_events_event_id'),
    )


def downgrade() -> None:
    """Downgrade schema - drop every checkout table and enum."""
    op.drop_table('webhook_events')
    op.drop_table('discount_usage')
    op.drop_table('line_items')
    op.drop_index('ix_orders_payment_intent_id', table_name='orders')
    op.drop_table('orders')
    op.execute(sa.schema.DropSequence(order_display_id_seq))
    op.drop_table('discounts')
    op.drop_table('campaigns')
    op.drop_table('addresses')
    op.drop_table('customers')
    op.drop_table('bulk_discounts')
    op.drop_table('wholesale_tiers')
    op.drop_table('money_amounts')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_table('regions')

    bind = op.get_bind()
    for enum in (
        webhook_event_status_enum,
        fulfillment_status_enum,
        payment_status_enum,
        order_status_enum,
        discount_type_enum,
        campaign_status_enum,
        payment_terms_enum,
    ):
        enum.drop(bind, checkfirst=True)
