"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the order finalization schema:
- inventory_items / stock_adjustments: canonical stock and its audit trail
- pos_products / online_products / online_product_variants: channel mirrors
- customers / customer_addresses / cart_items: online buyers
- coupons / coupon_redemptions
- orders / order_lines / idempotency_keys / pending_checkouts
- invoice_settings / document_sequences / ledger_entries / company_settings
- outbox_tasks: post-commit side effects
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # Inventory
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_code', sa.String(length=64), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=False, server_default='pcs'),
        sa.Column('warehouse_name', sa.String(length=128), nullable=True),
        sa.Column('purchase_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('gst_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='out_of_stock'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('item_code', name='uq_inventory_items_code'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_items_quantity_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_items_status', 'inventory_items', ['status'])

    # ============================================================================
    # Channel mirrors
    # ============================================================================
    op.create_table(
        'pos_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('item_code', sa.String(length=64), nullable=True),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('selling_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('gst_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='out_of_stock'),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.UniqueConstraint('sku', name='uq_pos_products_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_pos_products_item_id', 'pos_products', ['item_id'])
    op.create_index('ix_pos_products_item_code', 'pos_products', ['item_code'])
    op.create_index('ix_pos_products_active_name', 'pos_products', ['is_active', 'product_name'])

    op.create_table(
        'online_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=128), nullable=True),
        sa.Column('gst_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('is_cod_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('free_shipping', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('shipping_charge', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'online_product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('variant_name', sa.String(length=128), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('selling_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('mrp', sa.Numeric(12, 2), nullable=True),
        sa.Column('inventory_item_id', sa.Integer(), nullable=True),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_status', sa.String(length=16), nullable=False, server_default='out_of_stock'),
        sa.Column('low_stock_alert', sa.Integer(), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['product_id'], ['online_products.id']),
        sa.ForeignKeyConstraint(['inventory_item_id'], ['inventory_items.id']),
        sa.UniqueConstraint('product_id', 'position', name='uq_online_variants_product_position'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_online_product_variants_product_id', 'online_product_variants', ['product_id'])
    op.create_index('ix_online_product_variants_inventory_item_id', 'online_product_variants', ['inventory_item_id'])

    # ============================================================================
    # Customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address_line1', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('state', sa.String(length=128), nullable=True),
        sa.Column('pincode', sa.String(length=16), nullable=True),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('last_order_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_customers_user_id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'customer_addresses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('alternate_phone', sa.String(length=32), nullable=True),
        sa.Column('address_line1', sa.String(length=255), nullable=False),
        sa.Column('address_line2', sa.String(length=255), nullable=True),
        sa.Column('landmark', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=False),
        sa.Column('state', sa.String(length=128), nullable=False),
        sa.Column('pincode', sa.String(length=16), nullable=False),
        sa.Column('country', sa.String(length=64), nullable=False, server_default='India'),
        sa.Column('address_type', sa.String(length=16), nullable=False, server_default='home'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customer_addresses_customer_id', 'customer_addresses', ['customer_id'])

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('variant_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['product_id'], ['online_products.id']),
        sa.UniqueConstraint('customer_id', 'product_id', 'variant_index', name='uq_cart_items_customer_variant'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cart_items_customer_id', 'cart_items', ['customer_id'])

    # ============================================================================
    # Coupons
    # ============================================================================
    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='percentage'),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('max_discount_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('min_order_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=True),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('current_usage_count', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_coupons_code'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # Orders
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('channel', sa.String(length=16), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('actor_key', sa.String(length=128), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('delivery_address', sa.JSON(), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('coupon_code', sa.String(length=64), nullable=True),
        sa.Column('coupon_discount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping_charge', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('gst_type', sa.String(length=16), nullable=False),
        sa.Column('seller_region', sa.String(length=128), nullable=True),
        sa.Column('buyer_region', sa.String(length=128), nullable=True),
        sa.Column('cgst_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('sgst_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('igst_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_tax', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('amount_received', sa.Numeric(12, 2), nullable=True),
        sa.Column('change_given', sa.Numeric(12, 2), nullable=True),
        sa.Column('order_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('basket_fingerprint', sa.String(length=64), nullable=True),
        sa.Column('financial_year', sa.String(length=16), nullable=True),
        sa.Column('accounting_period', sa.String(length=7), nullable=True),
        _timestamp('created_at'),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sa.UniqueConstraint('invoice_number', name='uq_orders_invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_channel', 'orders', ['channel'])
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_order_status', 'orders', ['order_status'])
    op.create_index('ix_orders_actor_channel_payment_created', 'orders',
                    ['actor_key', 'channel', 'payment_method', 'created_at'])
    op.create_index('ix_orders_financial_year', 'orders', ['financial_year', 'accounting_period'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('variant_index', sa.Integer(), nullable=True),
        sa.Column('inventory_item_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('variant_name', sa.String(length=128), nullable=True),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_percent', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('gst_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('base_unit_price', sa.Numeric(14, 4), nullable=False),
        sa.Column('line_base', sa.Numeric(14, 4), nullable=False),
        sa.Column('cgst_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('sgst_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('igst_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('cgst_amount', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('sgst_amount', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('igst_amount', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('line_total', sa.Numeric(14, 4), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['inventory_item_id'], ['inventory_items.id']),
        sa.UniqueConstraint('order_id', 'line_number', name='uq_order_lines_order_line'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_inventory_item_id', 'order_lines', ['inventory_item_id'])

    op.create_table(
        'coupon_redemptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('coupon_id', sa.Integer(), nullable=False),
        sa.Column('coupon_code', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('order_value', sa.Numeric(12, 2), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.UniqueConstraint('coupon_id', 'order_id', name='uq_coupon_redemptions_coupon_order'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_coupon_redemptions_coupon_id', 'coupon_redemptions', ['coupon_id'])
    op.create_index('ix_coupon_redemptions_order_id', 'coupon_redemptions', ['order_id'])
    op.create_index('ix_coupon_redemptions_user_id', 'coupon_redemptions', ['user_id'])

    op.create_table(
        'stock_adjustments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('item_code', sa.String(length=64), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('warehouse_name', sa.String(length=128), nullable=True),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('adjustment_type', sa.String(length=16), nullable=False),
        sa.Column('requested_delta', sa.Integer(), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('previous_quantity', sa.Integer(), nullable=False),
        sa.Column('new_quantity', sa.Integer(), nullable=False),
        sa.Column('clamped', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reason', sa.String(length=32), nullable=True),
        sa.Column('reason_details', sa.Text(), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('order_number', sa.String(length=64), nullable=True),
        sa.Column('adjusted_by', sa.String(length=128), nullable=False, server_default='system'),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_adjustments_item_id', 'stock_adjustments', ['item_id'])
    op.create_index('ix_stock_adjustments_order_id', 'stock_adjustments', ['order_id'])
    op.create_index('ix_stock_adjustments_order_number', 'stock_adjustments', ['order_number'])
    op.create_index('ix_stock_adjustments_item_created', 'stock_adjustments', ['item_id', 'created_at'])
    op.create_index('ix_stock_adjustments_method_created', 'stock_adjustments', ['method', 'created_at'])

    op.create_table(
        'idempotency_keys',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('actor_key', sa.String(length=128), nullable=False),
        sa.Column('channel', sa.String(length=16), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.UniqueConstraint('actor_key', 'channel', 'key', name='uq_idempotency_keys_actor_channel_key'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_idempotency_keys_order_id', 'idempotency_keys', ['order_id'])

    op.create_table(
        'pending_checkouts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('delivery_address', sa.JSON(), nullable=False),
        sa.Column('coupon_id', sa.Integer(), nullable=True),
        sa.Column('lines', sa.JSON(), nullable=False),
        sa.Column('pricing', sa.JSON(), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        _timestamp('created_at'),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id']),
        sa.UniqueConstraint('order_number', name='uq_pending_checkouts_order_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_pending_checkouts_user_id', 'pending_checkouts', ['user_id'])

    # ============================================================================
    # Finance
    # ============================================================================
    op.create_table(
        'invoice_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_prefix', sa.String(length=16), nullable=False, server_default='INV'),
        sa.Column('sequence_length', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('invoice_format', sa.String(length=64), nullable=False, server_default='{PREFIX}-{FY}-{SEQ}'),
        sa.Column('current_sequence_no', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('auto_financial_year', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('financial_year_start_month', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('manual_financial_year', sa.String(length=16), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_document_sequences_type'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=False),
        sa.Column('transaction_type', sa.String(length=32), nullable=False, server_default='sale'),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('net_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('revenue_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='INR'),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('financial_year', sa.String(length=16), nullable=True),
        sa.Column('accounting_period', sa.String(length=7), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('created_by', sa.String(length=128), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.UniqueConstraint('transaction_id', name='uq_ledger_entries_transaction_id'),
        sa.UniqueConstraint('order_id', name='uq_ledger_entries_order_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_entries_period', 'ledger_entries', ['financial_year', 'accounting_period'])

    op.create_table(
        'company_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('gstin', sa.String(length=32), nullable=True),
        sa.Column('state', sa.String(length=128), nullable=True),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # Outbox
    # ============================================================================
    op.create_table(
        'outbox_tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_type', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('last_error', sa.Text(), nullable=True),
        _timestamp('next_attempt_at'),
        _timestamp('created_at'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sqlite_autoincrement=True
    )
    op.create_index('ix_outbox_tasks_order_id', 'outbox_tasks', ['order_id'])
    op.create_index('ix_outbox_tasks_status_next_attempt', 'outbox_tasks', ['status', 'next_attempt_at'])


def downgrade():
    for table in (
        'outbox_tasks',
        'company_settings',
        'ledger_entries',
        'document_sequences',
        'invoice_settings',
        'pending_checkouts',
        'idempotency_keys',
        'stock_adjustments',
        'coupon_redemptions',
        'order_lines',
        'orders',
        'coupons',
        'cart_items',
        'customer_addresses',
        'customers',
        'online_product_variants',
        'online_products',
        'pos_products',
        'inventory_items',
    ):
        op.drop_table(table)
