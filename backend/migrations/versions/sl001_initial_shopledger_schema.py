"""Initial shopledger schema: catalog, bills, credit notes, settings, audit ledger

Revision ID: sl001_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. products (Catalog; quantity >= 0 enforced by a check constraint)
2. bills and bill_line_items (line items freeze name/SKU/price)
3. credit_notes and credit_note_line_items
4. shop_settings (singleton row holding the document counters)
5. ledger_events (append-only audit log)

Line items and credit notes reference products and bills by plain integer
id, without foreign keys, so catalog deletes never touch history.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sl001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_name', ['name'], unique=False)

    # ==========================================================================
    # 2. BILLS
    # ==========================================================================
    op.create_table('bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_number', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('global_discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_type', sa.String(length=16), nullable=False, server_default='Cash'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('grand_total_cents >= 0', name='ck_bills_grand_total_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bill_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('bills', schema=None) as batch_op:
        batch_op.create_index('ix_bills_customer_phone', ['customer_phone'], unique=False)
        batch_op.create_index('ix_bills_created_at', ['created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_bills_payment_type'), ['payment_type'], unique=False)

    op.create_table('bill_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('comment', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_bill_line_items_quantity_positive'),
        sa.CheckConstraint('selling_price_cents >= 0', name='ck_bill_line_items_price_non_negative'),
        sa.CheckConstraint('discount_cents >= 0', name='ck_bill_line_items_discount_non_negative'),
        sa.ForeignKeyConstraint(['bill_id'], ['bills.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('bill_line_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_bill_line_items_bill_id'), ['bill_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_bill_line_items_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 3. CREDIT NOTES
    # ==========================================================================
    op.create_table('credit_notes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('credit_note_number', sa.String(length=32), nullable=False),
        sa.Column('original_bill_id', sa.Integer(), nullable=False),
        sa.Column('original_bill_number', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_profit_loss_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reason', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('total_amount_cents >= 0', name='ck_credit_notes_amount_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('credit_note_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('credit_notes', schema=None) as batch_op:
        batch_op.create_index('ix_credit_notes_created_at', ['created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_credit_notes_original_bill_id'), ['original_bill_id'], unique=False)

    op.create_table('credit_note_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('credit_note_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=False, server_default=''),
        sa.CheckConstraint('quantity >= 1', name='ck_credit_note_line_items_quantity_positive'),
        sa.ForeignKeyConstraint(['credit_note_id'], ['credit_notes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('credit_note_line_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_credit_note_line_items_credit_note_id'), ['credit_note_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_credit_note_line_items_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 4. SHOP SETTINGS (singleton)
    # ==========================================================================
    op.create_table('shop_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(length=255), nullable=False),
        sa.Column('last_bill_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_credit_note_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('id = 1', name='ck_shop_settings_singleton'),
        sa.PrimaryKeyConstraint('id')
    )

    # ==========================================================================
    # 5. AUDIT LEDGER
    # ==========================================================================
    op.create_table('ledger_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ledger_events', schema=None) as batch_op:
        batch_op.create_index('ix_ledger_events_entity', ['entity_type', 'entity_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_event_type'), ['event_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_events_occurred_at'), ['occurred_at'], unique=False)


def downgrade():
    with op.batch_alter_table('ledger_events', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_ledger_events_occurred_at'))
        batch_op.drop_index(batch_op.f('ix_ledger_events_event_type'))
        batch_op.drop_index('ix_ledger_events_entity')
    op.drop_table('ledger_events')

    op.drop_table('shop_settings')

    with op.batch_alter_table('credit_note_line_items', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_credit_note_line_items_product_id'))
        batch_op.drop_index(batch_op.f('ix_credit_note_line_items_credit_note_id'))
    op.drop_table('credit_note_line_items')

    with op.batch_alter_table('credit_notes', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_credit_notes_original_bill_id'))
        batch_op.drop_index('ix_credit_notes_created_at')
    op.drop_table('credit_notes')

    with op.batch_alter_table('bill_line_items', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_bill_line_items_product_id'))
        batch_op.drop_index(batch_op.f('ix_bill_line_items_bill_id'))
    op.drop_table('bill_line_items')

    with op.batch_alter_table('bills', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_bills_payment_type'))
        batch_op.drop_index('ix_bills_created_at')
        batch_op.drop_index('ix_bills_customer_phone')
    op.drop_table('bills')

    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.drop_index('ix_products_name')
    op.drop_table('products')
