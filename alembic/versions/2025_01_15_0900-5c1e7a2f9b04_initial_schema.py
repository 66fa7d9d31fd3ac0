"""initial_schema

Revision ID: 5c1e7a2f9b04
Revises:
Create Date: 2025-01-15 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1e7a2f9b04"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _photo_columns():
    return [
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('original_name', sa.String(255), nullable=False),
        sa.Column('file_path', sa.String(500), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'customers',
        *_base_columns(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('billing_address', sa.Text(), nullable=True),
    )
    op.create_index('ix_customers_name', 'customers', ['name'])
    op.create_index('ix_customers_email', 'customers', ['email'])

    op.create_table(
        'properties',
        *_base_columns(),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(50), nullable=True),
        sa.Column('zip_code', sa.String(20), nullable=True),
        sa.Column('latitude', sa.Numeric(10, 8), nullable=True),
        sa.Column('longitude', sa.Numeric(11, 8), nullable=True),
        sa.Column('property_type', sa.String(20), nullable=False),
        sa.Column('square_footage', sa.Integer(), nullable=True),
        sa.Column('year_built', sa.Integer(), nullable=True),
        sa.Column('bedrooms', sa.Integer(), nullable=True),
        sa.Column('bathrooms', sa.Numeric(3, 1), nullable=True),
        sa.Column('floors', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('access_notes', sa.Text(), nullable=True),
        sa.Column('gate_code', sa.String(50), nullable=True),
        sa.Column('key_location', sa.Text(), nullable=True),
        sa.Column('contact_on_site', sa.String(100), nullable=True),
        sa.Column('contact_phone', sa.String(20), nullable=True),
        sa.Column('preferred_service_time', sa.String(100), nullable=True),
        sa.Column('last_service_date', sa.Date(), nullable=True),
        sa.Column('next_service_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_properties_customer_id', 'properties', ['customer_id'])

    op.create_table(
        'recurring_templates',
        *_base_columns(),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('template_name', sa.String(100), nullable=False),
        sa.Column('base_invoice_data', sa.JSON(), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('frequency', sa.String(20), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('occurrences', sa.Integer(), nullable=True),
        sa.Column('next_run_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('completed_occurrences', sa.Integer(), nullable=False),
    )
    op.create_index('ix_recurring_templates_customer_id', 'recurring_templates', ['customer_id'])
    op.create_index('ix_recurring_templates_next_run_date', 'recurring_templates', ['next_run_date'])

    op.create_table(
        'invoices',
        *_base_columns(),
        sa.Column('invoice_number', sa.String(50), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('property_id', sa.Uuid(), sa.ForeignKey('properties.id'), nullable=True),
        sa.Column(
            'recurring_template_id', sa.Uuid(),
            sa.ForeignKey('recurring_templates.id', ondelete='SET NULL'), nullable=True
        ),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('sent_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('grand_total', sa.Numeric(12, 2), nullable=False),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_property_id', 'invoices', ['property_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_status_due_date', 'invoices', ['status', 'due_date'])

    op.create_table(
        'invoice_line_items',
        *_base_columns(),
        sa.Column('invoice_id', sa.Uuid(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
    )
    op.create_index('ix_invoice_line_items_invoice_id', 'invoice_line_items', ['invoice_id'])

    op.create_table(
        'expenses',
        *_base_columns(),
        sa.Column('invoice_id', sa.Uuid(), sa.ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True),
        sa.Column('vendor', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('receipt_path', sa.String(500), nullable=True),
        sa.Column('parsed_data', sa.JSON(), nullable=True),
    )
    op.create_index('ix_expenses_invoice_id', 'expenses', ['invoice_id'])
    op.create_index('ix_expenses_expense_date', 'expenses', ['expense_date'])

    op.create_table(
        'property_service_history',
        *_base_columns(),
        sa.Column('property_id', sa.Uuid(), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_id', sa.Uuid(), sa.ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True),
        sa.Column('service_date', sa.Date(), nullable=False),
        sa.Column('service_type', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('rooms_serviced', sa.JSON(), nullable=True),
        sa.Column('materials_used', sa.JSON(), nullable=True),
        sa.Column('time_spent', sa.Numeric(5, 2), nullable=True),
        sa.Column('labor_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('material_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('total_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('technicians', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('warranty_info', sa.Text(), nullable=True),
        sa.Column('follow_up_required', sa.Boolean(), nullable=False),
        sa.Column('follow_up_date', sa.Date(), nullable=True),
        sa.Column('customer_satisfaction', sa.Integer(), nullable=True),
        sa.Column('customer_feedback', sa.Text(), nullable=True),
    )
    op.create_index('ix_property_service_history_property_id', 'property_service_history', ['property_id'])

    op.create_table(
        'customer_photos',
        *_base_columns(),
        *_photo_columns(),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
    )
    op.create_index('ix_customer_photos_customer_id', 'customer_photos', ['customer_id'])

    op.create_table(
        'customer_notes',
        *_base_columns(),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('priority', sa.String(10), nullable=False),
        sa.Column('is_archived', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_customer_notes_customer_id', 'customer_notes', ['customer_id'])

    op.create_table(
        'property_photos',
        *_base_columns(),
        *_photo_columns(),
        sa.Column('property_id', sa.Uuid(), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('room', sa.String(100), nullable=True),
        sa.Column('floor', sa.String(50), nullable=True),
        sa.Column('date_taken', sa.Date(), nullable=True),
    )
    op.create_index('ix_property_photos_property_id', 'property_photos', ['property_id'])

    op.create_table(
        'property_notes',
        *_base_columns(),
        sa.Column('property_id', sa.Uuid(), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('priority', sa.String(10), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('reminder_date', sa.Date(), nullable=True),
        sa.Column('room', sa.String(100), nullable=True),
        sa.Column('floor', sa.String(50), nullable=True),
    )
    op.create_index('ix_property_notes_property_id', 'property_notes', ['property_id'])

    op.create_table(
        'invoice_photos',
        *_base_columns(),
        *_photo_columns(),
        sa.Column('invoice_id', sa.Uuid(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
    )
    op.create_index('ix_invoice_photos_invoice_id', 'invoice_photos', ['invoice_id'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'invoice_photos', 'property_notes', 'property_photos', 'customer_notes', 'customer_photos',
        'property_service_history', 'expenses', 'invoice_line_items', 'invoices',
        'recurring_templates', 'properties', 'customers', 'users'
    ):
        op.drop_table(table)
