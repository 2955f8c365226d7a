"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2025-08-02 12:30:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create services table
    op.create_table('services',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('service_type', sa.String(length=32), nullable=False),
        sa.Column('vendor_id', sa.String(length=64), nullable=True),
        sa.Column('host_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_services_service_type'), 'services', ['service_type'], unique=False)
    op.create_index(op.f('ix_services_vendor_id'), 'services', ['vendor_id'], unique=False)
    op.create_index(op.f('ix_services_host_id'), 'services', ['host_id'], unique=False)

    # Create users table
    op.create_table('users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('loyalty_credits', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('loyalty_credits >= 0', name='ck_user_loyalty_credits_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    # Create carts table
    op.create_table('carts',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_carts_user_id'), 'carts', ['user_id'], unique=True)

    # Create cart_items table
    op.create_table('cart_items',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('cart_id', sa.String(length=64), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('service_id', sa.String(length=64), nullable=False),
        sa.Column('service_type', sa.String(length=32), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('option_id', sa.String(length=64), nullable=True),
        sa.Column('room_id', sa.String(length=64), nullable=True),
        sa.Column('selected_date', sa.Date(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('selected_time', sa.String(length=32), nullable=True),
        sa.Column('time_slot_start', sa.String(length=16), nullable=True),
        sa.Column('time_slot_end', sa.String(length=16), nullable=True),
        sa.Column('num_people', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('base_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('pickup_location', sa.String(length=255), nullable=True),
        sa.Column('dropoff_location', sa.String(length=255), nullable=True),
        sa.Column('service_name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('num_people >= 1', name='ck_cart_item_people_positive'),
        sa.CheckConstraint('total_price >= 0', name='ck_cart_item_price_non_negative'),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cart_items_cart_id'), 'cart_items', ['cart_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_number', sa.String(length=32), nullable=False),
        sa.Column('transaction_id', sa.String(length=255), nullable=False),
        sa.Column('line_ref', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.String(length=64), nullable=True),
        sa.Column('guest_name', sa.String(length=255), nullable=True),
        sa.Column('guest_email', sa.String(length=255), nullable=True),
        sa.Column('service_id', sa.String(length=64), nullable=False),
        sa.Column('vendor_id', sa.String(length=64), nullable=False),
        sa.Column('service_type', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('transport_category', sa.String(length=64), nullable=True),
        sa.Column('option_id', sa.String(length=64), nullable=True),
        sa.Column('room_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('passengers_total', sa.Integer(), nullable=False),
        sa.Column('base_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('referral_code', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('booking_source', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('passengers_total > 0', name='ck_booking_passengers_positive'),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('length(transaction_id) > 0', name='ck_booking_transaction_not_empty'),
        sa.CheckConstraint('customer_id IS NOT NULL OR guest_email IS NOT NULL', name='ck_booking_has_identity'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', 'line_ref', name='uq_booking_transaction_line')
    )
    op.create_index(op.f('ix_bookings_booking_number'), 'bookings', ['booking_number'], unique=True)
    op.create_index(op.f('ix_bookings_transaction_id'), 'bookings', ['transaction_id'], unique=False)
    op.create_index(op.f('ix_bookings_customer_id'), 'bookings', ['customer_id'], unique=False)
    op.create_index(op.f('ix_bookings_service_id'), 'bookings', ['service_id'], unique=False)
    op.create_index(op.f('ix_bookings_vendor_id'), 'bookings', ['vendor_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_scheduled_at'), 'bookings', ['scheduled_at'], unique=False)

    # Create referral_partners table
    op.create_table('referral_partners',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('referral_code', sa.String(length=64), nullable=False),
        sa.Column('commission_percentage', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('total_referrals', sa.Integer(), nullable=False),
        sa.Column('pending_commission', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('commission_percentage >= 0', name='ck_partner_commission_min'),
        sa.CheckConstraint('commission_percentage <= 100', name='ck_partner_commission_max'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )
    op.create_index(op.f('ix_referral_partners_referral_code'), 'referral_partners', ['referral_code'], unique=True)

    # Create referral_commissions table
    op.create_table('referral_commissions',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('commission_percentage', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('booking_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('referral_code', sa.String(length=64), nullable=False),
        sa.Column('service_type', sa.String(length=20), nullable=True),
        sa.Column('vendor_id', sa.String(length=64), nullable=True),
        sa.Column('tourist_name', sa.String(length=255), nullable=True),
        sa.Column('tourist_email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['partner_id'], ['referral_partners.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_referral_commissions_partner_id'), 'referral_commissions', ['partner_id'], unique=False)
    op.create_index(op.f('ix_referral_commissions_status'), 'referral_commissions', ['status'], unique=False)
    op.create_index(op.f('ix_referral_commissions_referral_code'), 'referral_commissions', ['referral_code'], unique=False)

    # Create revenue_events table
    op.create_table('revenue_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('previous_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('service_type', sa.String(length=20), nullable=True),
        sa.Column('vendor_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('previous_status', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_revenue_events_booking_id'), 'revenue_events', ['booking_id'], unique=False)
    op.create_index(op.f('ix_revenue_events_vendor_id'), 'revenue_events', ['vendor_id'], unique=False)

    # Create webhook_events table
    op.create_table('webhook_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('booking_type', sa.String(length=20), nullable=True),
        sa.Column('outcome', sa.String(length=20), nullable=False),
        sa.Column('error_class', sa.String(length=100), nullable=True),
        sa.Column('detail', sa.Text(), nullable=True),
        sa.Column('delivery_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(event_id) > 0', name='ck_webhook_event_id_not_empty'),
        sa.CheckConstraint('delivery_count >= 1', name='ck_webhook_delivery_count_positive'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id')
    )
    op.create_index(op.f('ix_webhook_events_payment_intent_id'), 'webhook_events', ['payment_intent_id'], unique=False)
    op.create_index(op.f('ix_webhook_events_outcome'), 'webhook_events', ['outcome'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('webhook_events')
    op.drop_table('revenue_events')
    op.drop_table('referral_commissions')
    op.drop_table('referral_partners')
    op.drop_table('bookings')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_table('users')
    op.drop_table('services')
