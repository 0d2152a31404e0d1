"""create_instant_booking_tables

Revision ID: 7c1e4a9b2f30
Revises:
Create Date: 2025-01-15 09:12:44.180233

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7c1e4a9b2f30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# SQLAlchemy stores Python enum member names
region = postgresql.ENUM('BISHKEK', 'OSH', 'JALAL_ABAD', 'KARAKOL', 'OTHER', name='region', create_type=False)
language = postgresql.ENUM('RU', 'KY', name='language', create_type=False)
payment_method = postgresql.ENUM(
    'CASH_ON_MEETING', 'OPTIMA_BANK', 'DEMIR_BANK', 'O_MONEY', 'MEGA_PAY', 'CRYPTO_USDT',
    name='payment_method', create_type=False,
)
payment_status = postgresql.ENUM(
    'PENDING_MEETING', 'PENDING_CRYPTO', 'PENDING_PAYMENT', 'PAID', 'FAILED', 'REFUNDED',
    name='payment_status', create_type=False,
)
urgency = postgresql.ENUM('NORMAL', 'URGENT', 'ASAP', name='urgency', create_type=False)
booking_status = postgresql.ENUM(
    'PENDING', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED',
    name='booking_status', create_type=False,
)

ENUM_TYPES = (region, language, payment_method, payment_status, urgency, booking_status)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'services',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.String(length=1000), nullable=True),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('price_per_hour', sa.Numeric(12, 2), nullable=True),
        sa.Column('instant_booking_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('available_regions', postgresql.JSONB(), nullable=False),
        sa.Column('accepted_payment_methods', postgresql.JSONB(), nullable=False),
    )

    op.create_table(
        'provider_profiles',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('preferred_language', language, nullable=False),
        sa.Column('working_regions', postgresql.JSONB(), nullable=False),
        sa.Column('accepted_payment_methods', postgresql.JSONB(), nullable=False),
        sa.Column('notify_sms', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_push', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_email', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        'client_profiles',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('preferred_language', language, nullable=False),
        sa.Column('preferred_region', region, nullable=False),
        sa.Column('preferred_payment_method', payment_method, nullable=False),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('provider_id', sa.String(length=64), nullable=False),
        sa.Column('service_id', sa.String(length=64), nullable=False),
        sa.Column('scheduled_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('payment_status', payment_status, nullable=False),
        sa.Column('address', postgresql.JSONB(), nullable=False),
        sa.Column('region', region, nullable=False),
        sa.Column('language', language, nullable=False),
        sa.Column('urgency', urgency, nullable=False),
        sa.Column('base_price', sa.Numeric(14, 4), nullable=False),
        sa.Column('regional_multiplier', sa.Numeric(6, 3), nullable=False),
        sa.Column('urgency_multiplier', sa.Numeric(6, 3), nullable=False),
        sa.Column('payment_multiplier', sa.Numeric(6, 3), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission', sa.Numeric(14, 4), nullable=False),
        sa.Column('client_notes', sa.String(length=1000), nullable=True),
        sa.Column('status', booking_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            'duration_minutes >= 30 AND duration_minutes <= 480',
            name='booking_duration_range',
        ),
    )
    op.create_index('ix_bookings_client_id', 'bookings', ['client_id'])
    op.create_index('ix_bookings_service_id', 'bookings', ['service_id'])
    op.create_index('ix_bookings_region', 'bookings', ['region'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    # Day-window availability lookups
    op.create_index('ix_bookings_provider_start', 'bookings', ['provider_id', 'scheduled_start'])

    op.create_table(
        'sms_delivery_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('log_date', sa.Date(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('masked_phone', sa.String(length=32), nullable=False),
        sa.Column('carrier', sa.String(length=32), nullable=False),
        sa.Column('template_id', sa.String(length=64), nullable=False),
        sa.Column('language', sa.String(length=8), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('message_id', sa.String(length=128), nullable=True),
        sa.Column('message_length', sa.Integer(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_sms_delivery_logs_log_date', 'sms_delivery_logs', ['log_date'])
    op.create_index('ix_sms_delivery_logs_expires_at', 'sms_delivery_logs', ['expires_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_sms_delivery_logs_expires_at', table_name='sms_delivery_logs')
    op.drop_index('ix_sms_delivery_logs_log_date', table_name='sms_delivery_logs')
    op.drop_table('sms_delivery_logs')

    op.drop_index('ix_bookings_provider_start', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_region', table_name='bookings')
    op.drop_index('ix_bookings_service_id', table_name='bookings')
    op.drop_index('ix_bookings_client_id', table_name='bookings')
    op.drop_table('bookings')

    op.drop_table('client_profiles')
    op.drop_table('provider_profiles')
    op.drop_table('services')

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
