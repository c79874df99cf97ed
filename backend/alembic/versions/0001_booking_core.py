# backend/alembic/versions/0001_booking_core.py
"""Booking core - professionals, catalog, schedule, bookings and ledger

Revision ID: 0001_booking_core
Revises:
Create Date: 2026-10-19 00:00:00.000000

Bookings snapshot the service name, duration and price at reservation time so
later catalog edits never change what the client agreed to pay. Instants are
stored as timestamptz in UTC; working hours are wall-clock times in the
configured schedule timezone.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_booking_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    print("Creating booking core tables...")

    op.create_table(
        "professionals",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("total_revenue", sa.Numeric(12, 2), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_professionals_user_id", "professionals", ["user_id"], unique=True)

    op.create_table(
        "external_accounts",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("professional_id", sa.String(26), nullable=False),
        sa.Column("external_account_id", sa.String(255), nullable=True),
        sa.Column(
            "onboarding_status", sa.String(20), nullable=False, server_default="not_started"
        ),
        sa.Column("charges_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payouts_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("details_submitted", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("professional_id"),
        sa.UniqueConstraint("external_account_id"),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("professional_id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("external_product_id", sa.String(255), nullable=True),
        sa.Column("external_price_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.CheckConstraint("price >= 0", name="check_service_price_non_negative"),
        sa.CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
    )
    op.create_index("ix_services_professional_id", "services", ["professional_id"])

    op.create_table(
        "working_hours",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("professional_id", sa.String(26), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("is_working", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "professional_id", "weekday", name="uq_working_hours_professional_weekday"
        ),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="check_working_hours_weekday"),
    )
    op.create_index("ix_working_hours_professional_id", "working_hours", ["professional_id"])

    op.create_table(
        "blocked_intervals",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("professional_id", sa.String(26), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"], ondelete="CASCADE"),
        sa.CheckConstraint("end_at > start_at", name="check_blocked_interval_order"),
    )
    op.create_index(
        "ix_blocked_intervals_professional_id", "blocked_intervals", ["professional_id"]
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("professional_id", sa.String(26), nullable=False),
        sa.Column("service_id", sa.String(26), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        # Snapshot of the service at reservation time
        sa.Column("service_name", sa.String(255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("checkout_session_id", sa.String(255), nullable=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column(
            "payment_status",
            sa.String(50),
            nullable=True,
            comment="Last payment_status seen on the session",
        ),
        *_timestamps(),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.UniqueConstraint("checkout_session_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'failed')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="check_booking_duration_positive"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        sa.CheckConstraint("end_at > start_at", name="check_booking_time_order"),
    )
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_status_created", "bookings", ["status", "created_at"])
    op.create_index(
        "uq_bookings_professional_active_start",
        "bookings",
        ["professional_id", "start_at"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed')"),
    )

    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("professional_id", sa.String(26), nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("commission_minor", sa.Integer(), nullable=False),
        sa.Column("net_minor", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="usd"),
        sa.Column("checkout_session_id", sa.String(255), nullable=False),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"]),
        sa.ForeignKeyConstraint(["professional_id"], ["professionals.id"]),
        sa.UniqueConstraint("booking_id"),
        sa.CheckConstraint(
            "amount_minor = commission_minor + net_minor", name="check_split_balances"
        ),
        sa.CheckConstraint("commission_minor >= 0", name="check_commission_non_negative"),
    )
    op.create_index(
        "ix_payment_transactions_professional_id", "payment_transactions", ["professional_id"]
    )

    print("Booking core tables created")


def downgrade() -> None:
    print("Dropping booking core tables...")
    op.drop_table("payment_transactions")
    op.drop_index("uq_bookings_professional_active_start", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("blocked_intervals")
    op.drop_table("working_hours")
    op.drop_table("services")
    op.drop_table("external_accounts")
    op.drop_table("professionals")
