# backend/miche/models/booking.py
"""
Booking model for Miche Mobile.

A booking is the durable record of truth for the whole reserve, checkout and
settlement flow. Service name, duration and price are snapshotted at
reservation time so later catalog edits never change an existing booking.
Failed and abandoned attempts keep their row (failed / cancelled) as an
audit trail.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import FrozenSet

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # slot held, payment not settled
    CONFIRMED = "confirmed"
    COMPLETED = "completed"  # set by the operational flow after the appointment
    CANCELLED = "cancelled"  # checkout abandoned or expired
    FAILED = "failed"  # processor reported a non-payable session


# Statuses that hold the slot for availability purposes
ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    client_id = Column(String(64), nullable=False, index=True)
    professional_id = Column(String(26), ForeignKey("professionals.id"), nullable=False)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)

    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)

    # Snapshot of the service at reservation time
    service_name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    location = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Processor references
    checkout_session_id = Column(String(255), nullable=True, unique=True)
    payment_intent_id = Column(String(255), nullable=True)
    payment_status = Column(String(50), nullable=True, comment="Last payment_status seen on the session")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)

    service = relationship("Service")
    payment_transaction = relationship(
        "PaymentTransaction", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'failed')",
            name="ck_bookings_status",
        ),
        CheckConstraint("duration_minutes > 0", name="check_booking_duration_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint("end_at > start_at", name="check_booking_time_order"),
        # One active booking per professional start instant. Overlapping windows with
        # different starts are rejected by the Postgres exclusion constraint added in
        # the migration.
        Index(
            "uq_bookings_professional_active_start",
            "professional_id",
            "start_at",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
        Index("ix_bookings_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: client={self.client_id}, professional={self.professional_id}, "
            f"start={self.start_at}, status={self.status}>"
        )

    @staticmethod
    def window_end(start_at: datetime, duration_minutes: int) -> datetime:
        return start_at + timedelta(minutes=duration_minutes)

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING.value
