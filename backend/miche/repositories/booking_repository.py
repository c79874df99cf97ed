# backend/miche/repositories/booking_repository.py
"""
Booking Repository for Miche Mobile

Data access for the booking lifecycle: the compare-and-insert reservation,
overlap queries feeding availability, and the conditional status update
that makes settlement idempotent.
"""

from datetime import datetime
from typing import Any, List

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import EXPIRY_SWEEP_BATCH_SIZE
from ..core.exceptions import SlotUnavailableException
from ..models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from .base_repository import BaseRepository

# exclusion_violation / unique_violation
_SLOT_CONSTRAINT_PGCODES = {"23P01", "23505"}
_SLOT_CONSTRAINT_MARKERS = (
    "uq_bookings_professional_active_start",
    "bookings_no_overlap_per_professional",
    "bookings.professional_id, bookings.start_at",
)

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


def _is_slot_conflict(exc: IntegrityError) -> bool:
    orig = exc.orig
    message = str(orig if orig is not None else exc)
    if any(marker in message for marker in _SLOT_CONSTRAINT_MARKERS):
        return True
    pgcode = getattr(orig, "pgcode", None)
    constraint = getattr(getattr(orig, "diag", None), "constraint_name", None) or ""
    return pgcode in _SLOT_CONSTRAINT_PGCODES and constraint.startswith(
        ("uq_bookings_professional", "bookings_no_overlap")
    )


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def create_pending(self, **fields: Any) -> Booking:
        """
        Insert a pending booking.

        The active-slot unique index (and the Postgres exclusion constraint)
        makes this the compare-and-insert: of two racing inserts for the same
        slot, exactly one commits and the other lands here as a conflict.
        """
        booking = Booking(status=BookingStatus.PENDING.value, **fields)
        try:
            self.db.add(booking)
            self.db.flush()
        except IntegrityError as exc:
            if _is_slot_conflict(exc):
                self.logger.info(
                    "Slot conflict inserting booking for professional %s at %s",
                    fields.get("professional_id"),
                    fields.get("start_at"),
                )
                start_at = fields.get("start_at")
                raise SlotUnavailableException(
                    details={
                        "professional_id": fields.get("professional_id"),
                        "start_at": start_at.isoformat() if start_at else None,
                    }
                ) from exc
            self._raise_storage_error("create", exc)
        except SQLAlchemyError as exc:
            self._raise_storage_error("create", exc)
        return booking

    def find_active_overlapping(
        self, professional_id: str, start_at: datetime, end_at: datetime
    ) -> List[Booking]:
        """Active bookings whose [start, end) window intersects [start_at, end_at)."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    and_(
                        Booking.professional_id == professional_id,
                        Booking.status.in_(_ACTIVE_VALUES),
                        Booking.start_at < end_at,
                        Booking.end_at > start_at,
                    )
                )
                .order_by(Booking.start_at)
                .all()
            )
        except SQLAlchemyError as e:
            self._raise_storage_error("query", e)


    def transition_from_pending(
        self, booking_id: str, target: BookingStatus, **fields: Any
    ) -> int:
        """
        Move a booking out of pending in a single conditional UPDATE.

        Returns the number of rows changed: 1 when this call won the
        transition, 0 when the booking had already left pending.
        """
        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    and_(
                        Booking.id == booking_id,
                        Booking.status == BookingStatus.PENDING.value,
                    )
                )
                .values(status=target.value, **fields)
                .execution_options(synchronize_session=False)
            )
            return int(result.rowcount or 0)
        except SQLAlchemyError as e:
            self._raise_storage_error("update", e)

    def find_stale_pending(
        self, created_before: datetime, limit: int = EXPIRY_SWEEP_BATCH_SIZE
    ) -> List[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.created_at < created_before,
                )
                .order_by(Booking.created_at)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self._raise_storage_error("query", e)
