# backend/miche/services/reservation_service.py
"""
Reservation Manager for Miche Mobile.

Creates the pending booking that holds a slot while the client pays.

Order of checks:
1. Input validation, before any I/O.
2. One elevated read: the service belongs to the professional, the
   professional can be paid, and the availability calculator accepts the
   whole booking window. Not-payable short-circuits here so no orphaned
   pending booking is ever created for a professional who cannot be paid.
3. A caller-scoped insert. The active-slot uniqueness constraint turns the
   insert into a compare-and-insert, so the read in step 2 is never the
   only thing standing between two clients and the same slot.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.constants import MAX_LOCATION_LENGTH
from ..core.exceptions import (
    BookingNotFoundException,
    NotPayableException,
    ServiceNotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import as_utc, ensure_aware, get_schedule_timezone, utcnow
from ..core.ulid_helper import require_ulid
from ..models.booking import Booking, BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .availability_service import is_slot_free, load_snapshot
from .base import BaseService


@dataclass(frozen=True)
class _ReservationQuote:
    service_name: str
    price: Decimal
    duration_minutes: int


class ReservationService(BaseService):
    def __init__(self, storage, clock: Callable[[], datetime] = utcnow):
        super().__init__(storage)
        self._clock = clock

    def _validate(
        self,
        client_id: str,
        professional_id: str,
        service_id: str,
        start_at: datetime,
        location: Optional[str],
    ) -> datetime:
        if not isinstance(client_id, str) or not client_id.strip():
            raise ValidationException(
                "client_id is required", code="MISSING_FIELD", details={"field": "client_id"}
            )
        require_ulid(professional_id, "professional_id")
        require_ulid(service_id, "service_id")
        if not isinstance(start_at, datetime):
            raise ValidationException(
                "start_at must be a datetime", code="INVALID_START", details={"field": "start_at"}
            )
        start_utc = as_utc(ensure_aware(start_at, "start_at"))
        if start_utc <= self._clock():
            raise ValidationException(
                "Appointments must start in the future.",
                code="START_IN_PAST",
                details={"start_at": start_utc.isoformat()},
            )
        if location is not None and len(location) > MAX_LOCATION_LENGTH:
            raise ValidationException(
                f"location must be at most {MAX_LOCATION_LENGTH} characters",
                code="LOCATION_TOO_LONG",
            )
        return start_utc

    @BaseService.measure_operation("reserve")
    def reserve(
        self,
        client_id: str,
        professional_id: str,
        service_id: str,
        start_at: datetime,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """Create a pending booking holding ``start_at`` for the service's duration."""
        start_utc = self._validate(client_id, professional_id, service_id, start_at, location)

        def _check(db: Session) -> _ReservationQuote:
            services = RepositoryFactory.create_service_repository(db)
            accounts = RepositoryFactory.create_account_repository(db)

            service = services.get_active(service_id)
            if service is None or service.professional_id != professional_id:
                raise ServiceNotFoundException(service_id)

            account = accounts.get_external_account(professional_id)
            if account is None or not account.is_payable:
                if account is None or not account.external_account_id:
                    reason = "no_external_account"
                else:
                    reason = "charges_disabled"
                raise NotPayableException(professional_id, reason=reason)

            end_utc = start_utc + timedelta(minutes=service.duration_minutes)
            snapshot = load_snapshot(db, professional_id, start_utc, end_utc)
            if not is_slot_free(
                start_utc,
                snapshot,
                duration_minutes=service.duration_minutes,
                tz=get_schedule_timezone(),
            ):
                raise SlotUnavailableException(
                    details={"professional_id": professional_id, "start_at": start_utc.isoformat()}
                )
            return _ReservationQuote(service.name, Decimal(service.price), service.duration_minutes)

        quote = self.elevated("reserve.check", _check)

        def _insert(db: Session) -> Booking:
            bookings = RepositoryFactory.create_booking_repository(db)
            return bookings.create_pending(
                client_id=client_id,
                professional_id=professional_id,
                service_id=service_id,
                start_at=start_utc,
                end_at=Booking.window_end(start_utc, quote.duration_minutes),
                service_name=quote.service_name,
                duration_minutes=quote.duration_minutes,
                total_amount=quote.price,
                location=location,
                notes=notes,
            )

        booking = self.as_caller("reserve.insert", client_id, _insert)
        prometheus_metrics.record_booking_transition("new", BookingStatus.PENDING.value)
        self.logger.info(
            "Booking %s reserved: professional=%s start=%s amount=%s status=pending",
            booking.id,
            professional_id,
            start_utc.isoformat(),
            quote.price,
        )
        return booking

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str, principal_id: str) -> Booking:
        """Return a booking visible to the principal as its client or its professional."""
        require_ulid(booking_id, "booking_id")

        def _read(db: Session) -> Booking:
            booking = RepositoryFactory.create_booking_repository(db).get_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id)
            if booking.client_id == principal_id:
                return booking
            professional = RepositoryFactory.create_account_repository(db).get_by_id(
                booking.professional_id
            )
            if professional is None or professional.user_id != principal_id:
                raise BookingNotFoundException(booking_id)
            return booking

        return self.elevated("booking.read", _read)
