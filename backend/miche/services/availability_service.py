# backend/miche/services/availability_service.py
"""
Availability Calculator for Miche Mobile.

The calculation itself is a set of pure functions over plain values
(working days, blocked spans, booked spans) so it can be exercised with
synthetic calendars. ``AvailabilityService`` only loads those values from
storage and hands them over.

Boundary rules:

- Working hours are a half-open window [start, end) in the schedule
  timezone. A slot with a duration must also finish by ``end``.
- Blocked intervals are inclusive on BOTH ends. A slot starting exactly at a
  blocked interval's end instant is still unavailable.
- An active (pending or confirmed) booking occupies [start, end).
- A professional with no working-hours rows at all is treated as always
  working. Once any row exists, a weekday without a working row is closed.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Iterable, List, Optional, Sequence

import pytz
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ProfessionalNotFoundException, ValidationException
from ..core.timezone_utils import as_utc, get_schedule_timezone, localize, parse_clock
from ..core.ulid_helper import require_ulid
from ..models.availability import BlockedInterval, WorkingHours
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkingDay:
    weekday: int
    is_working: bool
    start_time: time
    end_time: time


@dataclass(frozen=True)
class TimeSpan:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Everything the calculator needs about one professional around one date."""

    working_hours: Sequence[WorkingDay]
    blocked_intervals: Sequence[TimeSpan]
    active_bookings: Sequence[TimeSpan]


def default_candidate_slots(
    target_date: date, tz: Optional[pytz.BaseTzInfo] = None
) -> List[datetime]:
    """Fixed ticks across the service day, both ends included (09:00 ... 18:00 by default)."""
    zone = tz or get_schedule_timezone()
    current = localize(target_date, parse_clock(settings.slot_day_start), zone)
    last = localize(target_date, parse_clock(settings.slot_day_end), zone)
    step = timedelta(minutes=settings.slot_interval_minutes)
    slots: List[datetime] = []
    while current <= last:
        slots.append(current)
        # Re-localize so DST transitions keep wall-clock ticks
        current = zone.normalize(current + step)
    return slots


def _within_working_hours(
    slot: datetime,
    duration: timedelta,
    working_hours: Sequence[WorkingDay],
    tz: pytz.BaseTzInfo,
) -> bool:
    if not working_hours:
        return True
    local = slot.astimezone(tz)
    day = next((row for row in working_hours if row.weekday == local.weekday()), None)
    if day is None or not day.is_working:
        return False
    window_start = localize(local.date(), day.start_time, tz)
    window_end = localize(local.date(), day.end_time, tz)
    if local < window_start:
        return False
    if duration:
        return local + duration <= window_end
    return local < window_end


def _is_blocked(slot: datetime, duration: timedelta, blocked: Iterable[TimeSpan]) -> bool:
    slot_end = slot + duration
    for span in blocked:
        if duration:
            if span.start < slot_end and slot <= span.end:
                return True
        elif span.start <= slot <= span.end:
            return True
    return False


def _collides(slot: datetime, duration: timedelta, bookings: Iterable[TimeSpan]) -> bool:
    slot_end = slot + duration
    for span in bookings:
        if duration:
            if span.start < slot_end and span.end > slot:
                return True
        elif span.start <= slot < span.end:
            return True
    return False


def is_slot_free(
    slot: datetime,
    snapshot: ScheduleSnapshot,
    *,
    duration_minutes: int = 0,
    tz: Optional[pytz.BaseTzInfo] = None,
) -> bool:
    """
    Answer "is this slot free?".

    With ``duration_minutes=0`` the slot is a single instant; otherwise the
    whole window [slot, slot + duration) must be free.
    """
    zone = tz or get_schedule_timezone()
    duration = timedelta(minutes=duration_minutes)
    instant = as_utc(slot)
    return (
        _within_working_hours(instant, duration, snapshot.working_hours, zone)
        and not _is_blocked(instant, duration, snapshot.blocked_intervals)
        and not _collides(instant, duration, snapshot.active_bookings)
    )


def compute_available_slots(
    candidate_slots: Sequence[datetime],
    snapshot: ScheduleSnapshot,
    *,
    duration_minutes: int = 0,
    tz: Optional[pytz.BaseTzInfo] = None,
) -> List[datetime]:
    """Filter ``candidate_slots`` down to the free ones, preserving order."""
    return [
        slot
        for slot in candidate_slots
        if is_slot_free(slot, snapshot, duration_minutes=duration_minutes, tz=tz)
    ]


def load_snapshot(
    db: Session, professional_id: str, window_start: datetime, window_end: datetime
) -> ScheduleSnapshot:
    """Read the schedule rows relevant to [window_start, window_end] for one professional."""
    schedule_repo = RepositoryFactory.create_availability_repository(db)
    booking_repo = RepositoryFactory.create_booking_repository(db)
    hours: List[WorkingHours] = schedule_repo.get_working_hours(professional_id)
    blocked: List[BlockedInterval] = schedule_repo.list_blocked_intervals(
        professional_id, window_start, window_end
    )
    bookings: List[Booking] = booking_repo.find_active_overlapping(
        professional_id, window_start, window_end
    )
    return ScheduleSnapshot(
        working_hours=[
            WorkingDay(row.weekday, bool(row.is_working), row.start_time, row.end_time)
            for row in hours
        ],
        blocked_intervals=[TimeSpan(as_utc(b.start_at), as_utc(b.end_at)) for b in blocked],
        active_bookings=[TimeSpan(as_utc(b.start_at), as_utc(b.end_at)) for b in bookings],
    )


class AvailabilityService(BaseService):
    """Loads schedule data and answers availability queries."""

    @BaseService.measure_operation("get_availability")
    def get_availability(
        self,
        professional_id: str,
        target_date: date,
        *,
        duration_minutes: Optional[int] = None,
        candidate_slots: Optional[Sequence[datetime]] = None,
    ) -> List[datetime]:
        professional_id = require_ulid(professional_id, "professional_id")
        if duration_minutes is not None and duration_minutes <= 0:
            raise ValidationException(
                "duration_minutes must be positive",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )
        zone = get_schedule_timezone()
        slots = list(candidate_slots) if candidate_slots is not None else default_candidate_slots(
            target_date, zone
        )
        if not slots:
            return []
        slots = [as_utc(slot) for slot in slots]
        window_start = min(slots)
        # At least one minute past the last tick so a booking starting on it is loaded
        window_end = max(slots) + timedelta(minutes=max(duration_minutes or 0, 1))

        def _load(db: Session) -> ScheduleSnapshot:
            accounts = RepositoryFactory.create_account_repository(db)
            if accounts.get_by_id(professional_id) is None:
                raise ProfessionalNotFoundException(professional_id)
            return load_snapshot(db, professional_id, window_start, window_end)

        snapshot = self.elevated("get_availability", _load)
        available = compute_available_slots(
            slots, snapshot, duration_minutes=duration_minutes or 0, tz=zone
        )
        self.logger.debug(
            "Professional %s on %s: %d of %d slots free",
            professional_id,
            target_date,
            len(available),
            len(slots),
        )
        return available
