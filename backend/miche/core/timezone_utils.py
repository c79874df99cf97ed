"""
Timezone utilities for the booking backend.

Working hours are stored as wall-clock times without a timezone. They are
interpreted in the single configured ``schedule_timezone``. Every instant
(blocked intervals, bookings, candidate slots) is timezone-aware and stored
in UTC.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from .config import settings
from .exceptions import ValidationException


def get_schedule_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the pytz timezone working hours are expressed in."""
    return pytz.timezone(name or settings.schedule_timezone)


def localize(target_date: date, wall_clock: time, tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """Build an aware datetime for a wall-clock time on ``target_date`` in the schedule timezone."""
    zone = tz or get_schedule_timezone()
    naive = datetime.combine(target_date, wall_clock.replace(tzinfo=None))
    return zone.localize(naive)


def ensure_aware(instant: datetime, field: str = "timestamp") -> datetime:
    """
    Reject naive datetimes.

    SQLite hands back naive datetimes for DateTime(timezone=True) columns; those
    are stored in UTC by this application, so values read back from storage are
    normalised with ``as_utc`` instead.
    """
    if instant.tzinfo is None or instant.tzinfo.utcoffset(instant) is None:
        raise ValidationException(
            f"{field} must include a timezone offset",
            code="NAIVE_DATETIME",
            details={"field": field, "value": instant.isoformat()},
        )
    return instant


def as_utc(instant: datetime) -> datetime:
    """Normalise a stored datetime (aware, or naive-in-UTC) to aware UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    hours, _, minutes = value.partition(":")
    return time(int(hours), int(minutes))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
