# backend/miche/services/schedule_service.py
"""
Schedule management for professionals: weekly working hours and blocked time.

Working hours are replaced as a whole set on every save. Blocked intervals
are created and deleted individually; a new one may touch but never overlap
an existing one.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.constants import MAX_REASON_LENGTH
from ..core.exceptions import (
    BlockedIntervalOverlapException,
    NotFoundException,
    ProfessionalNotFoundException,
    ValidationException,
)
from ..core.timezone_utils import as_utc, ensure_aware, get_schedule_timezone, localize
from ..core.ulid_helper import require_ulid
from ..models.availability import BlockedInterval, WorkingHours
from ..models.professional import Professional
from ..repositories.factory import RepositoryFactory
from .base import BaseService


@dataclass(frozen=True)
class WorkingHoursEntry:
    weekday: int
    is_working: bool
    start_time: time
    end_time: time


def _range_label(start_at: datetime, end_at: datetime) -> str:
    return f"{as_utc(start_at).isoformat()}/{as_utc(end_at).isoformat()}"


class ScheduleService(BaseService):
    def professional_for_user(self, user_id: str) -> Professional:
        def _read(db: Session) -> Professional:
            professional = RepositoryFactory.create_account_repository(db).get_by_user_id(user_id)
            if professional is None:
                raise ProfessionalNotFoundException(user_id)
            return professional

        return self.elevated("schedule.resolve_professional", _read)

    @staticmethod
    def _validate_hours(entries: Sequence[WorkingHoursEntry]) -> None:
        seen = set()
        for entry in entries:
            if not 0 <= entry.weekday <= 6:
                raise ValidationException(
                    "weekday must be between 0 (Monday) and 6 (Sunday)",
                    code="INVALID_WEEKDAY",
                    details={"weekday": entry.weekday},
                )
            if entry.weekday in seen:
                raise ValidationException(
                    "Each weekday may appear only once",
                    code="DUPLICATE_WEEKDAY",
                    details={"weekday": entry.weekday},
                )
            seen.add(entry.weekday)
            if entry.is_working and entry.start_time >= entry.end_time:
                raise ValidationException(
                    "Working hours must end after they start",
                    code="INVALID_TIME_RANGE",
                    details={"weekday": entry.weekday},
                )

    @BaseService.measure_operation("replace_working_hours")
    def replace_working_hours(
        self, user_id: str, entries: Sequence[WorkingHoursEntry]
    ) -> List[WorkingHours]:
        """Delete every working-hours row for the professional and insert ``entries``."""
        self._validate_hours(entries)
        professional = self.professional_for_user(user_id)

        def _write(db: Session) -> List[WorkingHours]:
            return RepositoryFactory.create_availability_repository(db).replace_working_hours(
                professional.id,
                [
                    {
                        "weekday": entry.weekday,
                        "is_working": entry.is_working,
                        "start_time": entry.start_time,
                        "end_time": entry.end_time,
                    }
                    for entry in entries
                ],
            )

        rows = self.as_caller("schedule.replace_working_hours", user_id, _write)
        self.logger.info(
            "Replaced working hours for professional %s (%d days)", professional.id, len(rows)
        )
        return rows

    def get_working_hours(self, user_id: str) -> List[WorkingHours]:
        professional = self.professional_for_user(user_id)
        return self.elevated(
            "schedule.get_working_hours",
            lambda db: RepositoryFactory.create_availability_repository(db).get_working_hours(
                professional.id
            ),
        )

    @BaseService.measure_operation("create_blocked_interval")
    def create_blocked_interval(
        self,
        user_id: str,
        start_at: datetime,
        end_at: datetime,
        reason: Optional[str] = None,
    ) -> BlockedInterval:
        start_utc = as_utc(ensure_aware(start_at, "start_at"))
        end_utc = as_utc(ensure_aware(end_at, "end_at"))
        if end_utc <= start_utc:
            raise ValidationException(
                "Blocked time must end after it starts",
                code="INVALID_TIME_RANGE",
                details={"start_at": start_utc.isoformat(), "end_at": end_utc.isoformat()},
            )
        if reason is not None and len(reason) > MAX_REASON_LENGTH:
            raise ValidationException(
                f"reason must be at most {MAX_REASON_LENGTH} characters", code="REASON_TOO_LONG"
            )
        professional = self.professional_for_user(user_id)

        def _write(db: Session) -> BlockedInterval:
            repo = RepositoryFactory.create_availability_repository(db)
            overlapping = repo.find_overlapping_blocked(professional.id, start_utc, end_utc)
            if overlapping:
                existing = overlapping[0]
                raise BlockedIntervalOverlapException(
                    _range_label(start_utc, end_utc),
                    _range_label(existing.start_at, existing.end_at),
                )
            return repo.create(
                professional_id=professional.id,
                start_at=start_utc,
                end_at=end_utc,
                reason=reason,
            )

        interval = self.as_caller("schedule.create_blocked_interval", user_id, _write)
        self.logger.info(
            "Blocked %s for professional %s", _range_label(start_utc, end_utc), professional.id
        )
        return interval

    @BaseService.measure_operation("delete_blocked_interval")
    def delete_blocked_interval(self, user_id: str, interval_id: str) -> None:
        require_ulid(interval_id, "interval_id")
        professional = self.professional_for_user(user_id)

        def _delete(db: Session) -> None:
            repo = RepositoryFactory.create_availability_repository(db)
            interval = repo.get_by_id(interval_id)
            if interval is None or interval.professional_id != professional.id:
                raise NotFoundException(
                    "We couldn't find that blocked time.",
                    code="BLOCKED_INTERVAL_NOT_FOUND",
                    details={"interval_id": interval_id},
                )
            repo.delete(interval_id)

        self.as_caller("schedule.delete_blocked_interval", user_id, _delete)

    def list_blocked_intervals(
        self, user_id: str, on_date: Optional[date] = None
    ) -> List[BlockedInterval]:
        professional = self.professional_for_user(user_id)
        window_start: Optional[datetime] = None
        window_end: Optional[datetime] = None
        if on_date is not None:
            zone = get_schedule_timezone()
            window_start = as_utc(localize(on_date, time(0, 0), zone))
            window_end = as_utc(localize(on_date + timedelta(days=1), time(0, 0), zone))

        return self.elevated(
            "schedule.list_blocked_intervals",
            lambda db: RepositoryFactory.create_availability_repository(db).list_blocked_intervals(
                professional.id, window_start, window_end
            ),
        )
