# backend/miche/schemas/availability.py
from datetime import date, datetime, time
from typing import List, Optional

from pydantic import AwareDatetime, Field, model_validator

from ..core.constants import MAX_REASON_LENGTH
from .base import StandardizedModel, StrictModel


class AvailabilityResponse(StandardizedModel):
    professional_id: str
    date: date
    duration_minutes: Optional[int] = None
    available_slots: List[datetime]


class WorkingHoursEntryIn(StrictModel):
    weekday: int = Field(..., ge=0, le=6, description="0 = Monday ... 6 = Sunday")
    is_working: bool = True
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def _check_order(self) -> "WorkingHoursEntryIn":
        if self.is_working and self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        return self


class WorkingHoursReplace(StrictModel):
    days: List[WorkingHoursEntryIn] = Field(default_factory=list, max_length=7)


class WorkingHoursOut(StandardizedModel):
    weekday: int
    is_working: bool
    start_time: time
    end_time: time


class BlockedIntervalCreate(StrictModel):
    start_at: AwareDatetime
    end_at: AwareDatetime
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)


class BlockedIntervalOut(StandardizedModel):
    id: str
    start_at: datetime
    end_at: datetime
    reason: Optional[str] = None
