# backend/miche/schemas/booking.py
"""Request and response models for the booking flow."""

from datetime import datetime
from typing import Optional

from pydantic import AwareDatetime, Field

from ..core.constants import MAX_LOCATION_LENGTH
from .base import Money, StandardizedModel, StrictModel

ULID_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


class BookingCreate(StrictModel):
    professional_id: str = Field(..., pattern=ULID_PATTERN)
    service_id: str = Field(..., pattern=ULID_PATTERN)
    start_at: AwareDatetime = Field(..., description="Appointment start, with timezone offset")
    location: Optional[str] = Field(default=None, max_length=MAX_LOCATION_LENGTH)
    notes: Optional[str] = Field(default=None, max_length=1000)


class BookingConfirmRequest(StrictModel):
    session_id: str = Field(..., min_length=1, max_length=255)


class BookingResponse(StandardizedModel):
    id: str
    client_id: str
    professional_id: str
    service_id: str
    service_name: str
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    total_amount: Money
    status: str
    location: Optional[str] = None
    notes: Optional[str] = None
    checkout_session_id: Optional[str] = None
    payment_status: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class CheckoutResponse(StandardizedModel):
    booking_id: str
    url: str
    session_id: str = Field(..., validation_alias="external_session_id")
