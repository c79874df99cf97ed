# backend/miche/routes/v1/availability.py
"""
Public availability routes - API v1

Endpoints:
    GET /{professional_id}/availability - Free start times for one day
"""

import asyncio
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ...api.dependencies import get_availability_service
from ...core.constants import MAX_SERVICE_DURATION
from ...schemas.availability import AvailabilityResponse
from ...services.availability_service import AvailabilityService

router = APIRouter(tags=["availability-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


@router.get("/{professional_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    professional_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    target_date: date = Query(..., alias="date", description="Day to check (YYYY-MM-DD)"),
    duration_minutes: Optional[int] = Query(None, ge=1, le=MAX_SERVICE_DURATION),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """
    List the candidate start times on ``date`` that are inside working hours,
    outside blocked time and not taken by an active booking.

    With ``duration_minutes`` the whole appointment window must be free.
    """
    slots = await asyncio.to_thread(
        availability_service.get_availability,
        professional_id,
        target_date,
        duration_minutes=duration_minutes,
    )
    return AvailabilityResponse(
        professional_id=professional_id,
        date=target_date,
        duration_minutes=duration_minutes,
        available_slots=slots,
    )
