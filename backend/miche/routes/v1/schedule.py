# backend/miche/routes/v1/schedule.py
"""
Professional schedule routes - API v1

The authenticated user must own a professional profile.

Endpoints:
    GET /working-hours - Weekly working hours
    PUT /working-hours - Replace the weekly working hours
    GET /blocked-intervals - Blocked time, optionally for one day
    POST /blocked-intervals - Block a time range
    DELETE /blocked-intervals/{interval_id} - Remove blocked time
"""

import asyncio
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from ...api.dependencies import UserPrincipal, get_current_principal, get_schedule_service
from ...schemas.availability import (
    BlockedIntervalCreate,
    BlockedIntervalOut,
    WorkingHoursOut,
    WorkingHoursReplace,
)
from ...services.schedule_service import ScheduleService, WorkingHoursEntry

router = APIRouter(tags=["schedule-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


@router.get("/working-hours", response_model=List[WorkingHoursOut])
async def get_working_hours(
    current_user: UserPrincipal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> List[WorkingHoursOut]:
    rows = await asyncio.to_thread(schedule_service.get_working_hours, current_user.id)
    return [WorkingHoursOut.model_validate(row) for row in rows]


@router.put("/working-hours", response_model=List[WorkingHoursOut])
async def replace_working_hours(
    payload: WorkingHoursReplace,
    current_user: UserPrincipal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> List[WorkingHoursOut]:
    """Replace the whole week. Days left out have no working hours row."""
    entries = [
        WorkingHoursEntry(
            weekday=day.weekday,
            is_working=day.is_working,
            start_time=day.start_time,
            end_time=day.end_time,
        )
        for day in payload.days
    ]
    rows = await asyncio.to_thread(
        schedule_service.replace_working_hours, current_user.id, entries
    )
    return [WorkingHoursOut.model_validate(row) for row in rows]


@router.get("/blocked-intervals", response_model=List[BlockedIntervalOut])
async def list_blocked_intervals(
    on_date: Optional[date] = Query(None, alias="date"),
    current_user: UserPrincipal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> List[BlockedIntervalOut]:
    rows = await asyncio.to_thread(
        schedule_service.list_blocked_intervals, current_user.id, on_date
    )
    return [BlockedIntervalOut.model_validate(row) for row in rows]


@router.post(
    "/blocked-intervals",
    response_model=BlockedIntervalOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_blocked_interval(
    payload: BlockedIntervalCreate,
    current_user: UserPrincipal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> BlockedIntervalOut:
    interval = await asyncio.to_thread(
        schedule_service.create_blocked_interval,
        current_user.id,
        payload.start_at,
        payload.end_at,
        payload.reason,
    )
    return BlockedIntervalOut.model_validate(interval)


@router.delete("/blocked-intervals/{interval_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked_interval(
    interval_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: UserPrincipal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> Response:
    await asyncio.to_thread(schedule_service.delete_blocked_interval, current_user.id, interval_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
