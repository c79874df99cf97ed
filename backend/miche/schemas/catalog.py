# backend/miche/schemas/catalog.py
from typing import Optional

from pydantic import Field

from ..core.constants import DEFAULT_SERVICE_DURATION, MAX_SERVICE_DURATION, MIN_SERVICE_DURATION
from .base import Money, StandardizedModel, StrictModel


class ServiceCreate(StrictModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Money
    duration_minutes: int = Field(
        default=DEFAULT_SERVICE_DURATION, ge=MIN_SERVICE_DURATION, le=MAX_SERVICE_DURATION
    )


class ServiceUpdate(StrictModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[Money] = None
    duration_minutes: Optional[int] = Field(
        default=None, ge=MIN_SERVICE_DURATION, le=MAX_SERVICE_DURATION
    )
    is_active: Optional[bool] = None


class ServiceOut(StandardizedModel):
    id: str
    professional_id: str
    name: str
    description: Optional[str] = None
    price: Money
    duration_minutes: int
    is_active: bool
    external_price_id: Optional[str] = None
