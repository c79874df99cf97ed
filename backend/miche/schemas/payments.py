# backend/miche/schemas/payments.py
from typing import Any, Optional

from pydantic import Field, field_validator

from .base import StandardizedModel, StrictModel


class OnboardingStartRequest(StrictModel):
    email: Optional[str] = Field(default=None, max_length=255)


class OnboardingLinkResponse(StandardizedModel):
    url: str
    external_account_id: str


class OnboardingStatusResponse(StandardizedModel):
    external_account_id: Optional[str] = None
    onboarding_status: str = "not_started"
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False

    @field_validator("onboarding_status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        # Unsaved account rows carry None until their column defaults are applied
        return "not_started" if value is None else value

    @field_validator("charges_enabled", "payouts_enabled", "details_submitted", mode="before")
    @classmethod
    def _default_flag(cls, value: Any) -> Any:
        return False if value is None else value


class WebhookAck(StandardizedModel):
    received: bool = True
    handled: bool = False
    event_type: Optional[str] = None
