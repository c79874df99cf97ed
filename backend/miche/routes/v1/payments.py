# backend/miche/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    POST /connect/onboard - Create (or resume) the professional's connected account onboarding
    GET /connect/status - Onboarding status refreshed from the processor
    POST /webhooks/stripe - Signed processor events (no bearer auth)
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ...api.dependencies import (
    UserPrincipal,
    get_current_principal,
    get_onboarding_service,
    get_webhook_service,
)
from ...schemas.payments import (
    OnboardingLinkResponse,
    OnboardingStartRequest,
    OnboardingStatusResponse,
    WebhookAck,
)
from ...services.onboarding_service import OnboardingService
from ...services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


@router.post("/connect/onboard", response_model=OnboardingLinkResponse)
async def start_onboarding(
    payload: Optional[OnboardingStartRequest] = None,
    current_user: UserPrincipal = Depends(get_current_principal),
    onboarding_service: OnboardingService = Depends(get_onboarding_service),
) -> OnboardingLinkResponse:
    email = (payload.email if payload else None) or current_user.email
    link = await asyncio.to_thread(onboarding_service.start_onboarding, current_user.id, email)
    return OnboardingLinkResponse.model_validate(link)


@router.get("/connect/status", response_model=OnboardingStatusResponse)
async def get_onboarding_status(
    current_user: UserPrincipal = Depends(get_current_principal),
    onboarding_service: OnboardingService = Depends(get_onboarding_service),
) -> OnboardingStatusResponse:
    account = await asyncio.to_thread(onboarding_service.get_onboarding_status, current_user.id)
    return OnboardingStatusResponse.model_validate(account)


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> WebhookAck:
    """
    Receive processor events.

    The signature is verified before anything is parsed; a bad signature is a
    400 so the processor does not keep retrying a forged request.
    """
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")
    payload = await request.body()
    try:
        event = webhook_service.verify_and_parse(payload, stripe_signature)
    except ValueError as exc:
        logger.warning("Rejected webhook payload: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature"
        ) from exc

    result = await asyncio.to_thread(webhook_service.handle_event, event)
    return WebhookAck(
        received=True,
        handled=bool(result.get("handled")),
        event_type=result.get("event_type"),
    )
