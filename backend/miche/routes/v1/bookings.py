# backend/miche/routes/v1/bookings.py
"""
Client booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to the reservation, checkout and settlement services.

Endpoints:
    POST "" - Reserve a slot (creates a pending booking)
    GET /{booking_id} - Booking details
    POST /{booking_id}/checkout - Start (or resume) hosted checkout
    POST /{booking_id}/confirm - Settle the booking from its checkout session
    POST /{booking_id}/cancel - Release a pending booking
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...api.dependencies import (
    UserPrincipal,
    get_checkout_service,
    get_current_principal,
    get_reservation_service,
    get_settlement_service,
)
from ...core.exceptions import DomainException
from ...schemas.booking import (
    BookingConfirmRequest,
    BookingCreate,
    BookingResponse,
    CheckoutResponse,
)
from ...services.checkout_service import CheckoutService
from ...services.reservation_service import ReservationService
from ...services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def reserve_booking(
    booking_data: BookingCreate,
    current_user: UserPrincipal = Depends(get_current_principal),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    """
    Reserve a slot for the authenticated client.

    The booking is created pending; the slot is held until checkout settles
    it or the expiry sweep releases it.
    """
    try:
        booking = await asyncio.to_thread(
            reservation_service.reserve,
            current_user.id,
            booking_data.professional_id,
            booking_data.service_id,
            booking_data.start_at,
            location=booking_data.location,
            notes=booking_data.notes,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: UserPrincipal = Depends(get_current_principal),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            reservation_service.get_booking, booking_id, current_user.id
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/checkout", response_model=CheckoutResponse)
async def start_checkout(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: UserPrincipal = Depends(get_current_principal),
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Create the hosted checkout session for a pending booking and return its URL."""
    try:
        handle = await asyncio.to_thread(
            checkout_service.start_checkout, booking_id, current_user.id
        )
        return CheckoutResponse.model_validate(handle)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    payload: BookingConfirmRequest,
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: UserPrincipal = Depends(get_current_principal),
    settlement_service: SettlementService = Depends(get_settlement_service),
) -> BookingResponse:
    """
    Settle a booking after the client returns from checkout.

    Idempotent: calling it again (or racing the webhook) returns the booking
    in its settled state without recording revenue twice.
    """
    try:
        booking = await asyncio.to_thread(
            settlement_service.confirm_settlement,
            booking_id,
            payload.session_id,
            principal_id=current_user.id,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: UserPrincipal = Depends(get_current_principal),
    settlement_service: SettlementService = Depends(get_settlement_service),
) -> BookingResponse:
    """Release a pending booking when the client backs out of checkout."""
    try:
        booking = await asyncio.to_thread(
            settlement_service.cancel_checkout, booking_id, current_user.id
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
