# backend/miche/services/checkout_service.py
"""
Checkout Orchestrator for Miche Mobile.

Opens a hosted Checkout Session for a pending booking as a destination
charge: the client pays once, the platform keeps ``platform_fee_percent``
of the total (rounded down, in minor units) and the remainder is transferred
to the professional's connected account.

A retry reuses the session already on the booking while it is open, and only
opens a new one once that session has expired unpaid. A retry that finds the
session already paid settles the booking instead of charging again. Every
other failure leaves the booking pending, so the client can retry payment
without going back through availability.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import CheckoutSessionStatus
from ..core.exceptions import (
    BookingNotFoundException,
    ExternalProcessorException,
    InvalidBookingStateException,
    NotPayableException,
    PaymentAlreadyCompletedException,
)
from ..core.money import split_payment, to_minor_units
from ..core.ulid_helper import require_ulid
from ..integrations.payment_processor import PaymentProcessor, ProcessorCheckoutSession
from ..models.booking import Booking, BookingStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .price_resolver import PriceResolver
from .settlement_service import SettlementService, outcome_for_session

_RESOURCE_MISSING = "resource_missing"


@dataclass(frozen=True)
class CheckoutHandle:
    url: str
    external_session_id: str
    booking_id: str


@dataclass(frozen=True)
class _CheckoutContext:
    booking_id: str
    service_id: str
    service_name: str
    professional_id: str
    client_id: str
    total_amount: Decimal
    destination_account: str
    existing_session_id: Optional[str]


def success_url(booking_id: str) -> str:
    # {CHECKOUT_SESSION_ID} is substituted by the processor on redirect
    return (
        f"{settings.frontend_url}/client-dashboard?booking_success=true"
        f"&session_id={{CHECKOUT_SESSION_ID}}&booking_id={booking_id}"
    )


def cancel_url(booking_id: str) -> str:
    return (
        f"{settings.frontend_url}/client-dashboard?booking_cancelled=true"
        f"&session_id={{CHECKOUT_SESSION_ID}}&booking_id={booking_id}"
    )


class CheckoutService(BaseService):
    def __init__(
        self,
        storage,
        processor: PaymentProcessor,
        price_resolver: Optional[PriceResolver] = None,
        settlement: Optional[SettlementService] = None,
    ):
        super().__init__(storage)
        self.processor = processor
        self.price_resolver = price_resolver or PriceResolver(storage, processor)
        self.settlement = settlement or SettlementService(storage, processor)

    def _load_context(self, booking_id: str, client_id: str) -> _CheckoutContext:
        def _read(db: Session) -> _CheckoutContext:
            booking = RepositoryFactory.create_booking_repository(db).get_by_id(booking_id)
            if booking is None or booking.client_id != client_id:
                raise BookingNotFoundException(booking_id)
            if booking.status != BookingStatus.PENDING.value:
                raise InvalidBookingStateException(
                    booking_id, booking.status, BookingStatus.PENDING.value
                )
            account = RepositoryFactory.create_account_repository(db).get_external_account(
                booking.professional_id
            )
            if account is None or not account.is_payable:
                raise NotPayableException(booking.professional_id)
            return _CheckoutContext(
                booking_id=booking.id,
                service_id=booking.service_id,
                service_name=booking.service_name,
                professional_id=booking.professional_id,
                client_id=booking.client_id,
                total_amount=Decimal(booking.total_amount),
                destination_account=account.external_account_id,
                existing_session_id=booking.checkout_session_id,
            )

        return self.elevated("checkout.load", _read)

    def _line_item(
        self, ctx: _CheckoutContext, price_id: str, price_amount: Optional[int]
    ) -> Dict[str, Any]:
        booked_amount = to_minor_units(ctx.total_amount)
        if price_amount is None or price_amount == booked_amount:
            return {"price": price_id, "quantity": 1}
        # Service price changed after reservation; charge the snapshotted amount
        return {
            "price_data": {
                "currency": settings.stripe_currency,
                "unit_amount": booked_amount,
                "product_data": {"name": ctx.service_name},
            },
            "quantity": 1,
        }

    def build_session_params(
        self, ctx: _CheckoutContext, price_id: str, price_amount: Optional[int] = None
    ) -> Dict[str, Any]:
        split = split_payment(ctx.total_amount, settings.platform_fee_percent)
        metadata = {
            "booking_id": ctx.booking_id,
            "service_id": ctx.service_id,
            "professional_id": ctx.professional_id,
            "client_id": ctx.client_id,
        }
        return {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [self._line_item(ctx, price_id, price_amount)],
            "payment_intent_data": {
                "on_behalf_of": ctx.destination_account,
                "application_fee_amount": split.platform_fee_minor,
                "transfer_data": {"destination": ctx.destination_account},
                "metadata": metadata,
            },
            "client_reference_id": ctx.booking_id,
            "metadata": metadata,
            "success_url": success_url(ctx.booking_id),
            "cancel_url": cancel_url(ctx.booking_id),
        }

    def _existing_session(self, session_id: str) -> Optional[ProcessorCheckoutSession]:
        """The booking's recorded session, or None when the processor no longer has it."""
        try:
            return self.processor.retrieve_checkout_session(session_id)
        except ExternalProcessorException as exc:
            if exc.details.get("processor_code") == _RESOURCE_MISSING:
                return None
            # State unknown; a second session must not be opened
            raise

    def _resume(
        self, ctx: _CheckoutContext, existing: ProcessorCheckoutSession
    ) -> Optional[CheckoutHandle]:
        """
        Decide what a checkout retry does with the session already on the booking.

        An open session is handed back as is. A paid or finished session is
        settled and the retry refused. Only an expired, unpaid session lets a
        new one be opened (returns None).
        """
        if existing.status == CheckoutSessionStatus.OPEN.value:
            if not existing.url:
                raise ExternalProcessorException(
                    details={"call": "retrieve_checkout_session", "reason": "missing_url"}
                )
            return CheckoutHandle(existing.url, existing.id, ctx.booking_id)

        outcome = outcome_for_session(existing)
        if outcome in (None, BookingStatus.CANCELLED):
            return None

        self.logger.info(
            "Checkout retried for booking %s but session %s already finished (%s/%s)",
            ctx.booking_id,
            existing.id,
            existing.status,
            existing.payment_status,
        )
        booking = self.settlement.settle_from_session(existing)
        current_status = booking.status if booking is not None else outcome.value
        if outcome == BookingStatus.CONFIRMED:
            raise PaymentAlreadyCompletedException(ctx.booking_id, current_status)
        raise InvalidBookingStateException(
            ctx.booking_id, current_status, BookingStatus.PENDING.value
        )

    @BaseService.measure_operation("start_checkout")
    def start_checkout(self, booking_id: str, client_id: str) -> CheckoutHandle:
        """Open a checkout session for a pending booking and record its id on the booking."""
        require_ulid(booking_id, "booking_id")
        ctx = self._load_context(booking_id, client_id)

        if ctx.existing_session_id:
            existing = self._existing_session(ctx.existing_session_id)
            if existing is not None:
                handle = self._resume(ctx, existing)
                if handle is not None:
                    return handle

        price = self.price_resolver.resolve_price(ctx.service_id, principal_id=client_id)
        params = self.build_session_params(ctx, price.id, price.unit_amount)

        session = self.processor.create_checkout_session(params)
        if not session.url:
            raise ExternalProcessorException(
                details={"call": "create_checkout_session", "reason": "missing_url"}
            )

        def _record(db: Session) -> Booking:
            bookings = RepositoryFactory.create_booking_repository(db)
            booking = bookings.get_by_id(ctx.booking_id)
            if booking is None:
                raise BookingNotFoundException(ctx.booking_id)
            booking.checkout_session_id = session.id
            booking.payment_status = session.payment_status
            bookings.flush()
            return booking

        self.as_caller("checkout.record_session", client_id, _record)
        self.logger.info(
            "Checkout session %s opened for booking %s (fee=%d minor units, destination=%s)",
            session.id,
            ctx.booking_id,
            params["payment_intent_data"]["application_fee_amount"],
            ctx.destination_account,
        )
        return CheckoutHandle(
            url=session.url, external_session_id=session.id, booking_id=ctx.booking_id
        )
