# backend/miche/services/settlement_service.py
"""
Settlement Confirmer for Miche Mobile.

Moves a booking out of ``pending`` once the processor has the final word on
its checkout session:

    pending -> confirmed   session paid
    pending -> cancelled   session expired, or the client backed out
    pending -> failed      session complete but not paid

The transition, the ledger row and the professional's revenue increment are
one unit of work guarded by a conditional UPDATE (``WHERE status =
'pending'``). Whoever loses that race, a page refresh, a webhook delivered
twice, the expiry sweep, gets AlreadySettledException internally and simply
receives the booking as it now stands. Side effects are applied at most once.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import CheckoutPaymentStatus, CheckoutSessionStatus
from ..core.exceptions import (
    AlreadySettledException,
    BookingNotFoundException,
    ExternalProcessorException,
    InvalidBookingStateException,
    StorageAuthorizationError,
    ValidationException,
)
from ..core.money import split_payment
from ..core.timezone_utils import utcnow
from ..core.ulid_helper import require_ulid
from ..integrations.payment_processor import PaymentProcessor, ProcessorCheckoutSession
from ..models.booking import Booking, BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationDispatcher


@dataclass(frozen=True)
class SweepResult:
    examined: int
    confirmed: int
    cancelled: int
    skipped: int


def outcome_for_session(session: ProcessorCheckoutSession) -> Optional[BookingStatus]:
    """Target status for a checkout session, or None while the client can still pay."""
    if session.payment_status == CheckoutPaymentStatus.PAID.value:
        return BookingStatus.CONFIRMED
    if session.status == CheckoutSessionStatus.EXPIRED.value:
        return BookingStatus.CANCELLED
    if session.status == CheckoutSessionStatus.COMPLETE.value:
        return BookingStatus.FAILED
    return None


class SettlementService(BaseService):
    def __init__(
        self,
        storage,
        processor: PaymentProcessor,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(storage)
        self.processor = processor
        self.notifier = notifier or NotificationDispatcher()
        self._clock = clock

    # Reads

    def _get_booking(self, booking_id: str) -> Booking:
        def _read(db: Session) -> Booking:
            booking = RepositoryFactory.create_booking_repository(db).get_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id)
            return booking

        return self.elevated("settlement.load", _read)

    @staticmethod
    def _check_session_belongs(booking: Booking, session: ProcessorCheckoutSession) -> None:
        claimed = session.metadata.get("booking_id") or session.client_reference_id
        if claimed != booking.id:
            raise ValidationException(
                "This payment session does not belong to this booking.",
                code="SESSION_MISMATCH",
                details={"booking_id": booking.id, "session_id": session.id},
            )

    # Atomic transition

    def _finalize(
        self,
        booking: Booking,
        target: BookingStatus,
        session: Optional[ProcessorCheckoutSession],
        principal_id: Optional[str],
    ) -> Booking:
        now = self._clock()
        fields = {"updated_at": now}
        if session is not None:
            fields["checkout_session_id"] = session.id
            fields["payment_status"] = session.payment_status
            if session.payment_intent_id:
                fields["payment_intent_id"] = session.payment_intent_id
        if target == BookingStatus.CONFIRMED:
            fields["confirmed_at"] = now
        elif target == BookingStatus.CANCELLED:
            fields["cancelled_at"] = now
        elif target == BookingStatus.FAILED:
            fields["failed_at"] = now

        def _apply(db: Session) -> Booking:
            bookings = RepositoryFactory.create_booking_repository(db)
            changed = bookings.transition_from_pending(booking.id, target, **fields)
            current = bookings.get_by_id(booking.id)
            if changed == 0:
                if current is None or current.status == BookingStatus.PENDING.value:
                    # Row-level security filtered the UPDATE instead of raising
                    raise StorageAuthorizationError(f"booking {booking.id} not writable by caller")
                raise AlreadySettledException(booking.id, current.status)

            if target == BookingStatus.CONFIRMED:
                split = split_payment(booking.total_amount, settings.platform_fee_percent)
                RepositoryFactory.create_payment_repository(db).create(
                    booking_id=booking.id,
                    professional_id=booking.professional_id,
                    amount_minor=split.total_minor,
                    commission_minor=split.platform_fee_minor,
                    net_minor=split.payout_minor,
                    currency=settings.stripe_currency,
                    checkout_session_id=(
                        fields.get("checkout_session_id") or booking.checkout_session_id
                    ),
                    payment_intent_id=fields.get("payment_intent_id"),
                )
                RepositoryFactory.create_account_repository(db).add_revenue(
                    booking.professional_id, booking.total_amount
                )
            return current

        try:
            if principal_id:
                result = self.as_caller("settlement.apply", principal_id, _apply)
            else:
                result = self.elevated("settlement.apply", _apply)
        except AlreadySettledException as exc:
            self.logger.info(
                "Booking %s already settled (%s); returning current state",
                booking.id,
                exc.details.get("status"),
            )
            return self._get_booking(booking.id)

        prometheus_metrics.record_booking_transition(BookingStatus.PENDING.value, target.value)
        self.logger.info(
            "Booking %s transitioned pending -> %s (session=%s)",
            booking.id,
            target.value,
            fields.get("checkout_session_id"),
        )
        if target == BookingStatus.CONFIRMED:
            self.notifier.booking_confirmed(booking.id)
        return result

    # Public operations

    @BaseService.measure_operation("confirm_settlement")
    def confirm_settlement(
        self, booking_id: str, external_session_id: str, principal_id: Optional[str] = None
    ) -> Booking:
        """
        Settle a booking from its checkout session. Safe to call repeatedly.

        Raises ExternalProcessorException (booking stays pending) when the
        session cannot be read or the client has not paid yet.
        """
        require_ulid(booking_id, "booking_id")
        if not isinstance(external_session_id, str) or not external_session_id.strip():
            raise ValidationException(
                "session_id is required", code="MISSING_FIELD", details={"field": "session_id"}
            )

        booking = self._get_booking(booking_id)
        if principal_id and principal_id != booking.client_id:
            raise BookingNotFoundException(booking_id)
        if booking.checkout_session_id and booking.checkout_session_id != external_session_id:
            raise ValidationException(
                "This payment session does not belong to this booking.",
                code="SESSION_MISMATCH",
                details={"booking_id": booking_id, "session_id": external_session_id},
            )
        if not booking.is_pending:
            return booking

        session = self.processor.retrieve_checkout_session(external_session_id)
        self._check_session_belongs(booking, session)

        target = outcome_for_session(session)
        if target is None:
            raise ExternalProcessorException(
                "Your payment hasn't completed yet. Please finish checkout or try payment again.",
                code="PAYMENT_NOT_COMPLETED",
                details={
                    "booking_id": booking_id,
                    "session_status": session.status,
                    "payment_status": session.payment_status,
                },
            )
        return self._finalize(booking, target, session, principal_id)

    @BaseService.measure_operation("cancel_checkout")
    def cancel_checkout(self, booking_id: str, client_id: str) -> Booking:
        """Release a pending booking when the client backs out of checkout."""
        require_ulid(booking_id, "booking_id")
        booking = self._get_booking(booking_id)
        if booking.client_id != client_id:
            raise BookingNotFoundException(booking_id)
        if not booking.is_pending:
            if booking.status == BookingStatus.CANCELLED.value:
                return booking
            raise InvalidBookingStateException(
                booking_id, booking.status, BookingStatus.PENDING.value
            )

        session: Optional[ProcessorCheckoutSession] = None
        if booking.checkout_session_id:
            try:
                session = self.processor.expire_checkout_session(booking.checkout_session_id)
            except ExternalProcessorException:
                # Expire fails once the session is no longer open; its current state decides
                session = self.processor.retrieve_checkout_session(booking.checkout_session_id)
            if outcome_for_session(session) == BookingStatus.CONFIRMED:
                self.logger.info("Booking %s was paid before cancellation; confirming", booking_id)
                return self._finalize(booking, BookingStatus.CONFIRMED, session, client_id)

        return self._finalize(booking, BookingStatus.CANCELLED, session, client_id)

    @BaseService.measure_operation("settle_from_webhook")
    def settle_from_session(self, session: ProcessorCheckoutSession) -> Optional[Booking]:
        """Apply a checkout session pushed by the processor. Unknown bookings are ignored."""
        booking_id = session.metadata.get("booking_id") or session.client_reference_id
        if not booking_id:
            self.logger.info("Checkout session %s carries no booking id; ignoring", session.id)
            return None
        try:
            booking = self._get_booking(booking_id)
        except BookingNotFoundException:
            self.logger.warning(
                "Checkout session %s references unknown booking %s", session.id, booking_id
            )
            return None
        if booking.checkout_session_id and booking.checkout_session_id != session.id:
            self.logger.warning(
                "Ignoring session %s for booking %s (current session %s)",
                session.id,
                booking_id,
                booking.checkout_session_id,
            )
            return booking
        if not booking.is_pending:
            return booking
        target = outcome_for_session(session)
        if target is None:
            return booking
        return self._finalize(booking, target, session, None)

    @BaseService.measure_operation("sweep_expired_pending")
    def sweep_expired_pending(self) -> SweepResult:
        """
        Close out bookings left pending past the TTL.

        Paid sessions are confirmed (the client paid but never returned);
        everything else is cancelled so the slot is released.
        """
        cutoff = self._clock() - timedelta(minutes=settings.pending_booking_ttl_minutes)

        def _read(db: Session) -> List[Booking]:
            return RepositoryFactory.create_booking_repository(db).find_stale_pending(cutoff)

        stale = self.elevated("sweep.load", _read)
        confirmed = cancelled = skipped = 0
        for booking in stale:
            session: Optional[ProcessorCheckoutSession] = None
            if booking.checkout_session_id:
                try:
                    session = self.processor.retrieve_checkout_session(booking.checkout_session_id)
                except ExternalProcessorException:
                    skipped += 1
                    continue
                if session.status == CheckoutSessionStatus.OPEN.value:
                    try:
                        session = self.processor.expire_checkout_session(session.id)
                    except ExternalProcessorException:
                        self.logger.warning("Could not expire session %s during sweep", session.id)
                        skipped += 1
                        continue
                if outcome_for_session(session) == BookingStatus.CONFIRMED:
                    self._finalize(booking, BookingStatus.CONFIRMED, session, None)
                    confirmed += 1
                    continue
            self._finalize(booking, BookingStatus.CANCELLED, session, None)
            cancelled += 1

        result = SweepResult(len(stale), confirmed, cancelled, skipped)
        if stale:
            self.logger.info("Pending booking sweep: %s", result)
        return result
