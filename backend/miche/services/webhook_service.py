# backend/miche/services/webhook_service.py
"""
Processor webhook handling.

Events are verified by the processor integration before they reach this
service. Checkout events go through the same idempotent settlement path as
the client's return redirect, so whichever arrives first wins and the other
is a no-op.
"""

from typing import Any, Dict, Mapping, Optional

from ..integrations.payment_processor import (
    PaymentProcessor,
    ProcessorAccount,
    ProcessorCheckoutSession,
)
from .base import BaseService
from .notification_service import NotificationDispatcher
from .onboarding_service import OnboardingService
from .settlement_service import SettlementService

CHECKOUT_EVENTS = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
    "checkout.session.async_payment_failed",
    "checkout.session.expired",
)


def _session_from_event(obj: Mapping[str, Any]) -> ProcessorCheckoutSession:
    intent = obj.get("payment_intent")
    return ProcessorCheckoutSession(
        id=obj["id"],
        url=obj.get("url"),
        status=obj.get("status"),
        payment_status=obj.get("payment_status"),
        payment_intent_id=intent if isinstance(intent, str) or intent is None else intent.get("id"),
        amount_total=obj.get("amount_total"),
        client_reference_id=obj.get("client_reference_id"),
        metadata={str(k): str(v) for k, v in (obj.get("metadata") or {}).items()},
    )


class WebhookService(BaseService):
    def __init__(
        self,
        storage,
        processor: PaymentProcessor,
        notifier: Optional[NotificationDispatcher] = None,
    ):
        super().__init__(storage)
        self.processor = processor
        self.settlement = SettlementService(storage, processor, notifier=notifier)
        self.onboarding = OnboardingService(storage, processor)

    def verify_and_parse(self, payload: bytes, signature: str) -> Dict[str, Any]:
        return self.processor.construct_webhook_event(payload, signature)

    @BaseService.measure_operation("handle_webhook_event")
    def handle_event(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        event_type = str(event.get("type", ""))
        obj = (event.get("data") or {}).get("object") or {}
        self.logger.info("Processing webhook %s (%s)", event.get("id"), event_type)

        if event_type in CHECKOUT_EVENTS or event_type == "account.updated":
            if not obj.get("id"):
                self.logger.warning(
                    "Webhook %s (%s) has no object id; ignoring", event.get("id"), event_type
                )
                return {"handled": False, "event_type": event_type}

        if event_type in CHECKOUT_EVENTS:
            booking = self.settlement.settle_from_session(_session_from_event(obj))
            return {
                "handled": booking is not None,
                "event_type": event_type,
                "booking_id": booking.id if booking is not None else None,
                "status": booking.status if booking is not None else None,
            }

        if event_type == "account.updated":
            account = self.onboarding.sync_account(
                ProcessorAccount(
                    id=obj["id"],
                    charges_enabled=bool(obj.get("charges_enabled")),
                    payouts_enabled=bool(obj.get("payouts_enabled")),
                    details_submitted=bool(obj.get("details_submitted")),
                )
            )
            return {"handled": account is not None, "event_type": event_type}

        self.logger.debug("Ignoring webhook type %s", event_type)
        return {"handled": False, "event_type": event_type}
