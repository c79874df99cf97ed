# backend/miche/integrations/payment_processor.py
"""
Payment processor integration (Stripe).

A thin wrapper over the stripe SDK for the calls the booking core needs:
products and prices, hosted Checkout Sessions with destination charges,
Express connected accounts and onboarding links, and webhook signature
verification. Every SDK error leaves this module as an
ExternalProcessorException so services never import stripe themselves.

Results are returned as small frozen dataclasses rather than StripeObjects,
which keeps services and tests independent of the SDK's object model.
"""

from dataclasses import dataclass, field
from functools import wraps
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, TypeVar, cast

import stripe

from ..core.config import settings
from ..core.exceptions import ExternalProcessorException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ProcessorPrice:
    id: str
    product_id: Optional[str]
    unit_amount: Optional[int]
    currency: str
    active: bool


@dataclass(frozen=True)
class ProcessorCheckoutSession:
    id: str
    url: Optional[str]
    status: Optional[str]
    payment_status: Optional[str]
    payment_intent_id: Optional[str] = None
    amount_total: Optional[int] = None
    client_reference_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessorAccount:
    id: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool


class PaymentProcessor(Protocol):
    """Operations the booking core consumes from the payment processor."""

    def retrieve_price(self, price_id: str) -> ProcessorPrice:
        ...

    def create_product_with_price(
        self,
        *,
        name: str,
        description: Optional[str],
        unit_amount: int,
        currency: str,
        metadata: Mapping[str, str],
    ) -> ProcessorPrice:
        ...

    def create_price(self, *, product_id: str, unit_amount: int, currency: str) -> ProcessorPrice:
        ...

    def deactivate_price(self, price_id: str) -> None:
        ...

    def update_product(self, product_id: str, *, name: str, description: Optional[str]) -> None:
        ...

    def create_checkout_session(self, params: Dict[str, Any]) -> ProcessorCheckoutSession:
        ...

    def retrieve_checkout_session(self, session_id: str) -> ProcessorCheckoutSession:
        ...

    def expire_checkout_session(self, session_id: str) -> ProcessorCheckoutSession:
        ...

    def create_connected_account(
        self, *, email: Optional[str], metadata: Mapping[str, str]
    ) -> ProcessorAccount:
        ...

    def retrieve_connected_account(self, account_id: str) -> ProcessorAccount:
        ...

    def create_account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> str:
        ...

    def construct_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        ...


def _processor_call(call: str) -> Callable[[F], F]:
    """Normalise stripe SDK errors raised by ``call`` into ExternalProcessorException."""

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except stripe.StripeError as exc:
                prometheus_metrics.record_processor_error(call)
                logger.error("Stripe %s failed: %s", call, exc)
                raise ExternalProcessorException(
                    details={
                        "call": call,
                        "processor_code": getattr(exc, "code", None),
                        "http_status": getattr(exc, "http_status", None),
                    }
                ) from exc

        return cast(F, wrapper)

    return decorator


def _as_mapping(obj: Any) -> Mapping[str, Any]:
    if isinstance(obj, Mapping):
        return obj
    return cast(Mapping[str, Any], obj.to_dict())


def _price(raw: Any) -> ProcessorPrice:
    obj = _as_mapping(raw)
    product = obj.get("product")
    return ProcessorPrice(
        id=obj["id"],
        product_id=product if isinstance(product, str) or product is None else product["id"],
        unit_amount=obj.get("unit_amount"),
        currency=obj.get("currency") or settings.stripe_currency,
        active=bool(obj.get("active", True)),
    )


def _session(raw: Any) -> ProcessorCheckoutSession:
    obj = _as_mapping(raw)
    intent = obj.get("payment_intent")
    metadata = obj.get("metadata") or {}
    return ProcessorCheckoutSession(
        id=obj["id"],
        url=obj.get("url"),
        status=obj.get("status"),
        payment_status=obj.get("payment_status"),
        payment_intent_id=intent if isinstance(intent, str) or intent is None else intent["id"],
        amount_total=obj.get("amount_total"),
        client_reference_id=obj.get("client_reference_id"),
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
    )


def _account(raw: Any) -> ProcessorAccount:
    obj = _as_mapping(raw)
    return ProcessorAccount(
        id=obj["id"],
        charges_enabled=bool(obj.get("charges_enabled")),
        payouts_enabled=bool(obj.get("payouts_enabled")),
        details_submitted=bool(obj.get("details_submitted")),
    )


class StripePaymentProcessor:
    """PaymentProcessor backed by the stripe SDK."""

    def __init__(self) -> None:
        if not settings.stripe_configured:
            raise ExternalProcessorException(
                "Online payments are not configured on this server.",
                code="PROCESSOR_NOT_CONFIGURED",
            )
        assert settings.stripe_secret_key is not None
        stripe.api_key = settings.stripe_secret_key.get_secret_value()
        # Bound every call so a slow processor never pins a worker thread
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.stripe_timeout_seconds
        )
        stripe.max_network_retries = settings.stripe_max_network_retries

    @_processor_call("retrieve_price")
    def retrieve_price(self, price_id: str) -> ProcessorPrice:
        return _price(stripe.Price.retrieve(price_id))

    @_processor_call("create_product")
    def create_product_with_price(
        self,
        *,
        name: str,
        description: Optional[str],
        unit_amount: int,
        currency: str,
        metadata: Mapping[str, str],
    ) -> ProcessorPrice:
        product_params: Dict[str, Any] = {"name": name, "metadata": dict(metadata)}
        if description:
            product_params["description"] = description
        product = stripe.Product.create(**product_params)
        price = stripe.Price.create(
            product=product["id"],
            unit_amount=unit_amount,
            currency=currency,
            metadata=dict(metadata),
        )
        logger.info("Created Stripe product %s with price %s", product["id"], price["id"])
        return _price(price)

    @_processor_call("create_price")
    def create_price(self, *, product_id: str, unit_amount: int, currency: str) -> ProcessorPrice:
        return _price(
            stripe.Price.create(product=product_id, unit_amount=unit_amount, currency=currency)
        )

    @_processor_call("deactivate_price")
    def deactivate_price(self, price_id: str) -> None:
        stripe.Price.modify(price_id, active=False)

    @_processor_call("update_product")
    def update_product(self, product_id: str, *, name: str, description: Optional[str]) -> None:
        params: Dict[str, Any] = {"name": name}
        if description is not None:
            params["description"] = description
        stripe.Product.modify(product_id, **params)

    @_processor_call("create_checkout_session")
    def create_checkout_session(self, params: Dict[str, Any]) -> ProcessorCheckoutSession:
        return _session(stripe.checkout.Session.create(**params))

    @_processor_call("retrieve_checkout_session")
    def retrieve_checkout_session(self, session_id: str) -> ProcessorCheckoutSession:
        return _session(stripe.checkout.Session.retrieve(session_id))

    @_processor_call("expire_checkout_session")
    def expire_checkout_session(self, session_id: str) -> ProcessorCheckoutSession:
        return _session(stripe.checkout.Session.expire(session_id))

    @_processor_call("create_account")
    def create_connected_account(
        self, *, email: Optional[str], metadata: Mapping[str, str]
    ) -> ProcessorAccount:
        params: Dict[str, Any] = {
            "type": "express",
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "metadata": dict(metadata),
        }
        if email:
            params["email"] = email
        return _account(stripe.Account.create(**params))

    @_processor_call("retrieve_account")
    def retrieve_connected_account(self, account_id: str) -> ProcessorAccount:
        return _account(stripe.Account.retrieve(account_id))

    @_processor_call("create_account_link")
    def create_account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> str:
        link = stripe.AccountLink.create(
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return str(link["url"])

    def construct_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """Verify the signature and parse the event. Raises ValueError on a bad payload or signature."""
        if not settings.stripe_webhook_secret:
            raise ExternalProcessorException(
                "Webhook secret not configured", code="WEBHOOK_NOT_CONFIGURED"
            )
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, settings.stripe_webhook_secret.get_secret_value()
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Invalid webhook signature")
            raise ValueError("invalid signature") from exc
        return dict(_as_mapping(event))


_processor: Optional[StripePaymentProcessor] = None


def get_payment_processor() -> PaymentProcessor:
    global _processor
    if _processor is None:
        _processor = StripePaymentProcessor()
    return _processor
