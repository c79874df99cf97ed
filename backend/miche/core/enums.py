# backend/miche/core/enums.py
"""
Core enums for the Miche Mobile booking backend.

Enumerations shared by models, schemas and services so that status strings
are defined exactly once.
"""

from enum import Enum


class Scope(str, Enum):
    """
    Storage access level used for a unit of work.

    CALLER runs under the requesting principal's row-level authorization.
    ELEVATED runs under the service-level credential and bypasses it.
    """

    CALLER = "caller"
    ELEVATED = "elevated"


class CheckoutSessionStatus(str, Enum):
    """Stripe Checkout Session lifecycle status."""

    OPEN = "open"
    COMPLETE = "complete"
    EXPIRED = "expired"


class CheckoutPaymentStatus(str, Enum):
    """Stripe Checkout Session payment status."""

    PAID = "paid"
    UNPAID = "unpaid"
    NO_PAYMENT_REQUIRED = "no_payment_required"


class OnboardingStatus(str, Enum):
    """Connected account onboarding state as tracked locally."""

    NOT_STARTED = "not_started"
    PENDING = "pending"
    ACTIVE = "active"
