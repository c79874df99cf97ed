# backend/miche/services/__init__.py
"""
Service layer for Miche Mobile.

Services hold the business rules of the booking and payment flow. They never
keep a session; every unit of work goes through the storage gateway.
"""

from .availability_service import AvailabilityService
from .base import BaseService
from .catalog_service import CatalogService
from .checkout_service import CheckoutHandle, CheckoutService
from .notification_service import NotificationDispatcher
from .onboarding_service import OnboardingLink, OnboardingService
from .price_resolver import PriceResolver
from .reservation_service import ReservationService
from .schedule_service import ScheduleService, WorkingHoursEntry
from .settlement_service import SettlementService, SweepResult
from .webhook_service import WebhookService

__all__ = [
    "AvailabilityService",
    "BaseService",
    "CatalogService",
    "CheckoutHandle",
    "CheckoutService",
    "NotificationDispatcher",
    "OnboardingLink",
    "OnboardingService",
    "PriceResolver",
    "ReservationService",
    "ScheduleService",
    "SettlementService",
    "SweepResult",
    "WebhookService",
    "WorkingHoursEntry",
]
