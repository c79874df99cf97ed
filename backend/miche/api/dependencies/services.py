# backend/miche/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Tests override
``get_storage`` and ``get_processor`` to swap in SQLite and a fake processor.
"""

from fastapi import Depends

from ...database.gateway import StorageGateway, get_storage_gateway
from ...integrations.payment_processor import PaymentProcessor, get_payment_processor
from ...services.availability_service import AvailabilityService
from ...services.catalog_service import CatalogService
from ...services.checkout_service import CheckoutService
from ...services.onboarding_service import OnboardingService
from ...services.reservation_service import ReservationService
from ...services.schedule_service import ScheduleService
from ...services.settlement_service import SettlementService
from ...services.webhook_service import WebhookService


def get_storage() -> StorageGateway:
    return get_storage_gateway()


def get_processor() -> PaymentProcessor:
    return get_payment_processor()


def get_availability_service(
    storage: StorageGateway = Depends(get_storage),
) -> AvailabilityService:
    return AvailabilityService(storage)


def get_reservation_service(
    storage: StorageGateway = Depends(get_storage),
) -> ReservationService:
    return ReservationService(storage)


def get_settlement_service(
    storage: StorageGateway = Depends(get_storage),
    processor: PaymentProcessor = Depends(get_processor),
) -> SettlementService:
    return SettlementService(storage, processor)


def get_checkout_service(
    storage: StorageGateway = Depends(get_storage),
    processor: PaymentProcessor = Depends(get_processor),
    settlement: SettlementService = Depends(get_settlement_service),
) -> CheckoutService:
    return CheckoutService(storage, processor, settlement=settlement)


def get_schedule_service(storage: StorageGateway = Depends(get_storage)) -> ScheduleService:
    return ScheduleService(storage)


def get_catalog_service(
    storage: StorageGateway = Depends(get_storage),
    processor: PaymentProcessor = Depends(get_processor),
) -> CatalogService:
    return CatalogService(storage, processor)


def get_onboarding_service(
    storage: StorageGateway = Depends(get_storage),
    processor: PaymentProcessor = Depends(get_processor),
) -> OnboardingService:
    return OnboardingService(storage, processor)


def get_webhook_service(
    storage: StorageGateway = Depends(get_storage),
    processor: PaymentProcessor = Depends(get_processor),
) -> WebhookService:
    return WebhookService(storage, processor)
