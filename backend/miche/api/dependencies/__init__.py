# backend/miche/api/dependencies/__init__.py
"""FastAPI dependencies shared by the v1 routers."""

from ...auth import UserPrincipal, get_current_principal
from .services import (
    get_availability_service,
    get_catalog_service,
    get_checkout_service,
    get_onboarding_service,
    get_processor,
    get_reservation_service,
    get_schedule_service,
    get_settlement_service,
    get_storage,
    get_webhook_service,
)

__all__ = [
    "UserPrincipal",
    "get_availability_service",
    "get_catalog_service",
    "get_checkout_service",
    "get_current_principal",
    "get_onboarding_service",
    "get_processor",
    "get_reservation_service",
    "get_schedule_service",
    "get_settlement_service",
    "get_storage",
    "get_webhook_service",
]
