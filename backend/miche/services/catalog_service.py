# backend/miche/services/catalog_service.py
"""
Service catalog management.

A price edit never touches the existing processor price: the price resolver
creates a replacement and deactivates the old one. Name and description
edits are pushed to the processor product on a best-effort basis; a failed
sync is logged and the edit still stands.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.constants import MAX_SERVICE_DURATION, MIN_SERVICE_DURATION
from ..core.exceptions import (
    ExternalProcessorException,
    ServiceNotFoundException,
    ValidationException,
)
from ..core.ulid_helper import require_ulid
from ..integrations.payment_processor import PaymentProcessor
from ..models.service import Service
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .price_resolver import PriceResolver
from .schedule_service import ScheduleService

_EDITABLE_FIELDS = ("name", "description", "price", "duration_minutes", "is_active")


def _clean_price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationException("price must be a number", code="INVALID_PRICE") from None
    if price <= 0:
        raise ValidationException("price must be greater than zero", code="INVALID_PRICE")
    return price


def _clean_duration(value: Any) -> int:
    if not isinstance(value, int) or not MIN_SERVICE_DURATION <= value <= MAX_SERVICE_DURATION:
        raise ValidationException(
            f"duration_minutes must be between {MIN_SERVICE_DURATION} and {MAX_SERVICE_DURATION}",
            code="INVALID_DURATION",
            details={"duration_minutes": value},
        )
    return value


class CatalogService(BaseService):
    def __init__(self, storage, processor: Optional[PaymentProcessor] = None):
        super().__init__(storage)
        self.processor = processor
        self._schedule = ScheduleService(storage)

    @BaseService.measure_operation("create_service")
    def create_service(
        self,
        user_id: str,
        *,
        name: str,
        price: Any,
        duration_minutes: int,
        description: Optional[str] = None,
    ) -> Service:
        if not name or not name.strip():
            raise ValidationException(
                "name is required", code="MISSING_FIELD", details={"field": "name"}
            )
        clean_price = _clean_price(price)
        clean_duration = _clean_duration(duration_minutes)
        professional = self._schedule.professional_for_user(user_id)

        def _write(db: Session) -> Service:
            return RepositoryFactory.create_service_repository(db).create(
                professional_id=professional.id,
                name=name.strip(),
                description=description,
                price=clean_price,
                duration_minutes=clean_duration,
            )

        service = self.as_caller("catalog.create_service", user_id, _write)
        self.logger.info("Created service %s for professional %s", service.id, professional.id)
        return service

    @BaseService.measure_operation("update_service")
    def update_service(self, user_id: str, service_id: str, **changes: Any) -> Service:
        require_ulid(service_id, "service_id")
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationException(
                "Unknown service fields", code="UNKNOWN_FIELDS", details={"fields": sorted(unknown)}
            )
        updates: Dict[str, Any] = {k: v for k, v in changes.items() if v is not None}
        if "price" in updates:
            updates["price"] = _clean_price(updates["price"])
        if "duration_minutes" in updates:
            updates["duration_minutes"] = _clean_duration(updates["duration_minutes"])
        if "name" in updates and not str(updates["name"]).strip():
            raise ValidationException("name cannot be empty", code="MISSING_FIELD")
        professional = self._schedule.professional_for_user(user_id)

        def _write(db: Session) -> tuple:
            repo = RepositoryFactory.create_service_repository(db)
            service = repo.get_by_id(service_id)
            if service is None or service.professional_id != professional.id:
                raise ServiceNotFoundException(service_id)
            previous_price = Decimal(service.price)
            repo.update(service_id, **updates)
            return service, previous_price

        service, previous_price = self.as_caller("catalog.update_service", user_id, _write)

        if self.processor is not None:
            if "price" in updates and updates["price"] != previous_price:
                new_price_id = PriceResolver(self.storage, self.processor).replace_external_price(
                    service_id, principal_id=user_id
                )
                if new_price_id is not None:
                    service.external_price_id = new_price_id
            if service.external_product_id and ({"name", "description"} & set(updates)):
                try:
                    self.processor.update_product(
                        service.external_product_id,
                        name=service.name,
                        description=service.description,
                    )
                except ExternalProcessorException as exc:
                    self.logger.warning(
                        "Product %s not synced after edit of service %s: %s",
                        service.external_product_id,
                        service_id,
                        exc.message,
                    )
        self.logger.info("Updated service %s fields=%s", service_id, sorted(updates))
        return service
