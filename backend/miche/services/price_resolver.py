# backend/miche/services/price_resolver.py
"""
Price/Product Resolver for Miche Mobile.

Every bookable service needs a payable price object at the processor. Prices
are created lazily on first checkout and treated as immutable afterwards: an
edit creates a new price, swaps the service's reference and deactivates
(never deletes) the old one so historical bookings can still be audited.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AuthorizationDeniedException,
    ExternalProcessorException,
    PriceResolutionFailedException,
    RepositoryException,
    ServiceNotFoundException,
)
from ..core.money import to_minor_units
from ..core.ulid_helper import require_ulid
from ..integrations.payment_processor import PaymentProcessor, ProcessorPrice
from ..repositories.factory import RepositoryFactory
from .base import BaseService


@dataclass(frozen=True)
class _ServiceView:
    id: str
    professional_id: str
    name: str
    description: Optional[str]
    price: Decimal
    external_price_id: Optional[str]
    external_product_id: Optional[str]

    @property
    def unit_amount(self) -> int:
        return to_minor_units(self.price)


class PriceResolver(BaseService):
    def __init__(self, storage, processor: PaymentProcessor):
        super().__init__(storage)
        self.processor = processor

    def _load(self, service_id: str) -> _ServiceView:
        def _read(db: Session) -> _ServiceView:
            service = RepositoryFactory.create_service_repository(db).get_by_id(service_id)
            if service is None:
                raise ServiceNotFoundException(service_id)
            return _ServiceView(
                id=service.id,
                professional_id=service.professional_id,
                name=service.name,
                description=service.description,
                price=Decimal(service.price),
                external_price_id=service.external_price_id,
                external_product_id=service.external_product_id,
            )

        return self.elevated("price.load_service", _read)

    def _current_price(self, service: _ServiceView) -> Optional[ProcessorPrice]:
        """The cached price if it still exists; None when it is missing or unreachable."""
        if not service.external_price_id:
            return None
        try:
            return self.processor.retrieve_price(service.external_price_id)
        except ExternalProcessorException as exc:
            self.logger.warning(
                "Stored price %s for service %s could not be retrieved (%s); creating a new one",
                service.external_price_id,
                service.id,
                exc.details.get("processor_code") or exc.message,
            )
            return None

    def _create_price(self, service: _ServiceView, product_id: Optional[str]) -> ProcessorPrice:
        try:
            if product_id:
                return self.processor.create_price(
                    product_id=product_id,
                    unit_amount=service.unit_amount,
                    currency=settings.stripe_currency,
                )
            return self.processor.create_product_with_price(
                name=service.name,
                description=service.description,
                unit_amount=service.unit_amount,
                currency=settings.stripe_currency,
                metadata={"service_id": service.id, "professional_id": service.professional_id},
            )
        except ExternalProcessorException as exc:
            raise PriceResolutionFailedException(service.id, reason="create_failed") from exc

    def _deactivate_quietly(self, price_id: str) -> None:
        try:
            self.processor.deactivate_price(price_id)
        except ExternalProcessorException as exc:
            self.logger.warning("Could not deactivate price %s: %s", price_id, exc.message)

    def _persist(
        self, service: _ServiceView, price: ProcessorPrice, principal_id: Optional[str]
    ) -> None:
        def _write(db: Session) -> None:
            RepositoryFactory.create_service_repository(db).set_price_reference(
                service.id, price_id=price.id, product_id=price.product_id
            )

        try:
            if principal_id:
                self.as_caller("price.persist_reference", principal_id, _write)
            else:
                self.elevated("price.persist_reference", _write)
        except AuthorizationDeniedException:
            self._deactivate_quietly(price.id)
            raise
        except RepositoryException as exc:
            self._deactivate_quietly(price.id)
            raise PriceResolutionFailedException(service.id, reason="persist_failed") from exc

    def resolve_external_price(self, service_id: str, principal_id: Optional[str] = None) -> str:
        """Return a usable processor price id for the service, creating one if needed."""
        return self.resolve_price(service_id, principal_id).id

    @BaseService.measure_operation("resolve_price")
    def resolve_price(self, service_id: str, principal_id: Optional[str] = None) -> ProcessorPrice:
        """
        Resolve the service's processor price.

        A stale cached reference (missing, inactive, or for a different amount)
        is replaced rather than failing the caller.
        """
        require_ulid(service_id, "service_id")
        service = self._load(service_id)
        current = self._current_price(service)

        if current is not None and current.active and current.unit_amount == service.unit_amount:
            return current

        product_id = current.product_id if current is not None else None
        new_price = self._create_price(service, product_id)
        self._persist(service, new_price, principal_id)
        if current is not None and current.active:
            self._deactivate_quietly(current.id)
        self.logger.info(
            "Resolved price %s (%d minor units) for service %s",
            new_price.id,
            service.unit_amount,
            service.id,
        )
        return new_price

    @BaseService.measure_operation("replace_external_price")
    def replace_external_price(
        self, service_id: str, principal_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Swap in a new price after a price edit and deactivate the previous one.

        Returns None when the service never had a price; it will be created
        lazily on the next checkout.
        """
        service = self._load(service_id)
        if not service.external_price_id:
            return None
        new_price = self._create_price(service, service.external_product_id)
        self._persist(service, new_price, principal_id)
        self._deactivate_quietly(service.external_price_id)
        self.logger.info(
            "Replaced price %s with %s for service %s",
            service.external_price_id,
            new_price.id,
            service.id,
        )
        return new_price.id
