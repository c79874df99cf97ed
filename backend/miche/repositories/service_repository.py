# backend/miche/repositories/service_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.service import Service
from .base_repository import BaseRepository


class ServiceRepository(BaseRepository[Service]):
    """Catalog access, including the processor price reference on each service."""

    def __init__(self, db: Session):
        super().__init__(db, Service)

    def get_active(self, service_id: str) -> Optional[Service]:
        return self.find_one_by(id=service_id, is_active=True)

    def set_price_reference(
        self, service_id: str, *, price_id: str, product_id: Optional[str]
    ) -> Optional[Service]:
        fields = {"external_price_id": price_id}
        if product_id:
            fields["external_product_id"] = product_id
        return self.update(service_id, **fields)
