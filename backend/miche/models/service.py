# backend/miche/models/service.py
"""Service catalog model: what a professional sells, and its processor price reference."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Service(Base):
    """
    A bookable service.

    ``external_price_id`` is null until the price resolver creates a price at
    the processor. Processor prices are immutable, so a price edit swaps this
    reference for a new one instead of updating it.
    """

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    professional_id = Column(
        String(26), ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    is_active = Column(Boolean, nullable=False, default=True)

    external_product_id = Column(String(255), nullable=True)
    external_price_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)

    professional = relationship("Professional", back_populates="services")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_service_price_non_negative"),
        CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<Service {self.id} '{self.name}' price={self.price} price_ref={self.external_price_id}>"
