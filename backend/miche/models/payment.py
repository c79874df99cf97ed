# backend/miche/models/payment.py
"""Settlement ledger: one row per confirmed booking."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentTransaction(Base):
    """
    Money movement for a settled booking, in minor units.

    ``booking_id`` is unique, which makes the ledger write idempotent: a
    second confirmation of the same booking can never add a second row.
    """

    __tablename__ = "payment_transactions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, unique=True)
    professional_id = Column(String(26), ForeignKey("professionals.id"), nullable=False, index=True)

    amount_minor = Column(Integer, nullable=False)
    commission_minor = Column(Integer, nullable=False)
    net_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")

    checkout_session_id = Column(String(255), nullable=False)
    payment_intent_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="completed")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    booking = relationship("Booking", back_populates="payment_transaction")

    __table_args__ = (
        CheckConstraint("amount_minor = commission_minor + net_minor", name="check_split_balances"),
        CheckConstraint("commission_minor >= 0", name="check_commission_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PaymentTransaction booking={self.booking_id} amount={self.amount_minor}>"
