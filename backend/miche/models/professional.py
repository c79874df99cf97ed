# backend/miche/models/professional.py
"""
Professional and payout account models.

A Professional is the seller side of the marketplace. The identity provider
owns the user record; this table only keeps what the booking and payment core
needs: the link to the identity (``user_id``) and the revenue counter that
settlement increments.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import OnboardingStatus
from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Professional(Base):
    __tablename__ = "professionals"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=True)
    total_revenue = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)

    external_account = relationship(
        "ExternalAccount", back_populates="professional", uselist=False, cascade="all, delete-orphan"
    )
    services = relationship("Service", back_populates="professional", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Professional {self.id} user={self.user_id}>"


class ExternalAccount(Base):
    """
    The professional's connected account at the payment processor.

    ``external_account_id`` stays null until onboarding creates the account;
    the professional can only be paid once it is set and charges are enabled.
    """

    __tablename__ = "external_accounts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    professional_id = Column(
        String(26), ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    external_account_id = Column(String(255), nullable=True, unique=True)
    onboarding_status = Column(
        String(20), nullable=False, default=OnboardingStatus.NOT_STARTED.value
    )
    charges_enabled = Column(Boolean, nullable=False, default=False)
    payouts_enabled = Column(Boolean, nullable=False, default=False)
    details_submitted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)

    professional = relationship("Professional", back_populates="external_account")

    @property
    def is_payable(self) -> bool:
        return bool(self.external_account_id) and bool(self.charges_enabled)

    def apply_processor_flags(
        self, *, charges_enabled: bool, payouts_enabled: bool, details_submitted: bool
    ) -> None:
        """Refresh onboarding flags from the processor's view of the account."""
        self.charges_enabled = charges_enabled
        self.payouts_enabled = payouts_enabled
        self.details_submitted = details_submitted
        if charges_enabled and details_submitted:
            self.onboarding_status = OnboardingStatus.ACTIVE.value
        elif self.external_account_id:
            self.onboarding_status = OnboardingStatus.PENDING.value
        else:
            self.onboarding_status = OnboardingStatus.NOT_STARTED.value

    def __repr__(self) -> str:
        return (
            f"<ExternalAccount {self.external_account_id} professional={self.professional_id} "
            f"status={self.onboarding_status}>"
        )
