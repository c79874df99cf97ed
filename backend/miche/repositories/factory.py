# backend/miche/repositories/factory.py
"""
Repository Factory for Miche Mobile

Provides centralized creation of repository instances. Units of work receive
a session from the storage gateway and build the repositories they need here.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .account_repository import AccountRepository
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .payment_repository import PaymentRepository
    from .service_repository import ServiceRepository


class RepositoryFactory:
    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_service_repository(db: Session) -> "ServiceRepository":
        from .service_repository import ServiceRepository

        return ServiceRepository(db)

    @staticmethod
    def create_account_repository(db: Session) -> "AccountRepository":
        from .account_repository import AccountRepository

        return AccountRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)
