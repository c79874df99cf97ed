"""SQLAlchemy models. Importing this package registers every table on ``Base.metadata``."""

from .availability import BlockedInterval, WorkingHours
from .booking import ACTIVE_STATUSES, Booking, BookingStatus
from .payment import PaymentTransaction
from .professional import ExternalAccount, Professional
from .service import Service

__all__ = [
    "ACTIVE_STATUSES",
    "BlockedInterval",
    "Booking",
    "BookingStatus",
    "ExternalAccount",
    "PaymentTransaction",
    "Professional",
    "Service",
    "WorkingHours",
]
