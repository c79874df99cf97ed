# backend/miche/repositories/payment_repository.py
from sqlalchemy.orm import Session

from ..models.payment import PaymentTransaction
from .base_repository import BaseRepository


class PaymentRepository(BaseRepository[PaymentTransaction]):
    """Settlement ledger rows, one per confirmed booking."""

    def __init__(self, db: Session):
        super().__init__(db, PaymentTransaction)
