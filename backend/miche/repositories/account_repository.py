# backend/miche/repositories/account_repository.py
"""
Account Repository for Miche Mobile

Professionals and their connected payout accounts.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.professional import ExternalAccount, Professional
from .base_repository import BaseRepository


class AccountRepository(BaseRepository[Professional]):
    def __init__(self, db: Session):
        super().__init__(db, Professional)

    def get_by_user_id(self, user_id: str) -> Optional[Professional]:
        return self.find_one_by(user_id=user_id)

    def get_external_account(self, professional_id: str) -> Optional[ExternalAccount]:
        try:
            return (
                self.db.query(ExternalAccount)
                .filter(ExternalAccount.professional_id == professional_id)
                .first()
            )
        except SQLAlchemyError as e:
            self._raise_storage_error("retrieve external account for", e)

    def get_by_external_account_id(self, external_account_id: str) -> Optional[ExternalAccount]:
        try:
            return (
                self.db.query(ExternalAccount)
                .filter(ExternalAccount.external_account_id == external_account_id)
                .first()
            )
        except SQLAlchemyError as e:
            self._raise_storage_error("retrieve external account for", e)

    def get_or_create_external_account(self, professional_id: str) -> ExternalAccount:
        account = self.get_external_account(professional_id)
        if account is not None:
            return account
        account = ExternalAccount(professional_id=professional_id)
        try:
            self.db.add(account)
            self.db.flush()
        except SQLAlchemyError as e:
            self._raise_storage_error("create external account for", e)
        return account

    def add_revenue(self, professional_id: str, amount: Decimal) -> None:
        """Increment the revenue counter in SQL so concurrent settlements never lose an update."""
        try:
            self.db.execute(
                update(Professional)
                .where(Professional.id == professional_id)
                .values(total_revenue=Professional.total_revenue + amount)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self._raise_storage_error("update revenue for", e)
