# backend/miche/services/onboarding_service.py
"""
Connected-account onboarding for professionals.

A professional can only be paid once they own an Express account at the
processor with charges enabled. This service creates the account on first
use, hands out onboarding links and mirrors the account's flags locally.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..integrations.payment_processor import PaymentProcessor, ProcessorAccount
from ..models.professional import ExternalAccount
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .schedule_service import ScheduleService


@dataclass(frozen=True)
class OnboardingLink:
    url: str
    external_account_id: str


def onboarding_refresh_url() -> str:
    return f"{settings.frontend_url}/pro-onboarding-complete"


def onboarding_return_url() -> str:
    return f"{settings.frontend_url}/dashboard/professional?stripe_return=success"


class OnboardingService(BaseService):
    def __init__(self, storage, processor: PaymentProcessor):
        super().__init__(storage)
        self.processor = processor
        self._schedule = ScheduleService(storage)

    @BaseService.measure_operation("start_onboarding")
    def start_onboarding(self, user_id: str, email: Optional[str] = None) -> OnboardingLink:
        professional = self._schedule.professional_for_user(user_id)

        def _ensure_row(db: Session) -> ExternalAccount:
            return RepositoryFactory.create_account_repository(db).get_or_create_external_account(
                professional.id
            )

        account = self.as_caller("onboarding.ensure_account", user_id, _ensure_row)
        external_id = account.external_account_id
        if not external_id:
            created = self.processor.create_connected_account(
                email=email, metadata={"professional_id": professional.id}
            )
            external_id = created.id
            self._apply_account(professional.id, created, user_id)
            self.logger.info(
                "Created connected account %s for professional %s", external_id, professional.id
            )

        url = self.processor.create_account_link(
            external_id,
            refresh_url=onboarding_refresh_url(),
            return_url=onboarding_return_url(),
        )
        return OnboardingLink(url=url, external_account_id=external_id)

    @BaseService.measure_operation("get_onboarding_status")
    def get_onboarding_status(self, user_id: str) -> ExternalAccount:
        """Refresh the local flags from the processor and return the account row."""
        professional = self._schedule.professional_for_user(user_id)

        def _read(db: Session) -> Optional[ExternalAccount]:
            accounts = RepositoryFactory.create_account_repository(db)
            return accounts.get_external_account(professional.id)

        account = self.elevated("onboarding.load_account", _read)
        if account is None or not account.external_account_id:
            return account or ExternalAccount(professional_id=professional.id)
        remote = self.processor.retrieve_connected_account(account.external_account_id)
        return self._apply_account(professional.id, remote, user_id)

    def _apply_account(
        self, professional_id: str, remote: ProcessorAccount, user_id: Optional[str]
    ) -> ExternalAccount:
        def _write(db: Session) -> ExternalAccount:
            repo = RepositoryFactory.create_account_repository(db)
            account = repo.get_or_create_external_account(professional_id)
            account.external_account_id = remote.id
            account.apply_processor_flags(
                charges_enabled=remote.charges_enabled,
                payouts_enabled=remote.payouts_enabled,
                details_submitted=remote.details_submitted,
            )
            repo.flush()
            return account

        if user_id:
            return self.as_caller("onboarding.update_account", user_id, _write)
        return self.elevated("onboarding.update_account", _write)

    @BaseService.measure_operation("sync_account_from_processor")
    def sync_account(self, remote: ProcessorAccount) -> Optional[ExternalAccount]:
        """Apply an ``account.updated`` push. Accounts we do not know are ignored."""

        def _write(db: Session) -> Optional[ExternalAccount]:
            repo = RepositoryFactory.create_account_repository(db)
            account = repo.get_by_external_account_id(remote.id)
            if account is None:
                return None
            account.apply_processor_flags(
                charges_enabled=remote.charges_enabled,
                payouts_enabled=remote.payouts_enabled,
                details_submitted=remote.details_submitted,
            )
            repo.flush()
            return account

        account = self.elevated("onboarding.sync_account", _write)
        if account is None:
            self.logger.info("account.updated for unknown account %s ignored", remote.id)
        else:
            self.logger.info(
                "Account %s now %s (charges=%s)",
                remote.id,
                account.onboarding_status,
                account.charges_enabled,
            )
        return account
