"""OnboardingService: connected accounts and their payability flags."""

import pytest

from miche.core.exceptions import ProfessionalNotFoundException
from miche.integrations.payment_processor import ProcessorAccount
from miche.models import ExternalAccount
from miche.services.onboarding_service import OnboardingService


@pytest.fixture
def onboarding(storage, processor):
    return OnboardingService(storage, processor)


def _account_row(session_factory, professional_id):
    with session_factory() as session:
        return session.query(ExternalAccount).filter_by(professional_id=professional_id).one()


def test_first_onboarding_creates_connected_account(
    onboarding, seed, processor, session_factory
):
    professional = seed.professional(user_id="pro-user", with_account=False)

    link = onboarding.start_onboarding("pro-user", email="pro@example.com")

    assert link.external_account_id in processor.accounts
    assert link.url.startswith(f"https://connect.test/{link.external_account_id}")
    assert "stripe_return=success" in link.url
    row = _account_row(session_factory, professional.id)
    assert row.external_account_id == link.external_account_id
    assert row.onboarding_status == "pending"
    assert row.is_payable is False


def test_repeat_onboarding_reuses_account(onboarding, seed, processor):
    seed.professional(user_id="pro-user", with_account=False)

    first = onboarding.start_onboarding("pro-user")
    second = onboarding.start_onboarding("pro-user")

    assert first.external_account_id == second.external_account_id
    assert len(processor.accounts) == 1


def test_status_refresh_makes_professional_payable(onboarding, seed, processor, session_factory):
    professional = seed.professional(user_id="pro-user", with_account=False)
    link = onboarding.start_onboarding("pro-user")
    processor.accounts[link.external_account_id] = ProcessorAccount(
        id=link.external_account_id,
        charges_enabled=True,
        payouts_enabled=True,
        details_submitted=True,
    )

    status = onboarding.get_onboarding_status("pro-user")

    assert status.onboarding_status == "active"
    assert _account_row(session_factory, professional.id).is_payable is True


def test_status_before_onboarding(onboarding, seed):
    seed.professional(user_id="pro-user", with_account=False)

    status = onboarding.get_onboarding_status("pro-user")

    assert status.external_account_id is None
    assert not status.charges_enabled


def test_unknown_user(onboarding):
    with pytest.raises(ProfessionalNotFoundException):
        onboarding.start_onboarding("nobody")


def test_account_push_updates_known_account(onboarding, seed, session_factory):
    professional = seed.professional(charges_enabled=False)
    row = _account_row(session_factory, professional.id)

    account = onboarding.sync_account(
        ProcessorAccount(
            id=row.external_account_id,
            charges_enabled=True,
            payouts_enabled=True,
            details_submitted=True,
        )
    )

    assert account.charges_enabled is True
    assert _account_row(session_factory, professional.id).onboarding_status == "active"


def test_account_push_for_unknown_account(onboarding):
    remote = ProcessorAccount(
        id="acct_unknown", charges_enabled=True, payouts_enabled=True, details_submitted=True
    )

    assert onboarding.sync_account(remote) is None
