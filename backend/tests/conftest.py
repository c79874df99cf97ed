# backend/tests/conftest.py
"""
Pytest configuration for the Miche Mobile backend.

Every test gets a fresh in-memory SQLite database. Both storage paths of the
gateway are bound to it; ``rejecting_storage`` swaps the caller-scoped path
for one that refuses every write, the way Postgres row-level security does,
so the fallback layer can be exercised without Postgres.
"""

import os

# Settings are read at import time, so pin them before any miche import
os.environ["CI"] = "1"
os.environ["ENVIRONMENT"] = "test"
os.environ["SCHEDULE_TIMEZONE"] = "UTC"
os.environ["SLOT_DAY_START"] = "09:00"
os.environ["SLOT_DAY_END"] = "18:00"
os.environ["SLOT_INTERVAL_MINUTES"] = "60"
os.environ["PLATFORM_FEE_PERCENT"] = "10"
os.environ["PENDING_BOOKING_TTL_MINUTES"] = "30"
os.environ["FRONTEND_URL"] = "https://app.test"
os.environ["STRIPE_CURRENCY"] = "usd"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["JWT_AUDIENCE"] = "authenticated"
os.environ.pop("SENTRY_DSN", None)

from dataclasses import replace
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
import json
from typing import Any, Dict, List, Mapping, Optional

import jwt
import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from miche.core.exceptions import ExternalProcessorException, StorageAuthorizationError
from miche.core.ulid_helper import generate_ulid
from miche.database import Base
from miche.database.gateway import StorageGateway
from miche.integrations.payment_processor import (
    ProcessorAccount,
    ProcessorCheckoutSession,
    ProcessorPrice,
)
import miche.models  # noqa: F401
from miche.models import (
    BlockedInterval,
    Booking,
    BookingStatus,
    ExternalAccount,
    Professional,
    Service,
    WorkingHours,
)
from miche.services.notification_service import NotificationDispatcher

# Monday 2026-01-05 08:00 UTC. Tests book on the following days.
FIXED_NOW = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
TUESDAY = datetime(2026, 1, 6, tzinfo=timezone.utc).date()


def at(hour: int, minute: int = 0, day: int = 6) -> datetime:
    """An aware UTC instant in January 2026 (default: Tuesday the 6th)."""
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


# ============================================================================
# Storage
# ============================================================================


class PolicyRejectingSession(Session):
    """Session that refuses every write, like a caller without a matching RLS policy."""

    def flush(self, objects: Any = None) -> None:
        if self.new or self.dirty or self.deleted:
            raise StorageAuthorizationError("new row violates row-level security policy")
        super().flush(objects)

    def execute(self, statement: Any, *args: Any, **kwargs: Any) -> Any:
        if getattr(statement, "is_dml", False):
            raise StorageAuthorizationError("permission denied for table")
        return super().execute(statement, *args, **kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def rejecting_factory(engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=PolicyRejectingSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
def storage(session_factory) -> StorageGateway:
    """Both paths on one database; caller-scoped writes always succeed."""
    return StorageGateway(session_factory, session_factory)


@pytest.fixture
def rejecting_storage(rejecting_factory, session_factory) -> StorageGateway:
    """Caller-scoped writes are rejected; the elevated path succeeds."""
    return StorageGateway(rejecting_factory, session_factory)


@pytest.fixture
def no_fallback_storage(rejecting_factory) -> StorageGateway:
    """Caller-scoped writes are rejected and no elevated path is configured."""
    return StorageGateway(rejecting_factory, None)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


# ============================================================================
# Seed data
# ============================================================================


class Seeder:
    def __init__(self, factory: sessionmaker):
        self._factory = factory

    def _save(self, *objects: Any) -> None:
        with self._factory() as session:
            session.add_all(objects)
            session.commit()

    def professional(
        self,
        *,
        user_id: Optional[str] = None,
        payable: bool = True,
        charges_enabled: bool = True,
        with_account: bool = True,
    ) -> Professional:
        professional = Professional(
            id=generate_ulid(),
            user_id=user_id or f"user-{generate_ulid().lower()}",
            display_name="Test Professional",
            total_revenue=Decimal("0.00"),
        )
        objects: List[Any] = [professional]
        if with_account:
            objects.append(
                ExternalAccount(
                    id=generate_ulid(),
                    professional_id=professional.id,
                    external_account_id=f"acct_{professional.id.lower()}" if payable else None,
                    onboarding_status="active" if payable and charges_enabled else "pending",
                    charges_enabled=charges_enabled if payable else False,
                    payouts_enabled=charges_enabled if payable else False,
                    details_submitted=payable,
                )
            )
        self._save(*objects)
        return professional

    def service(
        self,
        professional: Professional,
        *,
        price: str = "80.00",
        duration_minutes: int = 60,
        name: str = "Silk press",
        description: Optional[str] = None,
        external_price_id: Optional[str] = None,
        external_product_id: Optional[str] = None,
        is_active: bool = True,
    ) -> Service:
        service = Service(
            id=generate_ulid(),
            professional_id=professional.id,
            name=name,
            description=description,
            price=Decimal(price),
            duration_minutes=duration_minutes,
            is_active=is_active,
            external_price_id=external_price_id,
            external_product_id=external_product_id,
        )
        self._save(service)
        return service

    def working_hours(
        self,
        professional: Professional,
        weekday: int,
        start: time = time(9, 0),
        end: time = time(17, 0),
        *,
        is_working: bool = True,
    ) -> WorkingHours:
        row = WorkingHours(
            id=generate_ulid(),
            professional_id=professional.id,
            weekday=weekday,
            is_working=is_working,
            start_time=start,
            end_time=end,
        )
        self._save(row)
        return row

    def blocked(
        self,
        professional: Professional,
        start_at: datetime,
        end_at: datetime,
        reason: Optional[str] = None,
    ) -> BlockedInterval:
        row = BlockedInterval(
            id=generate_ulid(),
            professional_id=professional.id,
            start_at=start_at,
            end_at=end_at,
            reason=reason,
        )
        self._save(row)
        return row

    def booking(
        self,
        professional: Professional,
        service: Service,
        start_at: datetime,
        *,
        client_id: str = "client-1",
        status: BookingStatus = BookingStatus.PENDING,
        created_at: Optional[datetime] = None,
        checkout_session_id: Optional[str] = None,
    ) -> Booking:
        booking = Booking(
            id=generate_ulid(),
            client_id=client_id,
            professional_id=professional.id,
            service_id=service.id,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=service.duration_minutes),
            service_name=service.name,
            duration_minutes=service.duration_minutes,
            total_amount=Decimal(service.price),
            status=status.value,
            created_at=created_at or FIXED_NOW,
            checkout_session_id=checkout_session_id,
        )
        self._save(booking)
        return booking

    def get(self, model: Any, object_id: str) -> Any:
        with self._factory() as session:
            return session.get(model, object_id)

    def count(self, model: Any, **filters: Any) -> int:
        with self._factory() as session:
            query = select(func.count()).select_from(model)
            for name, value in filters.items():
                query = query.where(getattr(model, name) == value)
            return int(session.execute(query).scalar_one())


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


# ============================================================================
# Payment processor
# ============================================================================


class FakeProcessor:
    """In-memory stand-in for the Stripe integration with the same interface."""

    def __init__(self) -> None:
        self.prices: Dict[str, ProcessorPrice] = {}
        self.products: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, ProcessorCheckoutSession] = {}
        self.accounts: Dict[str, ProcessorAccount] = {}
        self.session_params: List[Dict[str, Any]] = []
        self.deactivated: List[str] = []
        self.failing: set = set()
        self._seq = 0

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def _check(self, call: str) -> None:
        if call in self.failing:
            raise ExternalProcessorException(details={"call": call, "processor_code": "api_error"})

    # Products and prices

    def add_price(self, unit_amount: int, *, active: bool = True) -> ProcessorPrice:
        product_id = self._next_id("prod")
        self.products[product_id] = {"name": "seeded", "description": None}
        price = ProcessorPrice(
            id=self._next_id("price"),
            product_id=product_id,
            unit_amount=unit_amount,
            currency="usd",
            active=active,
        )
        self.prices[price.id] = price
        return price

    def retrieve_price(self, price_id: str) -> ProcessorPrice:
        self._check("retrieve_price")
        if price_id not in self.prices:
            raise ExternalProcessorException(
                details={"call": "retrieve_price", "processor_code": "resource_missing"}
            )
        return self.prices[price_id]

    def create_product_with_price(
        self,
        *,
        name: str,
        description: Optional[str],
        unit_amount: int,
        currency: str,
        metadata: Mapping[str, str],
    ) -> ProcessorPrice:
        self._check("create_product_with_price")
        product_id = self._next_id("prod")
        self.products[product_id] = {
            "name": name,
            "description": description,
            "metadata": dict(metadata),
        }
        return self.create_price(product_id=product_id, unit_amount=unit_amount, currency=currency)

    def create_price(self, *, product_id: str, unit_amount: int, currency: str) -> ProcessorPrice:
        self._check("create_price")
        price = ProcessorPrice(
            id=self._next_id("price"),
            product_id=product_id,
            unit_amount=unit_amount,
            currency=currency,
            active=True,
        )
        self.prices[price.id] = price
        return price

    def deactivate_price(self, price_id: str) -> None:
        self._check("deactivate_price")
        self.deactivated.append(price_id)
        if price_id in self.prices:
            self.prices[price_id] = replace(self.prices[price_id], active=False)

    def update_product(self, product_id: str, *, name: str, description: Optional[str]) -> None:
        self._check("update_product")
        self.products.setdefault(product_id, {}).update(name=name, description=description)

    # Checkout sessions

    def create_checkout_session(self, params: Dict[str, Any]) -> ProcessorCheckoutSession:
        self._check("create_checkout_session")
        self.session_params.append(params)
        session_id = self._next_id("cs_test")
        session = ProcessorCheckoutSession(
            id=session_id,
            url=f"https://checkout.test/{session_id}",
            status="open",
            payment_status="unpaid",
            client_reference_id=params.get("client_reference_id"),
            metadata=dict(params.get("metadata") or {}),
        )
        self.sessions[session_id] = session
        return session

    def retrieve_checkout_session(self, session_id: str) -> ProcessorCheckoutSession:
        self._check("retrieve_checkout_session")
        if session_id not in self.sessions:
            raise ExternalProcessorException(
                details={"call": "retrieve_checkout_session", "processor_code": "resource_missing"}
            )
        return self.sessions[session_id]

    def expire_checkout_session(self, session_id: str) -> ProcessorCheckoutSession:
        self._check("expire_checkout_session")
        session = self.retrieve_checkout_session(session_id)
        if session.status != "open":
            raise ExternalProcessorException(
                details={"call": "expire_checkout_session", "processor_code": "invalid_request"}
            )
        expired = replace(session, status="expired", url=None)
        self.sessions[session_id] = expired
        return expired

    def open_session(self, booking: Booking, *, metadata_booking_id: Optional[str] = None):
        """Register a session for a seeded booking without going through checkout."""
        session_id = booking.checkout_session_id or self._next_id("cs_test")
        booking_ref = metadata_booking_id or booking.id
        session = ProcessorCheckoutSession(
            id=session_id,
            url=f"https://checkout.test/{session_id}",
            status="open",
            payment_status="unpaid",
            client_reference_id=booking_ref,
            metadata={"booking_id": booking_ref},
        )
        self.sessions[session_id] = session
        return session

    def pay(self, session_id: str) -> ProcessorCheckoutSession:
        paid = replace(
            self.sessions[session_id],
            status="complete",
            payment_status="paid",
            payment_intent_id=f"pi_{session_id}",
            url=None,
        )
        self.sessions[session_id] = paid
        return paid

    # Connected accounts

    def create_connected_account(
        self, *, email: Optional[str], metadata: Mapping[str, str]
    ) -> ProcessorAccount:
        self._check("create_connected_account")
        account = ProcessorAccount(
            id=self._next_id("acct"),
            charges_enabled=False,
            payouts_enabled=False,
            details_submitted=False,
        )
        self.accounts[account.id] = account
        return account

    def retrieve_connected_account(self, account_id: str) -> ProcessorAccount:
        self._check("retrieve_connected_account")
        return self.accounts[account_id]

    def create_account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> str:
        self._check("create_account_link")
        return f"https://connect.test/{account_id}?return={return_url}"

    def construct_webhook_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if signature != "valid-signature":
            raise ValueError("invalid signature")
        return json.loads(payload)


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


class RecordingNotifier(NotificationDispatcher):
    def __init__(self) -> None:
        self.sent: List[str] = []
        super().__init__(enqueue=self.sent.append)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ============================================================================
# API
# ============================================================================


def auth_headers(subject: str, email: Optional[str] = None) -> Dict[str, str]:
    """Bearer header for a token signed the way the identity provider signs them."""
    claims: Dict[str, Any] = {"sub": subject, "aud": "authenticated"}
    if email:
        claims["email"] = email
    return {"Authorization": f"Bearer {jwt.encode(claims, 'test-jwt-secret', algorithm='HS256')}"}


@pytest.fixture
def client(storage, processor, notifier, clock):
    from fastapi.testclient import TestClient

    from miche.api.dependencies import services as deps
    from miche.main import app
    from miche.services.reservation_service import ReservationService
    from miche.services.settlement_service import SettlementService
    from miche.services.webhook_service import WebhookService

    app.dependency_overrides[deps.get_storage] = lambda: storage
    app.dependency_overrides[deps.get_processor] = lambda: processor
    app.dependency_overrides[deps.get_reservation_service] = lambda: ReservationService(
        storage, clock=clock
    )
    app.dependency_overrides[deps.get_settlement_service] = lambda: SettlementService(
        storage, processor, notifier=notifier, clock=clock
    )
    app.dependency_overrides[deps.get_webhook_service] = lambda: WebhookService(
        storage, processor, notifier=notifier
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
