"""HTTP contract of the v1 booking endpoints."""

from decimal import Decimal

import pytest

from miche.models import Booking, BookingStatus, PaymentTransaction

from conftest import auth_headers, at

CLIENT = auth_headers("client-1", email="client@example.com")


@pytest.fixture
def professional(seed):
    return seed.professional(user_id="pro-user")


@pytest.fixture
def offering(seed, professional):
    return seed.service(professional, price="50.00", duration_minutes=60)


def _reserve(client, professional, offering, start="2026-01-06T10:00:00Z", headers=CLIENT):
    return client.post(
        "/api/v1/bookings",
        json={
            "professional_id": professional.id,
            "service_id": offering.id,
            "start_at": start,
            "location": "12 Main St",
        },
        headers=headers,
    )


def test_reserve_returns_pending_booking(client, professional, offering):
    response = _reserve(client, professional, offering)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["client_id"] == "client-1"
    assert body["total_amount"] == "50.00"
    assert body["duration_minutes"] == 60


def test_reserve_requires_authentication(client, professional, offering):
    response = _reserve(client, professional, offering, headers={})

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_token_for_another_audience_is_rejected(client, professional, offering):
    import jwt

    token = jwt.encode({"sub": "client-1", "aud": "other"}, "test-jwt-secret", algorithm="HS256")

    response = _reserve(
        client, professional, offering, headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401


def test_naive_start_is_a_validation_error(client, professional, offering):
    response = _reserve(client, professional, offering, start="2026-01-06T10:00:00")

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_blocked_slot_is_a_conflict(client, seed, professional, offering):
    seed.blocked(professional, at(10), at(12))

    response = _reserve(client, professional, offering, start="2026-01-06T11:00:00Z")

    assert response.status_code == 409
    assert response.json()["code"] == "SLOT_UNAVAILABLE"


def test_double_booking_is_a_conflict(client, professional, offering):
    assert _reserve(client, professional, offering).status_code == 201

    response = _reserve(
        client, professional, offering, headers=auth_headers("client-2")
    )

    assert response.status_code == 409


def test_not_payable_professional(client, seed):
    unpaid = seed.professional(payable=False)
    offering = seed.service(unpaid)

    response = _reserve(client, unpaid, offering)

    assert response.status_code == 422
    assert response.json()["code"] == "NOT_PAYABLE"
    assert seed.count(Booking) == 0


def test_get_booking_visibility(client, professional, offering):
    booking_id = _reserve(client, professional, offering).json()["id"]

    assert client.get(f"/api/v1/bookings/{booking_id}", headers=CLIENT).status_code == 200
    assert (
        client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers("pro-user")).status_code
        == 200
    )
    stranger = client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers("stranger"))
    assert stranger.status_code == 404
    assert stranger.json()["code"] == "BOOKING_NOT_FOUND"


def test_malformed_booking_id(client):
    assert client.get("/api/v1/bookings/not-a-ulid", headers=CLIENT).status_code == 422


def test_full_payment_flow(client, seed, processor, notifier, professional, offering):
    booking_id = _reserve(client, professional, offering).json()["id"]

    checkout = client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=CLIENT)
    assert checkout.status_code == 200
    session_id = checkout.json()["session_id"]
    assert checkout.json()["url"].endswith(session_id)

    early = client.post(
        f"/api/v1/bookings/{booking_id}/confirm", json={"session_id": session_id}, headers=CLIENT
    )
    assert early.status_code == 502
    assert early.json()["code"] == "PAYMENT_NOT_COMPLETED"

    processor.pay(session_id)
    for _ in range(2):
        confirmed = client.post(
            f"/api/v1/bookings/{booking_id}/confirm",
            json={"session_id": session_id},
            headers=CLIENT,
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"

    assert seed.count(PaymentTransaction, booking_id=booking_id) == 1
    assert notifier.sent == [booking_id]


def test_confirm_with_foreign_session(client, seed, processor, professional, offering):
    booking_id = _reserve(client, professional, offering).json()["id"]
    client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=CLIENT)

    response = client.post(
        f"/api/v1/bookings/{booking_id}/confirm", json={"session_id": "cs_other"}, headers=CLIENT
    )

    assert response.status_code == 400
    assert response.json()["code"] == "SESSION_MISMATCH"


def test_cancel_releases_the_slot(client, seed, professional, offering):
    booking_id = _reserve(client, professional, offering).json()["id"]
    client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=CLIENT)

    response = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=CLIENT)

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert _reserve(client, professional, offering, headers=auth_headers("client-2")).status_code == 201


def test_checkout_processor_outage_keeps_booking_pending(client, seed, processor, professional, offering):
    booking_id = _reserve(client, professional, offering).json()["id"]
    processor.failing.add("create_checkout_session")

    response = client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=CLIENT)

    assert response.status_code == 502
    assert seed.get(Booking, booking_id).status == BookingStatus.PENDING.value
    assert seed.get(Booking, booking_id).total_amount == Decimal("50.00")


def test_checkout_retry_after_payment_is_refused(client, seed, processor, notifier, professional, offering):
    booking_id = _reserve(client, professional, offering).json()["id"]
    session_id = client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=CLIENT).json()[
        "session_id"
    ]
    processor.pay(session_id)

    retry = client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=CLIENT)

    assert retry.status_code == 409
    assert retry.json()["code"] == "PAYMENT_ALREADY_COMPLETED"
    assert len(processor.session_params) == 1
    assert seed.get(Booking, booking_id).status == BookingStatus.CONFIRMED.value
    assert notifier.sent == [booking_id]
