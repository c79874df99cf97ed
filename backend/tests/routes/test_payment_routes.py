import json

import pytest

from miche.models import Booking, BookingStatus

from conftest import auth_headers, at

PRO = auth_headers("pro-user", email="pro@example.com")


def _post_event(client, event, signature="valid-signature"):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post("/api/v1/payments/webhooks/stripe", content=json.dumps(event), headers=headers)


def test_onboarding_link_and_status(client, seed, processor):
    seed.professional(user_id="pro-user", with_account=False)

    link = client.post("/api/v1/payments/connect/onboard", headers=PRO)
    assert link.status_code == 200
    account_id = link.json()["external_account_id"]
    assert account_id in processor.accounts

    status = client.get("/api/v1/payments/connect/status", headers=PRO)
    assert status.status_code == 200
    assert status.json()["external_account_id"] == account_id
    assert status.json()["onboarding_status"] == "pending"
    assert status.json()["charges_enabled"] is False


def test_status_before_onboarding(client, seed):
    seed.professional(user_id="pro-user", with_account=False)

    body = client.get("/api/v1/payments/connect/status", headers=PRO).json()

    assert body["onboarding_status"] == "not_started"
    assert body["external_account_id"] is None


def test_onboarding_processor_outage(client, seed, processor):
    seed.professional(user_id="pro-user", with_account=False)
    processor.failing.add("create_connected_account")

    response = client.post("/api/v1/payments/connect/onboard", headers=PRO)

    assert response.status_code == 502


@pytest.fixture
def opened(seed, processor):
    professional = seed.professional()
    service = seed.service(professional, price="50.00")
    booking = seed.booking(professional, service, at(10), checkout_session_id="cs_web")
    processor.open_session(booking)
    return booking


def test_webhook_settles_booking(client, seed, processor, opened):
    paid = processor.pay("cs_web")
    event = {
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": paid.id,
                "status": paid.status,
                "payment_status": paid.payment_status,
                "payment_intent": paid.payment_intent_id,
                "metadata": paid.metadata,
            }
        },
    }

    response = _post_event(client, event)

    assert response.status_code == 200
    assert response.json() == {
        "received": True,
        "handled": True,
        "event_type": "checkout.session.completed",
    }
    assert seed.get(Booking, opened.id).status == BookingStatus.CONFIRMED.value


def test_webhook_without_signature(client):
    response = _post_event(client, {"type": "ping"}, signature=None)

    assert response.status_code == 400


def test_webhook_with_bad_signature(client, seed, opened):
    response = _post_event(client, {"type": "checkout.session.completed"}, signature="forged")

    assert response.status_code == 400
    assert seed.get(Booking, opened.id).status == BookingStatus.PENDING.value


def test_webhook_ignores_unrelated_events(client):
    response = _post_event(client, {"id": "evt_2", "type": "invoice.paid", "data": {"object": {}}})

    assert response.status_code == 200
    assert response.json()["handled"] is False


def test_webhook_without_object_id_is_acknowledged(client):
    response = _post_event(
        client, {"id": "evt_5", "type": "checkout.session.completed", "data": {"object": {}}}
    )

    assert response.status_code == 200
    assert response.json()["handled"] is False
