from decimal import Decimal

import pytest

from miche.models import Service

from conftest import auth_headers

PRO = auth_headers("pro-user")


@pytest.fixture
def professional(seed):
    return seed.professional(user_id="pro-user")


def test_create_service(client, professional):
    response = client.post(
        "/api/v1/services",
        json={"name": "Silk press", "price": "85.5", "duration_minutes": 90},
        headers=PRO,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["price"] == "85.50"
    assert body["professional_id"] == professional.id
    assert body["external_price_id"] is None


def test_zero_price_is_rejected(client, professional):
    response = client.post(
        "/api/v1/services", json={"name": "Free", "price": "0", "duration_minutes": 30}, headers=PRO
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PRICE"


def test_unknown_body_fields_are_rejected(client, professional):
    response = client.post(
        "/api/v1/services",
        json={"name": "Cut", "price": "10", "professional_id": "x"},
        headers=PRO,
    )

    assert response.status_code == 422


def test_price_edit_rotates_processor_price(client, seed, processor, professional):
    old = processor.add_price(8000)
    service = seed.service(
        professional, price="80.00", external_price_id=old.id, external_product_id=old.product_id
    )

    response = client.patch(f"/api/v1/services/{service.id}", json={"price": "90"}, headers=PRO)

    assert response.status_code == 200
    assert response.json()["price"] == "90.00"
    assert response.json()["external_price_id"] != old.id
    assert processor.deactivated == [old.id]
    assert seed.get(Service, service.id).price == Decimal("90.00")


def test_other_professional_cannot_edit(client, seed, professional):
    other = seed.professional(user_id="other-user")
    service = seed.service(other)

    response = client.patch(f"/api/v1/services/{service.id}", json={"name": "x"}, headers=PRO)

    assert response.status_code == 404
