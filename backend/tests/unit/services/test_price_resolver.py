"""PriceResolver: lazy creation, reuse, and replacement of processor prices."""

import pytest

from miche.core.exceptions import PriceResolutionFailedException, ServiceNotFoundException
from miche.core.ulid_helper import generate_ulid
from miche.models import Service
from miche.services.price_resolver import PriceResolver


@pytest.fixture
def resolver(storage, processor):
    return PriceResolver(storage, processor)


@pytest.fixture
def professional(seed):
    return seed.professional()


def test_first_resolution_creates_product_and_price(resolver, seed, processor, professional):
    service = seed.service(professional, price="50.00", name="Braids")

    price = resolver.resolve_price(service.id)

    assert price.unit_amount == 5000
    assert price.currency == "usd"
    assert processor.products[price.product_id]["name"] == "Braids"
    stored = seed.get(Service, service.id)
    assert stored.external_price_id == price.id
    assert stored.external_product_id == price.product_id


def test_second_resolution_reuses_the_stored_price(resolver, seed, processor, professional):
    service = seed.service(professional, price="50.00")

    first = resolver.resolve_external_price(service.id)
    second = resolver.resolve_external_price(service.id)

    assert first == second
    assert len(processor.prices) == 1


def test_price_for_a_different_amount_is_replaced(resolver, seed, processor, professional):
    stale = processor.add_price(4000)
    service = seed.service(
        professional,
        price="50.00",
        external_price_id=stale.id,
        external_product_id=stale.product_id,
    )

    price = resolver.resolve_price(service.id)

    assert price.id != stale.id
    assert price.unit_amount == 5000
    # Same product, new immutable price
    assert price.product_id == stale.product_id
    assert processor.deactivated == [stale.id]
    assert seed.get(Service, service.id).external_price_id == price.id


def test_inactive_price_is_replaced_without_deactivating_again(
    resolver, seed, processor, professional
):
    inactive = processor.add_price(5000, active=False)
    service = seed.service(
        professional,
        price="50.00",
        external_price_id=inactive.id,
        external_product_id=inactive.product_id,
    )

    price = resolver.resolve_price(service.id)

    assert price.id != inactive.id
    assert processor.deactivated == []


def test_missing_price_is_recreated(resolver, seed, processor, professional):
    service = seed.service(professional, price="50.00", external_price_id="price_gone")

    price = resolver.resolve_price(service.id)

    assert price.id in processor.prices
    assert seed.get(Service, service.id).external_price_id == price.id


def test_create_failure_raises_price_resolution_failed(resolver, seed, processor, professional):
    service = seed.service(professional)
    processor.failing.add("create_product_with_price")

    with pytest.raises(PriceResolutionFailedException) as exc_info:
        resolver.resolve_price(service.id)

    assert exc_info.value.details["reason"] == "create_failed"
    assert seed.get(Service, service.id).external_price_id is None


def test_unknown_service(resolver):
    with pytest.raises(ServiceNotFoundException):
        resolver.resolve_price(generate_ulid())


def test_client_triggered_persist_falls_back_to_elevated(rejecting_storage, processor, seed):
    professional = seed.professional()
    service = seed.service(professional)

    price = PriceResolver(rejecting_storage, processor).resolve_price(
        service.id, principal_id="client-1"
    )

    assert seed.get(Service, service.id).external_price_id == price.id


class TestReplaceExternalPrice:
    def test_returns_none_when_no_price_exists_yet(self, resolver, seed, processor, professional):
        service = seed.service(professional)

        assert resolver.replace_external_price(service.id) is None
        assert processor.prices == {}

    def test_swaps_reference_and_deactivates_old_price(
        self, resolver, seed, processor, professional
    ):
        old = processor.add_price(8000)
        service = seed.service(
            professional,
            price="95.00",
            external_price_id=old.id,
            external_product_id=old.product_id,
        )

        new_id = resolver.replace_external_price(service.id)

        assert new_id != old.id
        assert processor.prices[new_id].unit_amount == 9500
        assert processor.deactivated == [old.id]
        assert seed.get(Service, service.id).external_price_id == new_id

    def test_deactivation_failure_is_not_fatal(self, resolver, seed, processor, professional):
        old = processor.add_price(8000)
        service = seed.service(
            professional, price="95.00", external_price_id=old.id, external_product_id=old.product_id
        )
        processor.failing.add("deactivate_price")

        new_id = resolver.replace_external_price(service.id)

        assert seed.get(Service, service.id).external_price_id == new_id
