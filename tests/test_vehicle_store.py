from __future__ import annotations

from datetime import UTC, datetime, timedelta
from urllib.parse import unquote

import pytest

from fitsearch._constants import VEHICLE_COOKIE_NAME
from fitsearch.exceptions import FitSearchStorageError
from fitsearch.models.vehicle import Vehicle
from fitsearch.storage import CookieJar, MemoryStorage, VehicleStore
from tests.fakes import toyota_camry


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def _store(clock: _Clock) -> tuple[CookieJar, VehicleStore]:
    jar = CookieJar(clock=clock)
    return jar, VehicleStore(jar, clock=clock)


def test_save_then_load_round_trips() -> None:
    _, store = _store(_Clock())
    vehicle = toyota_camry()

    store.save(vehicle)

    assert store.load() == vehicle


def test_cookie_holds_url_encoded_camel_case_json() -> None:
    jar, store = _store(_Clock())

    store.save(toyota_camry())
    raw = jar.get(VEHICLE_COOKIE_NAME)

    assert raw is not None
    assert "%7B" in raw
    assert '"makeId":"1"' in unquote(raw)


def test_save_none_invalidates_previous_vehicle() -> None:
    jar, store = _store(_Clock())
    store.save(toyota_camry())

    store.save(None)

    assert store.load() is None
    assert VEHICLE_COOKIE_NAME not in jar.names()


def test_saved_vehicle_expires_after_ttl() -> None:
    clock = _Clock()
    _, store = _store(clock)
    store.save(toyota_camry(), ttl_days=30)

    clock.now += timedelta(days=29)
    assert store.load() is not None

    clock.now += timedelta(days=1)
    assert store.load() is None


def test_corrupt_cookie_loads_as_none(caplog: pytest.LogCaptureFixture) -> None:
    jar, store = _store(_Clock())
    jar.set(VEHICLE_COOKIE_NAME, "%7Bnot-json")

    assert store.load() is None
    assert "Error loading vehicle" in caplog.text


def test_inconsistent_cookie_loads_as_none() -> None:
    jar, store = _store(_Clock())
    jar.set(VEHICLE_COOKIE_NAME, '{"model":{"id":"10","name":"Camry","makeId":"1"}}')

    assert store.load() is None


def test_store_without_cookies_is_a_no_op() -> None:
    store = VehicleStore(None)

    store.save(toyota_camry())

    assert not store.available
    assert store.load() is None


def test_oversized_save_is_logged_and_drops_previous_vehicle(caplog: pytest.LogCaptureFixture) -> None:
    jar, store = _store(_Clock())
    store.save(toyota_camry())
    huge = Vehicle.model_validate(
        {"make": {"id": "1", "name": "x" * 5000}},
    )

    store.save(huge)

    assert jar.get(VEHICLE_COOKIE_NAME) is None
    assert store.load() is None
    assert "Error saving vehicle" in caplog.text


def test_cookie_jar_rejects_oversized_values() -> None:
    with pytest.raises(FitSearchStorageError):
        CookieJar().set("big", "x" * 5000)


def test_cookie_jar_ingests_set_cookie_headers() -> None:
    clock = _Clock()
    jar = CookieJar(clock=clock)

    jar.update_from_headers(["_shopify_y=abc; Path=/; Max-Age=60", "cart=xyz; Path=/"])

    assert jar.header() == "_shopify_y=abc; cart=xyz"
    clock.now += timedelta(seconds=61)
    assert jar.names() == ["cart"]


def test_received_cookies_are_bound_to_their_host() -> None:
    jar = CookieJar()
    jar.set("cart", "abc")

    jar.update_from_headers(["_shopify_s=xyz; Path=/"], host="test-shop.myshopify.com")

    assert jar.header("test-shop.myshopify.com", default_domain="test-shop.myshopify.com") == "cart=abc; _shopify_s=xyz"
    assert jar.header("other-shop.myshopify.com", default_domain="test-shop.myshopify.com") == ""
    assert jar.header("attacker-myshopify.com") == ""


def test_domain_attribute_covers_subdomains_of_issuer() -> None:
    jar = CookieJar()

    jar.update_from_headers(
        ["_app=1; Domain=.example.com", "_other=2; Domain=elsewhere.com"],
        host="shop.example.com",
    )

    assert jar.header("cdn.example.com") == "_app=1"
    assert jar.header("notexample.com") == ""
    assert jar.header("shop.example.com") == "_app=1; _other=2"


def test_memory_storage() -> None:
    storage = MemoryStorage({"a": "1"})
    storage.set_item("b", "2")
    storage.remove_item("a")

    assert storage.get_item("a") is None
    assert storage.get_item("b") == "2"
    assert len(storage) == 1
