from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from fitsearch._constants import CONTEXT_ERROR_MESSAGE
from fitsearch.client import FitSearchClient
from fitsearch.config import FitSearchConfig
from fitsearch.context import ContextKind, ExecutionContext
from fitsearch.exceptions import FitSearchHttpError, FitSearchNetworkError
from fitsearch.models.vehicle import Make, Model, Vehicle
from fitsearch.orchestrator import SelectionSnapshot, VehicleSelector
from fitsearch.storage import CookieJar, VehicleStore
from tests.fakes import SHOP, FakeTransport, catalog_routes, toyota_camry

_PRODUCT = {"id": "p1", "title": "Brake pads", "handle": "brake-pads", "fitments": []}


def _selector(
    transport: FakeTransport,
    *,
    context: ExecutionContext | None = None,
    jar: CookieJar | None = None,
) -> tuple[VehicleSelector, FitSearchClient, CookieJar]:
    jar = jar if jar is not None else CookieJar()
    client = FitSearchClient(
        FitSearchConfig(),
        context or ExecutionContext(kind=ContextKind.STOREFRONT, shop=SHOP),
        transport=transport,
    )
    return VehicleSelector(client, VehicleStore(jar)), client, jar


def _names(options: list[Any]) -> list[str]:
    return [option.name for option in options]


@pytest.mark.asyncio
async def test_activate_loads_makes(transport: FakeTransport) -> None:
    selector, _, _ = _selector(transport)

    await selector.activate()
    snapshot = selector.snapshot()

    assert _names(snapshot.makes) == ["Toyota", "Honda"]
    assert snapshot.make is None
    assert snapshot.loading is False
    assert snapshot.error is None
    assert transport.endpoints() == ["vehicle/makes"]


@pytest.mark.asyncio
async def test_activate_restores_saved_vehicle_and_its_options(transport: FakeTransport) -> None:
    jar = CookieJar()
    VehicleStore(jar).save(toyota_camry())
    selector, _, _ = _selector(transport, jar=jar)

    await selector.activate()
    snapshot = selector.snapshot()

    assert selector.vehicle == toyota_camry()
    assert snapshot.is_complete
    assert _names(snapshot.models) == ["Camry", "Corolla"]
    assert [year.value for year in snapshot.years] == [2023]
    assert _names(snapshot.submodels) == ["SE"]
    assert transport.endpoints() == ["vehicle/makes", "vehicle/models", "vehicle/years", "vehicle/submodels"]


@pytest.mark.asyncio
async def test_cascade_loads_each_level_and_resets_deeper_ones(transport: FakeTransport) -> None:
    selector, _, jar = _selector(transport)
    await selector.activate()

    await selector.select_make("1")
    await selector.select_model("10")
    await selector.select_year("100")
    await selector.select_submodel("1000")
    assert selector.vehicle.display_name() == "2023 Toyota Camry SE"

    await selector.select_make("2")
    snapshot = selector.snapshot()

    assert snapshot.make is not None and snapshot.make.name == "Honda"
    assert (snapshot.model, snapshot.year, snapshot.submodel) == (None, None, None)
    assert _names(snapshot.models) == ["Civic"]
    assert snapshot.years == []
    assert snapshot.submodels == []
    assert VehicleStore(jar).load() == Vehicle(make=Make(id="2", name="Honda"))


@pytest.mark.asyncio
async def test_every_transition_with_a_make_is_persisted(transport: FakeTransport) -> None:
    selector, _, jar = _selector(transport)
    await selector.activate()
    store = VehicleStore(jar)

    await selector.select_make("1")
    assert store.load() == Vehicle(make=Make(id="1", name="Toyota"))

    await selector.select_model("10")
    await selector.select_year("100")
    saved = store.load()
    assert saved is not None and saved.year is not None and saved.year.value == 2023


@pytest.mark.asyncio
async def test_clearing_a_level_clears_options_without_fetching(transport: FakeTransport) -> None:
    selector, _, _ = _selector(transport)
    await selector.activate()
    await selector.select_make("1")
    await selector.select_model("10")
    calls_before = len(transport.calls)

    await selector.select_model(None)

    assert selector.snapshot().years == []
    assert _names(selector.snapshot().models) == ["Camry", "Corolla"]
    assert len(transport.calls) == calls_before


@pytest.mark.asyncio
async def test_unknown_id_clears_the_level(transport: FakeTransport) -> None:
    selector, _, _ = _selector(transport)
    await selector.activate()
    await selector.select_make("1")

    await selector.select_make("999")

    assert selector.snapshot().make is None
    assert selector.snapshot().models == []


@pytest.mark.asyncio
async def test_stale_models_response_is_dropped() -> None:
    gate = asyncio.Event()
    routes = catalog_routes()
    serve_models = routes["vehicle/models"]

    async def slow_models(params: dict[str, str]) -> Any:
        if params["makeId"] == "1":
            await gate.wait()
        return serve_models(params)

    routes["vehicle/models"] = slow_models
    selector, _, _ = _selector(FakeTransport(routes))
    await selector.activate()

    first = asyncio.create_task(selector.select_make("1"))
    await asyncio.sleep(0)
    await selector.select_make("2")
    gate.set()
    await first

    snapshot = selector.snapshot()
    assert snapshot.make is not None and snapshot.make.id == "2"
    assert _names(snapshot.models) == ["Civic"]
    assert snapshot.loading is False


@pytest.mark.asyncio
async def test_stale_error_is_dropped() -> None:
    gate = asyncio.Event()
    routes = catalog_routes()
    serve_models = routes["vehicle/models"]

    async def flaky_models(params: dict[str, str]) -> Any:
        if params["makeId"] == "1":
            await gate.wait()
            raise FitSearchNetworkError("connection reset")
        return serve_models(params)

    routes["vehicle/models"] = flaky_models
    selector, _, _ = _selector(FakeTransport(routes))
    await selector.activate()

    first = asyncio.create_task(selector.select_make("1"))
    await asyncio.sleep(0)
    await selector.select_make("2")
    gate.set()
    await first

    assert selector.error is None
    assert _names(selector.snapshot().models) == ["Civic"]


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_options(transport: FakeTransport) -> None:
    selector, client, _ = _selector(transport)
    await selector.activate()

    transport.routes["vehicle/makes"] = FitSearchHttpError("HTTP error 500 from server", status_code=500, body="boom")
    client.clear_cache()
    await selector.refresh_makes()
    snapshot = selector.snapshot()

    assert _names(snapshot.makes) == ["Toyota", "Honda"]
    assert snapshot.error == "Failed to load makes: HTTP error 500 from server"
    assert snapshot.loading is False


@pytest.mark.asyncio
async def test_client_error_message_comes_from_body(transport: FakeTransport) -> None:
    transport.routes["vehicle/models"] = FitSearchHttpError(
        "HTTP error 400", status_code=400, body='{"error": "makeId parameter is required"}'
    )
    selector, _, _ = _selector(transport)
    await selector.activate()

    await selector.select_make("1")

    assert selector.error == "Failed to load models: makeId parameter is required"
    assert selector.snapshot().make is not None


@pytest.mark.asyncio
async def test_missing_shop_surfaces_context_message(transport: FakeTransport) -> None:
    selector, _, _ = _selector(transport, context=ExecutionContext(kind=ContextKind.STOREFRONT))

    await selector.activate()

    assert selector.error == CONTEXT_ERROR_MESSAGE
    assert selector.snapshot().makes == []
    assert transport.calls == []


@pytest.mark.asyncio
async def test_next_load_clears_previous_error(transport: FakeTransport) -> None:
    transport.routes["vehicle/models"] = FitSearchNetworkError("down")
    selector, _, _ = _selector(transport)
    await selector.activate()
    await selector.select_make("1")
    assert selector.error is not None

    transport.routes["vehicle/models"] = catalog_routes()["vehicle/models"]
    await selector.select_make("2")

    assert selector.error is None


@pytest.mark.asyncio
async def test_subscribers_receive_snapshots(transport: FakeTransport, caplog: pytest.LogCaptureFixture) -> None:
    selector, _, _ = _selector(transport)
    seen: list[SelectionSnapshot] = []

    def broken(snapshot: SelectionSnapshot) -> None:
        raise RuntimeError("render failed")

    selector.subscribe(broken)
    unsubscribe = selector.subscribe(seen.append)

    await selector.activate()

    assert any(snapshot.loading for snapshot in seen)
    assert _names(seen[-1].makes) == ["Toyota", "Honda"]
    assert "Selection subscriber failed" in caplog.text

    unsubscribe()
    count = len(seen)
    await selector.select_make("1")
    assert len(seen) == count


@pytest.mark.asyncio
async def test_clear_forgets_selection_and_cookie(transport: FakeTransport) -> None:
    selector, _, jar = _selector(transport)
    await selector.activate()
    await selector.select_make("1")
    await selector.select_model("10")

    selector.clear()
    snapshot = selector.snapshot()

    assert (snapshot.make, snapshot.model) == (None, None)
    assert snapshot.models == []
    assert _names(snapshot.makes) == ["Toyota", "Honda"]
    assert VehicleStore(jar).load() is None


@pytest.mark.asyncio
async def test_context_manager_owns_cache_lifecycle(transport: FakeTransport) -> None:
    selector, client, _ = _selector(transport)

    async with selector:
        assert len(client.cache) == 1

    assert len(client.cache) == 0


@pytest.mark.asyncio
async def test_search_requires_complete_vehicle(transport: FakeTransport) -> None:
    selector, _, _ = _selector(transport)
    await selector.activate()
    await selector.select_make("1")

    assert await selector.search() is None
    assert selector.error == "Select a make, model and year first"


@pytest.mark.asyncio
async def test_search_and_check_for_selected_vehicle(transport: FakeTransport) -> None:
    transport.routes["products/compatible"] = {
        "products": [_PRODUCT],
        "pagination": {"page": 1, "pageSize": 20, "totalItems": 1, "totalPages": 1},
    }
    transport.routes["fitment/check"] = {"product": _PRODUCT, "isFitment": True}
    selector, _, _ = _selector(transport)
    await selector.activate()
    await selector.select_make("1")
    await selector.select_model("10")
    await selector.select_year("100")

    page = await selector.search(page=1, limit=20)
    check = await selector.check_product("p1")

    assert page is not None and page.products[0].id == "p1"
    assert check is not None and check.is_fitment
    _, _, params = transport.calls[-1]
    assert params["yearId"] == "100"
    assert "submodelId" not in params


@pytest.mark.asyncio
async def test_failed_check_sets_error(transport: FakeTransport) -> None:
    transport.routes["fitment/check"] = FitSearchHttpError(
        "HTTP error 404", status_code=404, body='{"error": "Product not found"}'
    )
    jar = CookieJar()
    VehicleStore(jar).save(toyota_camry())
    selector, _, _ = _selector(transport, jar=jar)
    await selector.activate()

    assert await selector.check_product(handle="missing") is None
    assert selector.error == "Failed to check compatibility: Product not found"
    assert selector.loading is False


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def _settings_selector(transport: FakeTransport, store: VehicleStore) -> VehicleSelector:
    context = ExecutionContext(kind=ContextKind.STOREFRONT, shop=SHOP)
    client = FitSearchClient(FitSearchConfig(), context, transport=transport)
    return VehicleSelector(client, store, fetch_settings=True)


@pytest.mark.asyncio
async def test_disabled_remember_setting_skips_restore_and_save(transport: FakeTransport) -> None:
    transport.routes["settings"] = {"rememberVehicleEnabled": False, "rememberDays": 30}
    jar = CookieJar()
    VehicleStore(jar).save(toyota_camry())
    selector = _settings_selector(transport, VehicleStore(jar))

    await selector.activate()
    await selector.select_make("2")

    assert transport.endpoints()[:2] == ["settings", "vehicle/makes"]
    assert selector.settings is not None
    assert selector.remembers_vehicle is False
    assert selector.snapshot().make is not None and selector.snapshot().make.name == "Honda"
    assert VehicleStore(jar).load() == toyota_camry()


@pytest.mark.asyncio
async def test_remember_days_setting_sets_cookie_lifetime(transport: FakeTransport) -> None:
    transport.routes["settings"] = {"rememberVehicleEnabled": True, "rememberDays": 7}
    clock = _Clock()
    store = VehicleStore(CookieJar(clock=clock), clock=clock)
    selector = _settings_selector(transport, store)
    await selector.activate()

    await selector.select_make("1")

    clock.now += timedelta(days=6)
    assert store.load() == Vehicle(make=Make(id="1", name="Toyota"))
    clock.now += timedelta(days=1)
    assert store.load() is None


@pytest.mark.asyncio
async def test_settings_failure_keeps_defaults(transport: FakeTransport, caplog: pytest.LogCaptureFixture) -> None:
    transport.routes["settings"] = FitSearchNetworkError("down")
    jar = CookieJar()
    VehicleStore(jar).save(toyota_camry())
    selector = _settings_selector(transport, VehicleStore(jar))

    await selector.activate()

    assert selector.settings is None
    assert selector.remembers_vehicle is True
    assert selector.error is None
    assert selector.vehicle == toyota_camry()
    assert "Error fetching widget settings" in caplog.text


@pytest.mark.asyncio
async def test_inconsistent_direct_selection_is_not_remembered(
    transport: FakeTransport, caplog: pytest.LogCaptureFixture
) -> None:
    selector, _, jar = _selector(transport)
    await selector.activate()
    await selector.select_make("1")

    await selector.set_model(Model(id="20", name="Civic", make_id="2"))

    assert VehicleStore(jar).load() == Vehicle(make=Make(id="1", name="Toyota"))
    assert "Not remembering inconsistent vehicle selection" in caplog.text
    assert [year.value for year in selector.snapshot().years] == [2022]
