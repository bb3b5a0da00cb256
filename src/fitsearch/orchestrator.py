"""Dependent Make → Model → Year → Submodel selection flow.

:class:`VehicleSelector` ties together the selection state machine, the
fetch client and the remembered-vehicle store:

* on activation it restores the remembered vehicle and loads makes;
* every level change resets deeper levels and loads the next level's
  options for the new parent;
* every settled selection with a make is remembered, unless the
  merchant's widget settings turn remembering off.

Fetches may finish out of order.  Each option list has a generation
counter that is bumped whenever its parent changes; a fetch result (or
error) for an older generation is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fitsearch._constants import CONTEXT_ERROR_MESSAGE
from fitsearch.client import FitSearchClient
from fitsearch.exceptions import FitSearchContextError, FitSearchError, FitSearchHttpError
from fitsearch.models.fitment import CompatibilityResult, CompatibleProducts
from fitsearch.models.settings import WidgetSettings
from fitsearch.models.vehicle import Make, Model, Submodel, Vehicle, Year
from fitsearch.state.selection import SelectionLevel, VehicleSelection
from fitsearch.storage import VehicleStore

_logger = logging.getLogger(__name__)

_LEVEL_LABELS: dict[SelectionLevel, str] = {
    SelectionLevel.MAKE: "makes",
    SelectionLevel.MODEL: "models",
    SelectionLevel.YEAR: "years",
    SelectionLevel.SUBMODEL: "submodels",
}


class SelectionSnapshot(BaseModel):
    """Read model exposed to presentation layers."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    make: Make | None = None
    model: Model | None = None
    year: Year | None = None
    submodel: Submodel | None = None
    makes: list[Make] = Field(default_factory=list)
    models: list[Model] = Field(default_factory=list)
    years: list[Year] = Field(default_factory=list)
    submodels: list[Submodel] = Field(default_factory=list)
    loading: bool = False
    error: str | None = None
    is_complete: bool = False


def describe_error(exc: FitSearchError, action: str) -> str:
    """User-facing message for a failed *action*."""
    if isinstance(exc, FitSearchContextError):
        return CONTEXT_ERROR_MESSAGE
    if isinstance(exc, FitSearchHttpError) and exc.is_client_error:
        return f"Failed to {action}: {exc.error_message}"
    return f"Failed to {action}: {exc}"


class VehicleSelector:
    """Drive the dependent dropdown cascade.

    Usage::

        async with VehicleSelector(client, VehicleStore(cookies)) as selector:
            await selector.select_make(make_id)
            snapshot = selector.snapshot()
    """

    def __init__(
        self,
        client: FitSearchClient,
        store: VehicleStore | None = None,
        *,
        vehicle_ttl_days: int | None = None,
        fetch_settings: bool = False,
    ) -> None:
        self._client = client
        self._store = store if store is not None else VehicleStore(None)
        self._ttl_overridden = vehicle_ttl_days is not None
        self._vehicle_ttl_days = vehicle_ttl_days if vehicle_ttl_days is not None else client.config.vehicle_ttl_days
        self._fetch_settings = fetch_settings
        self._remember = True
        self._settings: WidgetSettings | None = None
        self._selection = VehicleSelection(self._store)
        self._options: dict[SelectionLevel, list[Any]] = {level: [] for level in SelectionLevel}
        self._generations: dict[SelectionLevel, int] = dict.fromkeys(SelectionLevel, 0)
        self._pending = 0
        self._error: str | None = None
        self._subscribers: list[Callable[[SelectionSnapshot], None]] = []
        self._fetchers: dict[SelectionLevel, Callable[[str], Awaitable[list[Any]]]] = {
            SelectionLevel.MODEL: client.get_models,
            SelectionLevel.YEAR: client.get_years,
            SelectionLevel.SUBMODEL: client.get_submodels,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> VehicleSelector:
        await self.activate()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    async def activate(self) -> None:
        """Restore the remembered vehicle, then load makes.

        Option lists below each restored level are loaded too, so a
        hydrated selection shows its models, years and submodels.  With
        ``fetch_settings`` the widget settings are loaded first.
        """
        if self._fetch_settings:
            await self.load_settings()
        saved = self._store.load() if self._remember else None
        if saved is not None:
            _logger.debug("Restoring saved vehicle: %s", saved.display_name())
            self._selection.restore(saved)
            self._notify()
        await self.refresh_makes()

        for level in (SelectionLevel.MAKE, SelectionLevel.MODEL, SelectionLevel.YEAR):
            value = self._selection.level(level)
            if value is None or level.child is None:
                break
            await self._load_options(level.child, value.id)

    async def load_settings(self) -> WidgetSettings | None:
        """Fetch and apply the widget settings.

        A failure is logged and the current behaviour is kept.
        """
        try:
            settings = await self._client.get_settings()
        except FitSearchError as exc:
            _logger.warning("Error fetching widget settings, keeping defaults: %s", exc)
            return None
        self.apply_settings(settings)
        return settings

    def apply_settings(self, settings: WidgetSettings) -> None:
        """Honour the merchant's remember-vehicle settings.

        An explicit ``vehicle_ttl_days`` passed to the constructor wins
        over ``remember_days``.
        """
        self._settings = settings
        self._remember = settings.remember_vehicle_enabled
        if not self._ttl_overridden:
            self._vehicle_ttl_days = settings.remember_days
        _logger.debug("Applied widget settings: remember=%s days=%s", self._remember, self._vehicle_ttl_days)

    def close(self) -> None:
        """Drop cached responses and subscribers."""
        self._client.clear_cache()
        self._subscribers.clear()

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    @property
    def selection(self) -> VehicleSelection:
        return self._selection

    @property
    def vehicle(self) -> Vehicle:
        return self._selection.vehicle

    @property
    def settings(self) -> WidgetSettings | None:
        return self._settings

    @property
    def remembers_vehicle(self) -> bool:
        return self._remember and self._store.available

    @property
    def loading(self) -> bool:
        return self._pending > 0

    @property
    def error(self) -> str | None:
        return self._error

    def options(self, level: SelectionLevel) -> list[Any]:
        return list(self._options[level])

    def is_complete(self) -> bool:
        return self._selection.is_complete()

    def snapshot(self) -> SelectionSnapshot:
        return SelectionSnapshot(
            make=self._selection.make,
            model=self._selection.model,
            year=self._selection.year,
            submodel=self._selection.submodel,
            makes=list(self._options[SelectionLevel.MAKE]),
            models=list(self._options[SelectionLevel.MODEL]),
            years=list(self._options[SelectionLevel.YEAR]),
            submodels=list(self._options[SelectionLevel.SUBMODEL]),
            loading=self.loading,
            error=self._error,
            is_complete=self.is_complete(),
        )

    def subscribe(self, callback: Callable[[SelectionSnapshot], None]) -> Callable[[], None]:
        """Call *callback* with a fresh snapshot after every change.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                _logger.warning("Selection subscriber failed", exc_info=True)

    # ------------------------------------------------------------------
    # Option loading
    # ------------------------------------------------------------------

    def _begin_load(self) -> None:
        self._pending += 1
        self._error = None
        self._notify()

    def _end_load(self) -> None:
        self._pending = max(0, self._pending - 1)

    async def refresh_makes(self) -> None:
        """Load the make options."""
        generation = self._generations[SelectionLevel.MAKE]
        self._begin_load()
        try:
            makes = await self._client.get_makes()
        except FitSearchError as exc:
            self._end_load()
            if generation == self._generations[SelectionLevel.MAKE]:
                _logger.warning("Error fetching makes: %s", exc)
                self._error = describe_error(exc, "load makes")
            self._notify()
            return
        self._end_load()
        if generation == self._generations[SelectionLevel.MAKE]:
            self._options[SelectionLevel.MAKE] = makes
        self._notify()

    async def _load_options(self, level: SelectionLevel, parent_id: str) -> None:
        generation = self._generations[level]
        label = _LEVEL_LABELS[level]
        _logger.debug("Fetching %s for parent id %s", label, parent_id)
        self._begin_load()
        try:
            options = await self._fetchers[level](parent_id)
        except FitSearchError as exc:
            self._end_load()
            if generation != self._generations[level]:
                _logger.debug("Dropping stale %s error for parent id %s", label, parent_id)
            else:
                _logger.warning("Error fetching %s: %s", label, exc)
                self._error = describe_error(exc, f"load {label}")
            self._notify()
            return

        self._end_load()
        if generation != self._generations[level]:
            _logger.debug("Dropping stale %s response for parent id %s", label, parent_id)
        else:
            self._options[level] = options
        self._notify()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if not self._remember or self._selection.make is None:
            return
        try:
            vehicle = self._selection.vehicle
        except ValueError:
            # Levels set directly through set_* may not form a chain.
            _logger.warning("Not remembering inconsistent vehicle selection", exc_info=True)
            return
        self._store.save(vehicle, self._vehicle_ttl_days)

    async def _change(self, level: SelectionLevel, value: Any) -> None:
        # Synchronous part: applied in call order before any await.
        self._selection.set_level(level, value)
        for deeper in level.deeper():
            self._generations[deeper] += 1
            self._options[deeper] = []
        self._persist()
        self._notify()

        child = level.child
        if value is not None and child is not None:
            await self._load_options(child, value.id)

    async def set_make(self, make: Make | None) -> None:
        await self._change(SelectionLevel.MAKE, make)

    async def set_model(self, model: Model | None) -> None:
        await self._change(SelectionLevel.MODEL, model)

    async def set_year(self, year: Year | None) -> None:
        await self._change(SelectionLevel.YEAR, year)

    async def set_submodel(self, submodel: Submodel | None) -> None:
        await self._change(SelectionLevel.SUBMODEL, submodel)

    def _find(self, level: SelectionLevel, record_id: str | None) -> Any:
        if not record_id:
            return None
        return next((option for option in self._options[level] if option.id == record_id), None)

    async def select_make(self, make_id: str | None) -> None:
        """Select a make from the loaded options by id; unknown ids clear it."""
        await self.set_make(self._find(SelectionLevel.MAKE, make_id))

    async def select_model(self, model_id: str | None) -> None:
        await self.set_model(self._find(SelectionLevel.MODEL, model_id))

    async def select_year(self, year_id: str | None) -> None:
        await self.set_year(self._find(SelectionLevel.YEAR, year_id))

    async def select_submodel(self, submodel_id: str | None) -> None:
        await self.set_submodel(self._find(SelectionLevel.SUBMODEL, submodel_id))

    def clear(self) -> None:
        """Forget the selection, the remembered vehicle and dependent options."""
        self._selection.clear()
        for level in SelectionLevel.MAKE.deeper():
            self._generations[level] += 1
            self._options[level] = []
        self._error = None
        self._notify()

    # ------------------------------------------------------------------
    # Lookups for the selected vehicle
    # ------------------------------------------------------------------

    async def search(self, *, page: int = 1, limit: int = 20) -> CompatibleProducts | None:
        """Products that fit the selected vehicle, or ``None`` on failure."""
        if not self.is_complete():
            self._error = "Select a make, model and year first"
            self._notify()
            return None
        self._begin_load()
        try:
            result = await self._client.get_compatible_products(self.vehicle, page=page, limit=limit)
        except FitSearchError as exc:
            _logger.warning("Error searching compatible products: %s", exc)
            self._error = describe_error(exc, "search products")
            return None
        finally:
            self._end_load()
            self._notify()
        return result

    async def check_product(
        self,
        product_id: str | None = None,
        *,
        handle: str | None = None,
    ) -> CompatibilityResult | None:
        """Whether a product fits the selected vehicle, or ``None`` on failure."""
        self._begin_load()
        try:
            result = await self._client.check_fitment(self.vehicle, product_id=product_id, handle=handle)
        except FitSearchError as exc:
            _logger.warning("Error checking product fitment: %s", exc)
            self._error = describe_error(exc, "check compatibility")
            return None
        finally:
            self._end_load()
            self._notify()
        return result
