"""Four-level vehicle selection with cascade resets.

Setting a level always clears every deeper level, so the selection can
never hold a model without its make, a year without its model, or a
submodel without its year.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

from fitsearch.models.vehicle import Make, Model, Submodel, Vehicle, Year

if TYPE_CHECKING:
    from fitsearch.storage import VehicleStore


class SelectionLevel(StrEnum):
    MAKE = "make"
    MODEL = "model"
    YEAR = "year"
    SUBMODEL = "submodel"

    @property
    def depth(self) -> int:
        return _ORDER.index(self)

    @property
    def child(self) -> SelectionLevel | None:
        index = self.depth + 1
        return _ORDER[index] if index < len(_ORDER) else None

    @property
    def parent(self) -> SelectionLevel | None:
        index = self.depth - 1
        return _ORDER[index] if index >= 0 else None

    def deeper(self) -> tuple[SelectionLevel, ...]:
        """Levels below this one, nearest first."""
        return _ORDER[self.depth + 1 :]


_ORDER: tuple[SelectionLevel, ...] = (
    SelectionLevel.MAKE,
    SelectionLevel.MODEL,
    SelectionLevel.YEAR,
    SelectionLevel.SUBMODEL,
)


class VehicleSelection:
    """Mutable selection state.

    The machine does not check that a model belongs to the current make;
    callers pick options from lists fetched for the current parent.
    """

    def __init__(self, store: VehicleStore | None = None) -> None:
        self._store = store
        self._values: dict[SelectionLevel, Any] = dict.fromkeys(_ORDER)

    @property
    def make(self) -> Make | None:
        return self._values[SelectionLevel.MAKE]

    @property
    def model(self) -> Model | None:
        return self._values[SelectionLevel.MODEL]

    @property
    def year(self) -> Year | None:
        return self._values[SelectionLevel.YEAR]

    @property
    def submodel(self) -> Submodel | None:
        return self._values[SelectionLevel.SUBMODEL]

    def level(self, level: SelectionLevel) -> Any:
        return self._values[level]

    def _set(self, level: SelectionLevel, value: Any) -> None:
        parent = level.parent
        if value is not None and parent is not None and self._values[parent] is None:
            raise ValueError(f"Cannot set {level} before {parent}")
        self._values[level] = value
        for deeper in level.deeper():
            self._values[deeper] = None

    def set_make(self, make: Make | None) -> None:
        self._set(SelectionLevel.MAKE, make)

    def set_model(self, model: Model | None) -> None:
        self._set(SelectionLevel.MODEL, model)

    def set_year(self, year: Year | None) -> None:
        self._set(SelectionLevel.YEAR, year)

    def set_submodel(self, submodel: Submodel | None) -> None:
        self._set(SelectionLevel.SUBMODEL, submodel)

    def set_level(self, level: SelectionLevel, value: Any) -> None:
        self._set(level, value)

    def clear(self) -> None:
        """Reset every level and forget the persisted vehicle."""
        self._values = dict.fromkeys(_ORDER)
        if self._store is not None:
            self._store.save(None)

    def restore(self, vehicle: Vehicle) -> None:
        """Load a consistent vehicle without cascade resets."""
        self._values = {
            SelectionLevel.MAKE: vehicle.make,
            SelectionLevel.MODEL: vehicle.model,
            SelectionLevel.YEAR: vehicle.year,
            SelectionLevel.SUBMODEL: vehicle.submodel,
        }

    def is_complete(self) -> bool:
        return self.make is not None and self.model is not None and self.year is not None

    @property
    def vehicle(self) -> Vehicle:
        return Vehicle(make=self.make, model=self.model, year=self.year, submodel=self.submodel)
