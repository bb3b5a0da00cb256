"""Vehicle hierarchy models: Make → Model → Year → Submodel."""

from __future__ import annotations

from pydantic import Field, model_validator

from fitsearch.models._base import CatalogId, FitSearchModel


class Make(FitSearchModel):
    """Root of the vehicle hierarchy (e.g. ``Toyota``)."""

    id: CatalogId
    name: str


class Model(FitSearchModel):
    """A model belonging to exactly one make."""

    id: CatalogId
    name: str
    make_id: CatalogId


class Year(FitSearchModel):
    """A model year belonging to exactly one model."""

    id: CatalogId
    value: int = Field(ge=1000, le=9999)
    """Four-digit calendar year."""
    model_id: CatalogId


class Submodel(FitSearchModel):
    """A trim level belonging to exactly one year (e.g. ``SE``)."""

    id: CatalogId
    name: str
    year_id: CatalogId


class Vehicle(FitSearchModel):
    """A (possibly partial) vehicle selection.

    Levels form a chain: a model requires its make, a year its model and
    a submodel its year, each linked by the parent id.  Submodel is never
    required for completeness ("All Submodels").
    """

    make: Make | None = None
    model: Model | None = None
    year: Year | None = None
    submodel: Submodel | None = None

    @model_validator(mode="after")
    def _check_chain(self) -> Vehicle:
        if self.model is not None:
            if self.make is None:
                raise ValueError("model is set but make is not")
            if self.model.make_id != self.make.id:
                raise ValueError(f"model {self.model.id} does not belong to make {self.make.id}")
        if self.year is not None:
            if self.model is None:
                raise ValueError("year is set but model is not")
            if self.year.model_id != self.model.id:
                raise ValueError(f"year {self.year.id} does not belong to model {self.model.id}")
        if self.submodel is not None:
            if self.year is None:
                raise ValueError("submodel is set but year is not")
            if self.submodel.year_id != self.year.id:
                raise ValueError(f"submodel {self.submodel.id} does not belong to year {self.year.id}")
        return self

    @property
    def is_complete(self) -> bool:
        """Make, model and year are all selected."""
        return self.make is not None and self.model is not None and self.year is not None

    @property
    def is_empty(self) -> bool:
        return self.make is None

    def display_name(self) -> str:
        """Human readable label, e.g. ``"2023 Toyota Camry SE"``."""
        if self.make is None:
            return ""
        parts: list[str] = []
        if self.year is not None:
            parts.append(str(self.year.value))
        parts.append(self.make.name)
        if self.model is not None:
            parts.append(self.model.name)
        if self.submodel is not None:
            parts.append(self.submodel.name)
        return " ".join(parts)

    def query_params(self) -> dict[str, str]:
        """Ids of the selected levels as endpoint query parameters."""
        if self.make is None:
            return {}
        params = {"makeId": self.make.id}
        if self.model is not None:
            params["modelId"] = self.model.id
        if self.year is not None:
            params["yearId"] = self.year.id
        if self.submodel is not None:
            params["submodelId"] = self.submodel.id
        return params
