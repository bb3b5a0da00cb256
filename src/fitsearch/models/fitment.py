"""Fitment, product and compatibility payload models."""

from __future__ import annotations

from pydantic import Field

from fitsearch.models._base import CatalogId, FitSearchModel
from fitsearch.models.vehicle import Vehicle

UNKNOWN_LABEL = "Unknown"
ALL_SUBMODELS_LABEL = "All Submodels"


class FitmentMake(FitSearchModel):
    name: str = ""


class FitmentModel(FitSearchModel):
    name: str = ""
    make: FitmentMake | None = None


class FitmentYear(FitSearchModel):
    """Year of a fitment with its model and make embedded."""

    value: int | None = None
    model: FitmentModel | None = None


class FitmentSubmodel(FitSearchModel):
    name: str = ""


class Fitment(FitSearchModel):
    """Join record asserting that a product fits a year.

    A ``submodel_id`` of ``None`` means the fitment covers every submodel
    of the year.  ``year`` and ``submodel`` are only present when the
    endpoint embeds the related records.
    """

    id: CatalogId | None = None
    product_id: CatalogId | None = None
    year_id: CatalogId
    submodel_id: CatalogId | None = None
    notes: str | None = None
    year: FitmentYear | None = None
    submodel: FitmentSubmodel | None = None

    def describe(self) -> dict[str, str]:
        """Labels for one row of a fitment table."""
        year = self.year
        model = year.model if year is not None else None
        make = model.make if model is not None else None
        submodel = self.submodel
        return {
            "year": str(year.value) if year is not None and year.value is not None else UNKNOWN_LABEL,
            "make": make.name if make is not None and make.name else UNKNOWN_LABEL,
            "model": model.name if model is not None and model.name else UNKNOWN_LABEL,
            "submodel": submodel.name if submodel is not None and submodel.name else ALL_SUBMODELS_LABEL,
        }


class Product(FitSearchModel):
    id: CatalogId
    title: str = ""
    handle: str = ""
    shop: str | None = None
    fitments: list[Fitment] = Field(default_factory=list)


class ProductSummary(FitSearchModel):
    id: CatalogId
    title: str = ""
    handle: str = ""


class ProductFitments(FitSearchModel):
    """Reply of ``/api/products/{productId}/fitments``."""

    product: ProductSummary
    fitments: list[Fitment] = Field(default_factory=list)


class Pagination(FitSearchModel):
    page: int = 1
    page_size: int = 20
    total_items: int = 0
    total_pages: int = 0


class CompatibilityResult(FitSearchModel):
    """Reply of ``/api/fitment/check``."""

    product: Product
    is_fitment: bool


class CompatibleProducts(FitSearchModel):
    """Reply of ``/api/products/compatible``."""

    products: list[Product] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class FitmentQuery(FitSearchModel):
    """Vehicle identifiers used to look up fitments."""

    year_id: CatalogId | None = None
    submodel_id: CatalogId | None = None
    make_id: CatalogId | None = None
    model_id: CatalogId | None = None

    @classmethod
    def from_vehicle(cls, vehicle: Vehicle) -> FitmentQuery:
        return cls(
            make_id=vehicle.make.id if vehicle.make else None,
            model_id=vehicle.model.id if vehicle.model else None,
            year_id=vehicle.year.id if vehicle.year else None,
            submodel_id=vehicle.submodel.id if vehicle.submodel else None,
        )
