"""Data models for the fitment catalog endpoints."""

from fitsearch.models._base import CatalogId, FitSearchModel, coerce_id
from fitsearch.models.analytics import ProductView, SearchLog
from fitsearch.models.fitment import (
    CompatibilityResult,
    CompatibleProducts,
    Fitment,
    FitmentMake,
    FitmentModel,
    FitmentQuery,
    FitmentSubmodel,
    FitmentYear,
    Pagination,
    Product,
    ProductFitments,
    ProductSummary,
)
from fitsearch.models.settings import WidgetSettings
from fitsearch.models.vehicle import Make, Model, Submodel, Vehicle, Year

__all__ = [
    "CatalogId",
    "CompatibilityResult",
    "CompatibleProducts",
    "FitSearchModel",
    "Fitment",
    "FitmentMake",
    "FitmentModel",
    "FitmentQuery",
    "FitmentSubmodel",
    "FitmentYear",
    "Make",
    "Model",
    "Pagination",
    "Product",
    "ProductFitments",
    "ProductSummary",
    "ProductView",
    "SearchLog",
    "Submodel",
    "Vehicle",
    "WidgetSettings",
    "Year",
    "coerce_id",
]
