"""fitsearch - Async Python client for Shopify Year/Make/Model vehicle fitment search."""

from fitsearch._constants import VERSION as __version__
from fitsearch._cache import ResponseCache
from fitsearch.client import FitSearchClient
from fitsearch.compatibility import CompatibilityChecker, fitment_matches, is_fitment
from fitsearch.config import FitSearchConfig
from fitsearch.context import ContextKind, ExecutionContext, resolve_context
from fitsearch.exceptions import (
    FitSearchConfigError,
    FitSearchContextError,
    FitSearchError,
    FitSearchHttpError,
    FitSearchLookupError,
    FitSearchMissingParameterError,
    FitSearchNetworkError,
    FitSearchProductNotFoundError,
    FitSearchResponseError,
    FitSearchStorageError,
    FitSearchTimeoutError,
    FitSearchTransportError,
)
from fitsearch.models import (
    CompatibilityResult,
    CompatibleProducts,
    Fitment,
    FitmentQuery,
    Make,
    Model,
    Pagination,
    Product,
    ProductFitments,
    Submodel,
    Vehicle,
    WidgetSettings,
    Year,
)
from fitsearch.orchestrator import SelectionSnapshot, VehicleSelector
from fitsearch.state import SelectionLevel, VehicleSelection
from fitsearch.storage import CookieJar, MemoryStorage, VehicleStore

__all__ = [
    "__version__",
    "CompatibilityChecker",
    "CompatibilityResult",
    "CompatibleProducts",
    "ContextKind",
    "CookieJar",
    "ExecutionContext",
    "FitSearchClient",
    "FitSearchConfig",
    "FitSearchConfigError",
    "FitSearchContextError",
    "FitSearchError",
    "FitSearchHttpError",
    "FitSearchLookupError",
    "FitSearchMissingParameterError",
    "FitSearchNetworkError",
    "FitSearchProductNotFoundError",
    "FitSearchResponseError",
    "FitSearchStorageError",
    "FitSearchTimeoutError",
    "FitSearchTransportError",
    "Fitment",
    "FitmentQuery",
    "Make",
    "MemoryStorage",
    "Model",
    "Pagination",
    "Product",
    "ProductFitments",
    "ResponseCache",
    "SelectionLevel",
    "SelectionSnapshot",
    "Submodel",
    "Vehicle",
    "VehicleSelection",
    "VehicleSelector",
    "VehicleStore",
    "WidgetSettings",
    "Year",
    "fitment_matches",
    "is_fitment",
    "resolve_context",
]
