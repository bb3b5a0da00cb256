"""Analytics records written by fitment lookups."""

from __future__ import annotations

from fitsearch.models._base import CatalogId, FitSearchModel
from fitsearch.models.fitment import FitmentQuery


class ProductView(FitSearchModel):
    """A shopper checked a product against their vehicle."""

    shop: str
    product_id: CatalogId
    make_id: CatalogId | None = None
    model_id: CatalogId | None = None
    year_id: CatalogId | None = None
    submodel_id: CatalogId | None = None
    session_id: str | None = None

    @classmethod
    def for_query(
        cls,
        *,
        shop: str,
        product_id: str,
        query: FitmentQuery,
        session_id: str | None = None,
    ) -> ProductView:
        return cls(
            shop=shop,
            product_id=product_id,
            make_id=query.make_id,
            model_id=query.model_id,
            year_id=query.year_id,
            submodel_id=query.submodel_id,
            session_id=session_id,
        )


class SearchLog(FitSearchModel):
    """A shopper searched for products compatible with their vehicle."""

    shop: str
    make_id: CatalogId | None = None
    model_id: CatalogId | None = None
    year_id: CatalogId | None = None
    submodel_id: CatalogId | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    search_results: int = 0
    successful: bool = False
    session_id: str | None = None
