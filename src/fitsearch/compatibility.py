"""Fitment matching and the server-side compatibility lookups.

The matching rule is deliberately narrow: a fitment with no submodel only
matches when the shopper did not pick a submodel either.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from fitsearch.exceptions import FitSearchMissingParameterError, FitSearchProductNotFoundError
from fitsearch.models.analytics import ProductView, SearchLog
from fitsearch.models.fitment import (
    CompatibilityResult,
    CompatibleProducts,
    Fitment,
    FitmentQuery,
    Product,
)

_logger = logging.getLogger(__name__)


def fitment_matches(fitment: Fitment, year_id: str, submodel_id: str | None = None) -> bool:
    if fitment.year_id != year_id:
        return False
    if not submodel_id:
        return True
    return fitment.submodel_id is not None and fitment.submodel_id == submodel_id


def is_fitment(fitments: Iterable[Fitment], year_id: str, submodel_id: str | None = None) -> bool:
    """True when any fitment covers the year (and submodel, if one was given)."""
    return any(fitment_matches(fitment, year_id, submodel_id) for fitment in fitments)


class ProductCatalog(Protocol):
    """Read access to a shop's products and their fitments."""

    async def get_product(self, product_id: str, shop: str) -> Product | None:
        ...

    async def get_product_by_handle(self, handle: str, shop: str) -> Product | None:
        ...

    async def get_compatible_products(
        self,
        shop: str,
        query: FitmentQuery,
        page: int,
        limit: int,
    ) -> CompatibleProducts:
        ...


class AnalyticsRecorder(Protocol):
    async def create_product_view(self, view: ProductView) -> None:
        ...

    async def create_search_log(self, log: SearchLog) -> None:
        ...


class CompatibilityChecker:
    """Answer fitment questions for one catalog and record analytics.

    Analytics writes are best effort: a failing recorder is logged and the
    lookup result is still returned.
    """

    def __init__(self, catalog: ProductCatalog, analytics: AnalyticsRecorder) -> None:
        self._catalog = catalog
        self._analytics = analytics

    async def _resolve_product(self, shop: str, product_id: str | None, handle: str | None) -> Product:
        if product_id:
            product = await self._catalog.get_product(product_id, shop)
            reference = product_id
        else:
            product = await self._catalog.get_product_by_handle(str(handle), shop)
            reference = str(handle)
        if product is None:
            raise FitSearchProductNotFoundError(reference, shop=shop)
        return product

    async def check(
        self,
        shop: str,
        query: FitmentQuery,
        *,
        product_id: str | None = None,
        handle: str | None = None,
        session_id: str | None = None,
    ) -> CompatibilityResult:
        """Check whether a product fits the queried vehicle.

        Raises:
            FitSearchMissingParameterError: no year, or neither a product id
                nor a handle.
            FitSearchProductNotFoundError: the product is not in *shop*.
        """
        if not query.year_id:
            raise FitSearchMissingParameterError("yearId")
        if not product_id and not handle:
            raise FitSearchMissingParameterError("productId", "Either productId or handle parameter is required")

        product = await self._resolve_product(shop, product_id, handle)

        view = ProductView.for_query(shop=shop, product_id=product.id, query=query, session_id=session_id)
        try:
            await self._analytics.create_product_view(view)
        except Exception:
            _logger.warning("Failed to record product view for %s", product.id, exc_info=True)

        matched = is_fitment(product.fitments, query.year_id, query.submodel_id)
        _logger.debug(
            "Fitment check shop=%s product=%s year=%s submodel=%s -> %s",
            shop,
            product.id,
            query.year_id,
            query.submodel_id,
            matched,
        )
        return CompatibilityResult(product=product, is_fitment=matched)

    async def search(
        self,
        shop: str,
        query: FitmentQuery,
        *,
        page: int = 1,
        limit: int = 20,
        ip_address: str | None = None,
        user_agent: str | None = None,
        session_id: str | None = None,
    ) -> CompatibleProducts:
        """Page through the products that fit the queried vehicle."""
        if not query.year_id:
            raise FitSearchMissingParameterError("yearId")

        result = await self._catalog.get_compatible_products(shop, query, page, limit)
        count = len(result.products)

        log = SearchLog(
            shop=shop,
            make_id=query.make_id,
            model_id=query.model_id,
            year_id=query.year_id,
            submodel_id=query.submodel_id,
            ip_address=ip_address,
            user_agent=user_agent,
            search_results=count,
            successful=count > 0,
            session_id=session_id,
        )
        try:
            await self._analytics.create_search_log(log)
        except Exception:
            _logger.warning("Failed to record search log for shop %s", shop, exc_info=True)
        return result
