"""High-level async client for the vehicle fitment endpoints."""

from __future__ import annotations

import logging
import secrets
from typing import Any, TypeVar
from urllib.parse import quote, urlencode

import aiohttp
from pydantic import BaseModel, ValidationError

from fitsearch._cache import ResponseCache, cache_key
from fitsearch._constants import CONTEXT_ERROR_MESSAGE, INVALID_FORMAT_MESSAGE
from fitsearch._transport import HttpTransport, Transport
from fitsearch.config import FitSearchConfig
from fitsearch.context import ContextKind, ExecutionContext
from fitsearch.exceptions import (
    FitSearchContextError,
    FitSearchError,
    FitSearchHttpError,
    FitSearchMissingParameterError,
    FitSearchProductNotFoundError,
    FitSearchResponseError,
)
from fitsearch.models.fitment import CompatibilityResult, CompatibleProducts, ProductFitments
from fitsearch.models.settings import WidgetSettings
from fitsearch.models.vehicle import Make, Model, Submodel, Vehicle, Year
from fitsearch.storage import CookieJar, KeyValueStorage

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def new_session_id() -> str:
    """Random analytics session id."""
    return secrets.token_hex(16)


class FitSearchClient:
    """Async client for the app's vehicle and fitment endpoints.

    Usage::

        context = resolve_context(page_url, storage=local_storage)
        async with FitSearchClient(config, context) as client:
            makes = await client.get_makes()
            models = await client.get_models(makes[0].id)
    """

    def __init__(
        self,
        config: FitSearchConfig,
        context: ExecutionContext,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        cache: ResponseCache | None = None,
        session_storage: KeyValueStorage | None = None,
        cookies: CookieJar | None = None,
        session_id: str | None = None,
    ) -> None:
        self._config = config
        self._context = context
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._owns_transport = transport is None
        if cache is None:
            cache = ResponseCache(ttl=config.cache_ttl, maxsize=config.cache_max_entries)
        self._cache = cache
        self._session_storage = session_storage
        self._cookies = cookies
        self._session_id = session_id or new_session_id()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FitSearchClient:
        if self._owns_transport:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(
                self._config,
                self._context,
                self._http_session,
                session_storage=self._session_storage,
                cookies=self._cookies,
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if self._owns_transport:
            self._transport = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> FitSearchConfig:
        return self._config

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def session_id(self) -> str:
        return self._session_id

    def set_shop(self, shop: str | None) -> None:
        """Replace the shop domain used to build request URLs."""
        self._context = self._context.with_shop(shop)
        if isinstance(self._transport, HttpTransport):
            self._transport.context = self._context

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise FitSearchError("Client not initialized. Use 'async with FitSearchClient(...) as client:'")
        return self._transport

    def _url(self, endpoint: str, params: dict[str, str] | None = None) -> str:
        if self._context.kind is ContextKind.STOREFRONT and not self._context.shop:
            raise FitSearchContextError(CONTEXT_ERROR_MESSAGE)
        path = f"{self._config.api_prefix.rstrip('/')}/{endpoint.lstrip('/')}"
        if params:
            path = f"{path}?{urlencode(params)}"
        return self._context.build_url(path)

    async def _get(
        self,
        endpoint: str,
        params: dict[str, str] | None = None,
        *,
        cached: bool = False,
        list_key: str | None = None,
    ) -> Any:
        url = self._url(endpoint, params)
        transport = self._require_transport()

        async def _fetch() -> Any:
            data = await transport.request_json("GET", url)
            # Check the envelope before the body can reach the cache.
            if list_key is not None and not (isinstance(data, dict) and isinstance(data.get(list_key), list)):
                _logger.error("Unexpected %s data format: %r", list_key, data)
                raise FitSearchResponseError(INVALID_FORMAT_MESSAGE, url=url)
            return data

        if cached and self._config.cache_enabled:
            return await self._cache.get_or_fetch(cache_key(url, {"method": "GET"}), _fetch)
        return await _fetch()

    @staticmethod
    def _parse_list(data: dict[str, Any], key: str, model: type[M], url_hint: str) -> list[M]:
        items = data[key]
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as exc:
            raise FitSearchResponseError(f"{INVALID_FORMAT_MESSAGE}: {exc}", url=url_hint) from exc

    @staticmethod
    def _parse_model(data: Any, model: type[M], url_hint: str) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise FitSearchResponseError(f"{INVALID_FORMAT_MESSAGE}: {exc}", url=url_hint) from exc

    async def _list(self, endpoint: str, key: str, model: type[M], params: dict[str, str] | None = None) -> list[M]:
        data = await self._get(endpoint, params, cached=True, list_key=key)
        return self._parse_list(data, key, model, endpoint)

    # ------------------------------------------------------------------
    # Vehicle hierarchy
    # ------------------------------------------------------------------

    async def get_makes(self) -> list[Make]:
        """Fetch all makes."""
        return await self._list("vehicle/makes", "makes", Make)

    async def get_models(self, make_id: str) -> list[Model]:
        """Fetch the models of a make."""
        if not make_id:
            raise FitSearchMissingParameterError("makeId")
        return await self._list("vehicle/models", "models", Model, {"makeId": make_id})

    async def get_years(self, model_id: str) -> list[Year]:
        """Fetch the years of a model."""
        if not model_id:
            raise FitSearchMissingParameterError("modelId")
        return await self._list("vehicle/years", "years", Year, {"modelId": model_id})

    async def get_submodels(self, year_id: str) -> list[Submodel]:
        """Fetch the submodels of a year."""
        if not year_id:
            raise FitSearchMissingParameterError("yearId")
        return await self._list("vehicle/submodels", "submodels", Submodel, {"yearId": year_id})

    # ------------------------------------------------------------------
    # Fitment lookups
    # ------------------------------------------------------------------

    async def check_fitment(
        self,
        vehicle: Vehicle,
        *,
        product_id: str | None = None,
        handle: str | None = None,
        session_id: str | None = None,
    ) -> CompatibilityResult:
        """Ask whether a product fits *vehicle*.

        Every call is logged server-side as a product view, so results are
        never cached.
        """
        if vehicle.year is None:
            raise FitSearchMissingParameterError("yearId", "Select a year first")
        if not product_id and not handle:
            raise FitSearchMissingParameterError("productId", "Either productId or handle parameter is required")

        params: dict[str, str] = {}
        if product_id:
            params["productId"] = product_id
        else:
            params["handle"] = str(handle)
        params.update(vehicle.query_params())
        params["sessionId"] = session_id or self._session_id

        data = await self._get("fitment/check", params)
        return self._parse_model(data, CompatibilityResult, "fitment/check")

    async def get_compatible_products(
        self,
        vehicle: Vehicle,
        *,
        page: int = 1,
        limit: int = 20,
        session_id: str | None = None,
    ) -> CompatibleProducts:
        """Fetch a page of products that fit *vehicle*."""
        if vehicle.year is None:
            raise FitSearchMissingParameterError("yearId", "Select a year first")

        params = vehicle.query_params()
        params["page"] = str(page)
        params["limit"] = str(limit)
        params["sessionId"] = session_id or self._session_id

        data = await self._get("products/compatible", params)
        return self._parse_model(data, CompatibleProducts, "products/compatible")

    async def get_product_fitments(self, product_id: str) -> ProductFitments:
        """Fetch a product with every vehicle it fits.

        Raises:
            FitSearchMissingParameterError: *product_id* is empty.
            FitSearchProductNotFoundError: the shop has no such product.
        """
        if not product_id:
            raise FitSearchMissingParameterError("productId", "Product ID is required")

        endpoint = f"products/{quote(str(product_id), safe='')}/fitments"
        try:
            data = await self._get(endpoint)
        except FitSearchHttpError as exc:
            if exc.status == 404:
                raise FitSearchProductNotFoundError(str(product_id), shop=self._context.shop or "") from exc
            raise
        return self._parse_model(data, ProductFitments, endpoint)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> WidgetSettings:
        """Fetch the merchant's widget settings."""
        data = await self._get("settings", cached=True)
        return self._parse_model(data, WidgetSettings, "settings")
