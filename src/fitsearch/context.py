"""Execution context resolution.

The same endpoints are reached differently depending on where the caller
runs: inside the embedded admin (relative URLs on the app's own origin),
on a local development server, or on the public storefront (through the
Shopify app proxy).  The context is resolved once from the page URL and
then handed to the client; fetches never re-inspect the page.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import StrEnum
from urllib.parse import urlsplit

from fitsearch._constants import (
    ADMIN_HOST,
    DEFAULT_PROXY_SUBPATH,
    DEV_HOSTS,
    SHOP_DOMAIN_STORAGE_KEY,
)
from fitsearch.proxy import append_query, app_proxy_url, is_shopify_domain, normalize_path, shop_from_url
from fitsearch.storage import KeyValueStorage

_logger = logging.getLogger(__name__)


class ContextKind(StrEnum):
    ADMIN = "admin"
    STOREFRONT = "storefront"
    DEV = "dev"


@dataclasses.dataclass(frozen=True)
class ExecutionContext:
    """Where requests are issued from.

    Parameters
    ----------
    kind : ContextKind
        Embedded admin, local development or public storefront.
    shop : str or None
        ``*.myshopify.com`` domain of the current store, if known.
    proxy_base_path : str
        App proxy subpath used for storefront URLs.
    origin : str or None
        ``scheme://host[:port]`` of the page; relative URLs resolve
        against it.
    """

    kind: ContextKind
    shop: str | None = None
    proxy_base_path: str = DEFAULT_PROXY_SUBPATH
    origin: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.kind is ContextKind.ADMIN

    def with_shop(self, shop: str | None) -> ExecutionContext:
        return dataclasses.replace(self, shop=shop or None)

    def build_url(self, path: str, explicit_shop: str | None = None) -> str:
        """Return the URL to request *path* from this context.

        Admin and development contexts use relative paths; the storefront
        uses an absolute app proxy URL.  Without a shop the storefront
        falls back to the bare relative path.
        """
        shop = explicit_shop or self.shop
        relative_path = normalize_path(path)

        if self.kind in (ContextKind.ADMIN, ContextKind.DEV):
            url = append_query(relative_path, {"shop": shop}) if shop else relative_path
            _logger.debug("Using %s relative API URL: %s", self.kind, url)
            return url

        if shop:
            return app_proxy_url(relative_path, shop, self.proxy_base_path)

        _logger.warning("No shop available for API URL, using relative path: %s", relative_path)
        return relative_path


def _origin(url: str | None) -> str | None:
    if not url:
        return None
    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def _is_admin(page_url: str | None, referrer: str | None) -> bool:
    for candidate in (page_url, referrer):
        if not candidate:
            continue
        parsed = urlsplit(candidate)
        if "/admin/" in parsed.path or (parsed.hostname or "").lower() == ADMIN_HOST:
            return True
    return False


def discover_shop(
    page_url: str | None,
    *,
    referrer: str | None = None,
    storage: KeyValueStorage | None = None,
) -> str | None:
    """Find the shop domain from the page, its referrer or a previous visit."""
    shop = shop_from_url(page_url)
    if shop:
        return shop

    shop = shop_from_url(referrer)
    if shop:
        return shop

    if storage is not None:
        try:
            saved = storage.get_item(SHOP_DOMAIN_STORAGE_KEY)
        except Exception:
            _logger.warning("Error reading saved shop domain", exc_info=True)
            saved = None
        if is_shopify_domain(saved):
            return saved
        if saved:
            _logger.debug("Ignoring saved non-Shopify shop domain: %s", saved)

    _logger.warning("Could not determine shop from URL or context")
    return None


def resolve_context(
    page_url: str | None = None,
    *,
    referrer: str | None = None,
    explicit_shop: str | None = None,
    storage: KeyValueStorage | None = None,
    proxy_base_path: str = DEFAULT_PROXY_SUBPATH,
) -> ExecutionContext:
    """Resolve the :class:`ExecutionContext` for a page.

    A discovered shop is saved to *storage* so later page loads without
    any shop hint still resolve it.
    """
    shop = explicit_shop or discover_shop(page_url, referrer=referrer, storage=storage)

    if shop and storage is not None:
        try:
            storage.set_item(SHOP_DOMAIN_STORAGE_KEY, shop)
        except Exception:
            _logger.warning("Error saving shop domain", exc_info=True)

    host = (urlsplit(page_url).hostname or "") if page_url else ""
    if _is_admin(page_url, referrer):
        kind = ContextKind.ADMIN
    elif host in DEV_HOSTS:
        kind = ContextKind.DEV
    else:
        kind = ContextKind.STOREFRONT

    context = ExecutionContext(
        kind=kind,
        shop=shop,
        proxy_base_path=proxy_base_path,
        origin=_origin(page_url),
    )
    _logger.debug("Resolved execution context: %s", context)
    return context
