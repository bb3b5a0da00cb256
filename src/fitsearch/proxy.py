"""Shopify app proxy helpers.

Storefront pages cannot call the app's host directly; requests go through
``https://{shop}/apps/{subpath}/...`` which Shopify forwards to the app
with a signed query string.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit

from fitsearch._constants import ADMIN_HOST, DEFAULT_PROXY_SUBPATH, SHOPIFY_DOMAIN_SUFFIX

_logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Ensure *path* starts with a single slash."""
    return path if path.startswith("/") else f"/{path}"


def append_query(url: str, params: Mapping[str, str]) -> str:
    """Append *params* to *url*, respecting an existing query string."""
    if not params:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(dict(params))}"


def domain_matches(host: str | None, domain: str) -> bool:
    """True when *host* is *domain* itself or one of its subdomains."""
    if not host:
        return False
    host = host.lower().rstrip(".")
    return host == domain or host.endswith(f".{domain}")


def is_shopify_domain(host: str | None) -> bool:
    return domain_matches(host, SHOPIFY_DOMAIN_SUFFIX)


def _valid_shop(shop: str | None) -> str | None:
    if not shop:
        return None
    if not is_shopify_domain(shop):
        _logger.debug("Ignoring non-Shopify shop domain: %s", shop)
        return None
    return shop.lower()


def app_proxy_url(path: str, shop: str | None, subpath: str = DEFAULT_PROXY_SUBPATH) -> str:
    """Build the storefront app proxy URL for *path*.

    Falls back to the bare path (with a warning) when *shop* is missing
    or is not a ``myshopify.com`` domain.
    """
    full_path = normalize_path(path)
    if not shop:
        _logger.warning("No shop provided for app proxy URL, using direct path: %s", full_path)
        return full_path
    if not is_shopify_domain(shop):
        _logger.warning("Invalid shop domain for app proxy URL: %s", shop)
        return full_path

    base_url = f"https://{shop}/apps/{subpath.strip('/')}"
    url = append_query(f"{base_url}{full_path}", {"shop": shop})
    _logger.debug("Built app proxy URL: %s", url)
    return url


def _store_path_shop(path: str) -> str | None:
    """``/store/<name>/...`` admin paths → ``<name>.myshopify.com``."""
    parts = path.split("/")
    if "store" in parts:
        index = parts.index("store")
        if index < len(parts) - 1 and parts[index + 1]:
            return f"{parts[index + 1]}.{SHOPIFY_DOMAIN_SUFFIX}"
    return None


def shop_from_url(url: str | None) -> str | None:
    """Discover a shop domain from a page or referrer URL.

    Checks the ``shop`` query parameter, the admin ``/store/<name>`` path
    and a ``*.myshopify.com`` hostname, in that order.
    """
    if not url:
        return None
    try:
        parsed = urlsplit(url)
    except ValueError:
        _logger.debug("Unparsable URL while looking for shop: %s", url, exc_info=True)
        return None

    query = dict(parse_qsl(parsed.query))
    shop = _valid_shop(query.get("shop"))
    if shop:
        return shop

    host = (parsed.hostname or "").lower()
    if host == ADMIN_HOST:
        shop = _store_path_shop(parsed.path)
        if shop:
            return shop

    if is_shopify_domain(host):
        return host
    return None


def extract_shop_domain(
    url: str,
    *,
    referrer: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> str | None:
    """Extract the shop domain from an incoming app proxy request.

    Order: ``shop`` query parameter, ``*.myshopify.com`` hostname, a
    ``/shop/<domain>`` path segment, the referrer hostname and finally the
    ``X-Shopify-Shop-Domain`` header.
    """
    parsed = urlsplit(url)
    query = dict(parse_qsl(parsed.query))
    shop = _valid_shop(query.get("shop"))
    if shop:
        return shop

    host = (parsed.hostname or "").lower()
    if is_shopify_domain(host):
        return host

    parts = parsed.path.split("/")
    if "shop" in parts:
        index = parts.index("shop")
        if index < len(parts) - 1 and is_shopify_domain(parts[index + 1]):
            return parts[index + 1].lower()

    if referrer:
        referrer_host = urlsplit(referrer).hostname
        if is_shopify_domain(referrer_host):
            return referrer_host

    if headers:
        for key, value in headers.items():
            if key.lower() == "x-shopify-shop-domain":
                shop = _valid_shop(value)
                if shop:
                    return shop
    return None


def verify_app_proxy_signature(url: str, secret: str) -> bool:
    """Check the ``signature`` parameter Shopify adds to app proxy requests.

    The signature is the hex HMAC-SHA256 of the remaining query parameters
    sorted by key and URL-encoded.
    """
    params = parse_qsl(urlsplit(url).query, keep_blank_values=True)
    signature = next((value for key, value in params if key == "signature"), None)
    if not signature:
        return False

    remaining = sorted(((key, value) for key, value in params if key != "signature"), key=lambda item: item[0])
    message = urlencode(remaining)
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest, signature)
