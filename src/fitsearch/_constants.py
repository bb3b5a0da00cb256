"""Internal constants shared across the library."""

from importlib.metadata import PackageNotFoundError, version

try:
    VERSION = version("fitsearch")
except PackageNotFoundError:
    VERSION = "0+local"

DEFAULT_PROXY_SUBPATH = "vehicle-search-widget"
DEFAULT_API_PREFIX = "/api"
USER_AGENT = f"fitsearch/{VERSION}"

#: Cookie holding the last selected vehicle (URL-encoded JSON).
VEHICLE_COOKIE_NAME = "fitSearchSelectedVehicle"
DEFAULT_VEHICLE_TTL_DAYS = 30

#: Key-value storage entries (the browser's localStorage / sessionStorage).
SHOP_DOMAIN_STORAGE_KEY = "shopify_shop_domain"
ADMIN_TOKEN_STORAGE_KEY = "shopify_admin_token"

SHOPIFY_DOMAIN_SUFFIX = "myshopify.com"
SHOPIFY_HOST_SUFFIX = "shopify.com"
ADMIN_HOST = "admin.shopify.com"
DEV_HOSTS: frozenset[str] = frozenset({"localhost", "127.0.0.1"})

#: Statuses retried even though they are 4xx.
RETRYABLE_CLIENT_STATUSES: frozenset[int] = frozenset({408, 429})

CONTEXT_ERROR_MESSAGE = "Could not determine the shop for this request; reload the page inside the store"
INVALID_FORMAT_MESSAGE = "Invalid data format received from server"
