"""Client-side storage: cookies, key-value storage and the remembered vehicle.

:class:`CookieJar` plays the role of the browser cookie store and
:class:`MemoryStorage` that of ``localStorage``/``sessionStorage``.
:class:`VehicleStore` keeps the shopper's last selection in a cookie so it
survives page loads.  Storage problems never reach the caller: they are
logged and the operation becomes a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from http.cookies import CookieError, SimpleCookie
from typing import Protocol
from urllib.parse import quote, unquote

from pydantic import ValidationError

from fitsearch._constants import (
    DEFAULT_VEHICLE_TTL_DAYS,
    SHOPIFY_DOMAIN_SUFFIX,
    SHOPIFY_HOST_SUFFIX,
    VEHICLE_COOKIE_NAME,
)
from fitsearch.exceptions import FitSearchStorageError
from fitsearch.models.vehicle import Vehicle
from fitsearch.proxy import domain_matches

_logger = logging.getLogger(__name__)

#: Browsers reject cookies whose name+value exceed 4 KiB.
MAX_COOKIE_SIZE = 4096

#: ``Domain`` attributes that are never honoured.
SHARED_COOKIE_SUFFIXES: frozenset[str] = frozenset({SHOPIFY_DOMAIN_SUFFIX, SHOPIFY_HOST_SUFFIX})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class KeyValueStorage(Protocol):
    """Structural interface of ``localStorage``/``sessionStorage``."""

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """Dict-backed :class:`KeyValueStorage`."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class _StoredCookie:
    value: str
    expires_at: datetime | None = None
    domain: str | None = None
    include_subdomains: bool = False

    def sent_to(self, host: str, default_domain: str | None) -> bool:
        domain = self.domain or default_domain
        if domain is None:
            return False
        if self.include_subdomains:
            return domain_matches(host, domain)
        return host.lower() == domain


class CookieJar:
    """Named cookie values with optional expiry and domain.

    Expired cookies are dropped lazily when read, and writing a cookie
    whose expiry is already in the past deletes it, matching how browsers
    treat ``document.cookie`` assignments.

    A cookie received in a response is bound to the host that issued it
    (or to its ``Domain`` attribute when that attribute covers the host).
    Cookies set without a domain belong to the page itself and are only
    sent to the page's host.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._cookies: dict[str, _StoredCookie] = {}

    def _live(self, name: str) -> _StoredCookie | None:
        cookie = self._cookies.get(name)
        if cookie is None:
            return None
        if cookie.expires_at is not None and cookie.expires_at <= self._clock():
            self._cookies.pop(name, None)
            return None
        return cookie

    def get(self, name: str) -> str | None:
        cookie = self._live(name)
        return cookie.value if cookie is not None else None

    def set(
        self,
        name: str,
        value: str,
        *,
        expires: datetime | None = None,
        domain: str | None = None,
        include_subdomains: bool = False,
    ) -> None:
        if len(name) + len(value) > MAX_COOKIE_SIZE:
            raise FitSearchStorageError(f"Cookie {name!r} exceeds {MAX_COOKIE_SIZE} bytes")
        if expires is not None and expires.tzinfo is None:
            expires = expires.replace(tzinfo=UTC)
        if expires is not None and expires <= self._clock():
            self._cookies.pop(name, None)
            return
        self._cookies[name] = _StoredCookie(
            value=value,
            expires_at=expires,
            domain=domain.lower() if domain else None,
            include_subdomains=include_subdomains and domain is not None,
        )

    def delete(self, name: str) -> None:
        self._cookies.pop(name, None)

    def names(self) -> list[str]:
        return [name for name in list(self._cookies) if self._live(name) is not None]

    def header(self, host: str | None = None, *, default_domain: str | None = None) -> str:
        """Render live cookies as a ``Cookie`` request header value.

        With *host*, only cookies scoped to that host are included;
        domain-less cookies count as belonging to *default_domain*.
        """
        default_domain = default_domain.lower() if default_domain else None
        parts = []
        for name in self.names():
            cookie = self._cookies[name]
            if host is None or cookie.sent_to(host, default_domain):
                parts.append(f"{name}={cookie.value}")
        return "; ".join(parts)

    def update_from_headers(self, raw_cookies: Iterable[str], *, host: str | None = None) -> None:
        """Ingest ``Set-Cookie`` header values received from *host*."""
        for raw in raw_cookies:
            cookie: SimpleCookie = SimpleCookie()
            try:
                cookie.load(raw)
            except CookieError:
                _logger.debug("Ignoring malformed Set-Cookie header", exc_info=True)
                continue
            for key, morsel in cookie.items():
                domain, include_subdomains = _cookie_scope(morsel["domain"], host)
                try:
                    self.set(
                        key,
                        morsel.value,
                        expires=self._morsel_expiry(morsel["max-age"], morsel["expires"]),
                        domain=domain,
                        include_subdomains=include_subdomains,
                    )
                except FitSearchStorageError:
                    _logger.debug("Ignoring oversized cookie %s from %s", key, host)

    def _morsel_expiry(self, max_age: str, expires: str) -> datetime | None:
        if max_age:
            try:
                return self._clock() + timedelta(seconds=int(max_age))
            except ValueError:
                pass
        if expires:
            try:
                return parsedate_to_datetime(expires)
            except (TypeError, ValueError):
                return None
        return None


def _cookie_scope(attribute: str, host: str | None) -> tuple[str | None, bool]:
    """Resolve where a received cookie may be sent: ``(domain, include_subdomains)``."""
    if host is None:
        return None, False
    host = host.lower()
    domain = attribute.strip().lstrip(".").lower()
    if not domain:
        return host, False
    # A shared suffix would hand the cookie to every shop.
    if domain in SHARED_COOKIE_SUFFIXES or not domain_matches(host, domain):
        _logger.debug("Ignoring Domain=%s on cookie from %s", attribute, host)
        return host, False
    return domain, True


class VehicleStore:
    """Remember the last vehicle selection across page loads.

    ``cookies=None`` means there is no browser context (server-side
    rendering, batch jobs); every operation is then a no-op.
    """

    def __init__(
        self,
        cookies: CookieJar | None,
        *,
        cookie_name: str = VEHICLE_COOKIE_NAME,
        default_ttl_days: int = DEFAULT_VEHICLE_TTL_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cookies = cookies
        self._cookie_name = cookie_name
        self._default_ttl_days = default_ttl_days
        self._clock = clock

    @property
    def available(self) -> bool:
        return self._cookies is not None

    def load(self) -> Vehicle | None:
        """Return the stored vehicle, or ``None`` if absent or unreadable."""
        if self._cookies is None:
            return None
        try:
            stored = self._cookies.get(self._cookie_name)
            if not stored:
                return None
            vehicle = Vehicle.model_validate_json(unquote(stored))
        except (ValidationError, ValueError, FitSearchStorageError):
            _logger.warning("Error loading vehicle from storage", exc_info=True)
            return None
        if vehicle.is_empty:
            return None
        return vehicle

    def save(self, vehicle: Vehicle | None, ttl_days: int | None = None) -> None:
        """Store *vehicle*; ``None`` invalidates any stored value."""
        if self._cookies is None:
            return
        days = self._default_ttl_days if ttl_days is None else ttl_days
        try:
            if vehicle is None or vehicle.is_empty:
                self._cookies.set(self._cookie_name, "", expires=self._clock() - timedelta(days=1))
                return
            payload = quote(vehicle.model_dump_json(by_alias=True), safe="")
            self._cookies.set(self._cookie_name, payload, expires=self._clock() + timedelta(days=days))
        except FitSearchStorageError:
            # The previous vehicle no longer matches the selection.
            self._cookies.delete(self._cookie_name)
            _logger.warning("Error saving vehicle to storage", exc_info=True)
