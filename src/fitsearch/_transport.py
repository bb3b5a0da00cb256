"""HTTP transport with retry, backoff, per-attempt timeout and auth headers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol
from urllib.parse import urljoin, urlsplit

import aiohttp

from fitsearch._constants import ADMIN_TOKEN_STORAGE_KEY, RETRYABLE_CLIENT_STATUSES, SHOPIFY_HOST_SUFFIX
from fitsearch._redact import redact_headers, redact_url
from fitsearch.config import FitSearchConfig
from fitsearch.context import ExecutionContext
from fitsearch.exceptions import (
    FitSearchContextError,
    FitSearchHttpError,
    FitSearchNetworkError,
    FitSearchResponseError,
    FitSearchTimeoutError,
    FitSearchTransportError,
)
from fitsearch.proxy import domain_matches, is_shopify_domain
from fitsearch.storage import CookieJar, KeyValueStorage

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the client.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        body: Mapping[str, Any] | None = None,
    ) -> Any:
        ...


def is_retryable(exc: FitSearchTransportError) -> bool:
    """Transport failures and 5xx/408/429 replies are worth another attempt."""
    if isinstance(exc, FitSearchTimeoutError):
        return False
    if isinstance(exc, FitSearchHttpError):
        return exc.status >= 500 or exc.status in RETRYABLE_CLIENT_STATUSES
    return isinstance(exc, FitSearchNetworkError)


class HttpTransport:
    """aiohttp transport bound to an :class:`ExecutionContext`."""

    def __init__(
        self,
        config: FitSearchConfig,
        context: ExecutionContext,
        http_session: aiohttp.ClientSession,
        *,
        session_storage: KeyValueStorage | None = None,
        cookies: CookieJar | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._context = context
        self._http = http_session
        self._session_storage = session_storage
        self._cookies = cookies
        self._sleep = sleep

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @context.setter
    def context(self, value: ExecutionContext) -> None:
        self._context = value

    # ------------------------------------------------------------------
    # Request preparation
    # ------------------------------------------------------------------

    def _absolute_url(self, url: str) -> str:
        if urlsplit(url).scheme:
            return url
        if not self._context.origin:
            raise FitSearchContextError(f"Cannot resolve relative URL {url!r} without a page origin")
        return urljoin(self._context.origin, url)

    def _auth_headers(self) -> dict[str, str]:
        """Bearer token from session storage when embedded in the admin."""
        if not self._context.is_admin or self._session_storage is None:
            return {}
        try:
            token = self._session_storage.get_item(ADMIN_TOKEN_STORAGE_KEY)
        except Exception:
            _logger.warning("Error accessing token storage", exc_info=True)
            return {}
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _includes_credentials(self, target: str) -> bool:
        """Same-origin and Shopify-hosted targets receive cookies."""
        parsed = urlsplit(target)
        host = parsed.hostname
        if is_shopify_domain(host) or domain_matches(host, SHOPIFY_HOST_SUFFIX):
            return True
        origin = self._context.origin
        return origin is not None and f"{parsed.scheme}://{parsed.netloc}" == origin

    def _build_headers(self, target: str) -> dict[str, str]:
        headers: dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self._config.user_agent,
        }
        headers.update(self._auth_headers())
        if self._cookies is not None and self._includes_credentials(target):
            page_host = urlsplit(self._context.origin).hostname if self._context.origin else None
            cookie = self._cookies.header(urlsplit(target).hostname or "", default_domain=page_host)
            if cookie:
                headers["Cookie"] = cookie
        return headers

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def _attempt(self, method: str, target: str, body: str | None) -> str:
        headers = self._build_headers(target)
        shown = redact_url(target)
        _logger.debug("%s %s headers=%s", method, shown, redact_headers(headers))
        try:
            async with asyncio.timeout(self._config.request_timeout):
                async with self._http.request(method, target, data=body, headers=headers) as resp:
                    if self._cookies is not None and self._includes_credentials(target):
                        self._cookies.update_from_headers(
                            resp.headers.getall("Set-Cookie", []),
                            host=urlsplit(target).hostname,
                        )
                    text = await resp.text()
                    status = resp.status
        except TimeoutError as exc:
            raise FitSearchTimeoutError(
                f"Request to {shown} timed out after {self._config.request_timeout}s",
                url=target,
            ) from exc
        except aiohttp.ClientError as exc:
            raise FitSearchNetworkError(f"Request to {shown} failed: {exc}", url=target) from exc

        if not 200 <= status < 300:
            raise FitSearchHttpError(
                f"HTTP error {status} from {shown}: {text[:200]}",
                url=target,
                status_code=status,
                body=text,
            )
        return text

    async def fetch_with_retry(
        self,
        method: str,
        url: str,
        *,
        body: Mapping[str, Any] | None = None,
        max_retries: int | None = None,
        initial_delay: float | None = None,
    ) -> str:
        """Perform a request, retrying transient failures with exponential backoff.

        Timeouts and non-retryable client errors end the loop immediately.
        After the last attempt the most recent error is raised.
        """
        attempts = self._config.max_retries if max_retries is None else max_retries
        delay = self._config.initial_retry_delay if initial_delay is None else initial_delay
        target = self._absolute_url(url)
        payload = json.dumps(dict(body), separators=(",", ":")) if body is not None else None

        last_error: FitSearchTransportError | None = None
        for attempt in range(1, attempts + 1):
            _logger.debug("Fetch attempt %d/%d for %s", attempt, attempts, redact_url(target))
            try:
                return await self._attempt(method, target, payload)
            except FitSearchTransportError as exc:
                last_error = exc
                _logger.debug("Fetch error (attempt %d/%d): %s", attempt, attempts, exc)
                if not is_retryable(exc) or attempt == attempts:
                    break
                _logger.debug("Retrying %s in %.3fs", redact_url(target), delay)
                await self._sleep(delay)
                delay *= 2

        if last_error is None:
            raise FitSearchNetworkError(f"Failed to fetch {redact_url(target)} after retries", url=target)
        raise last_error

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        body: Mapping[str, Any] | None = None,
    ) -> Any:
        text = await self.fetch_with_retry(method, url, body=body)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise FitSearchResponseError(f"Invalid JSON from {redact_url(url)}: {text[:200]}", url=url) from exc
