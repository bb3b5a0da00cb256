"""Custom exception hierarchy for fitsearch."""

from __future__ import annotations

import json


class FitSearchError(Exception):
    """Base exception for all fitsearch errors."""


class FitSearchConfigError(FitSearchError):
    """Invalid or missing configuration."""


class FitSearchContextError(FitSearchError):
    """The request context (shop domain, page origin) could not be resolved.

    Distinct from network failures because the remedy differs: the page
    has to be reloaded inside the store so the shop can be discovered.
    """


class FitSearchStorageError(FitSearchError):
    """Cookie or key-value storage failure.

    Raised internally by the storage layer and always downgraded to a
    logged warning before it reaches a caller.
    """


class FitSearchTransportError(FitSearchError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class FitSearchNetworkError(FitSearchTransportError):
    """Connection failure before a response was received."""


class FitSearchTimeoutError(FitSearchTransportError):
    """A request attempt exceeded its deadline and was aborted."""


class FitSearchHttpError(FitSearchTransportError):
    """Server replied with a non-2xx status."""

    def __init__(self, message: str, *, url: str = "", status_code: int, body: str = "") -> None:
        self.body = body
        super().__init__(message, url=url, status_code=status_code)

    @property
    def status(self) -> int:
        assert self.status_code is not None  # noqa: S101
        return self.status_code

    @property
    def error_message(self) -> str:
        """The ``error`` field of a ``{"error": ...}`` body, else the raw body."""
        try:
            decoded = json.loads(self.body)
        except (TypeError, ValueError):
            return self.body
        if isinstance(decoded, dict) and isinstance(decoded.get("error"), str):
            return str(decoded["error"])
        return self.body

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


class FitSearchResponseError(FitSearchTransportError):
    """Response body was not JSON or did not have the expected shape."""


class FitSearchLookupError(FitSearchError):
    """A fitment lookup could not be performed."""


class FitSearchMissingParameterError(FitSearchLookupError):
    """A required lookup parameter (year id, product id/handle) is absent."""

    def __init__(self, parameter: str, message: str | None = None) -> None:
        self.parameter = parameter
        super().__init__(message or f"{parameter} parameter is required")


class FitSearchProductNotFoundError(FitSearchLookupError):
    """The product does not exist in the shop's catalog."""

    def __init__(self, reference: str, *, shop: str = "") -> None:
        self.reference = reference
        self.shop = shop
        super().__init__(f"Product not found: {reference}")
