"""Helpers for safe debug logging.

Admin requests carry session tokens in ``Authorization`` headers,
storefront requests carry cookies, and app proxy URLs carry a signed
query string.  This module masks those values before they reach a log.
"""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

REDACTED = "<redacted>"

_SENSITIVE_HEADERS: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "x-shopify-access-token",
    }
)

_SENSITIVE_PARAMS: frozenset[str] = frozenset(
    {
        "signature",
        "hmac",
        "token",
        "access_token",
        "id_token",
        "session",
        "sessiontoken",
        "shopify_admin_token",
        "secret",
    }
)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of *headers* with credential values masked."""
    return {key: REDACTED if key.lower() in _SENSITIVE_HEADERS else value for key, value in headers.items()}


def redact_url(url: str) -> str:
    """Mask signature and token query parameters in *url*.

    URLs without such parameters are returned unchanged.
    """
    parsed = urlsplit(url)
    if not parsed.query:
        return url
    params = parse_qsl(parsed.query, keep_blank_values=True)
    if not any(key.lower() in _SENSITIVE_PARAMS for key, _ in params):
        return url
    masked = [(key, REDACTED if key.lower() in _SENSITIVE_PARAMS else value) for key, value in params]
    return urlunsplit(parsed._replace(query=urlencode(masked, safe="<>")))
