"""Client configuration for fitsearch."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fitsearch._constants import DEFAULT_API_PREFIX, DEFAULT_PROXY_SUBPATH, DEFAULT_VEHICLE_TTL_DAYS, USER_AGENT
from fitsearch.exceptions import FitSearchConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class FitSearchConfig:
    """Client configuration.

    Parameters
    ----------
    proxy_subpath : str
        App proxy subpath configured for the app in the Partner Dashboard.
        Storefront requests go to ``https://{shop}/apps/{proxy_subpath}``.
    api_prefix : str
        Path prefix of the app's REST endpoints.
    request_timeout : float
        Deadline in seconds for a single request attempt.  An attempt
        that exceeds it is aborted and not retried.
    max_retries : int
        Total number of attempts for a request (not additional retries).
    initial_retry_delay : float
        Backoff before the second attempt, in seconds.  Doubles after
        every failed attempt.
    cache_ttl : float
        Seconds a cached catalog response stays valid.
    cache_max_entries : int
        Upper bound on cached responses; the least recently used entry
        is evicted first.
    cache_enabled : bool
        Serve repeated catalog lookups from the in-memory cache.
    vehicle_ttl_days : int
        Lifetime of the remembered-vehicle cookie.
    user_agent : str
        ``User-Agent`` header sent with every request.
    """

    proxy_subpath: str = DEFAULT_PROXY_SUBPATH
    api_prefix: str = DEFAULT_API_PREFIX
    request_timeout: float = 10.0
    max_retries: int = 3
    initial_retry_delay: float = 0.5
    cache_ttl: float = 5 * 60
    cache_max_entries: int = 512
    cache_enabled: bool = True
    vehicle_ttl_days: int = DEFAULT_VEHICLE_TTL_DAYS
    user_agent: str = USER_AGENT

    def __post_init__(self) -> None:
        if self.request_timeout <= 0:
            raise FitSearchConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.max_retries < 1:
            raise FitSearchConfigError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.initial_retry_delay < 0:
            raise FitSearchConfigError(f"initial_retry_delay must not be negative, got {self.initial_retry_delay}")
        if self.cache_ttl < 0:
            raise FitSearchConfigError(f"cache_ttl must not be negative, got {self.cache_ttl}")
        if self.cache_max_entries < 1:
            raise FitSearchConfigError(f"cache_max_entries must be at least 1, got {self.cache_max_entries}")
        if self.vehicle_ttl_days < 0:
            raise FitSearchConfigError(f"vehicle_ttl_days must not be negative, got {self.vehicle_ttl_days}")
        if not self.proxy_subpath.strip("/"):
            raise FitSearchConfigError("proxy_subpath must be non-empty")

    @classmethod
    def from_env(cls, **overrides: Any) -> FitSearchConfig:
        """Create configuration from environment variables.

        Reads optional ``FITSEARCH_*`` variables. Explicit keyword
        arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "FITSEARCH_PROXY_SUBPATH": "proxy_subpath",
            "FITSEARCH_API_PREFIX": "api_prefix",
        }
        _ENV_FLOAT_MAP = {
            "FITSEARCH_REQUEST_TIMEOUT": "request_timeout",
            "FITSEARCH_INITIAL_RETRY_DELAY": "initial_retry_delay",
            "FITSEARCH_CACHE_TTL": "cache_ttl",
        }
        _ENV_INT_MAP = {
            "FITSEARCH_MAX_RETRIES": "max_retries",
            "FITSEARCH_CACHE_MAX_ENTRIES": "cache_max_entries",
            "FITSEARCH_VEHICLE_TTL_DAYS": "vehicle_ttl_days",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    config_kwargs[field_name] = float(val)
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None:
                    config_kwargs[field_name] = int(val)
        except ValueError as exc:
            raise FitSearchConfigError(f"Invalid numeric environment value: {exc}") from exc

        if "cache_enabled" not in overrides:
            config_kwargs["cache_enabled"] = _env_bool(env.get("FITSEARCH_CACHE_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
