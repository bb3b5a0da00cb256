"""In-memory TTL cache for catalog responses."""

from __future__ import annotations

import copy
import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from cachetools import TTLCache

_logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS: float = 5 * 60
DEFAULT_MAX_ENTRIES = 512

_MISSING = object()


def cache_key(url: str, options: Mapping[str, Any] | None = None) -> str:
    """Build the cache key for a request: URL plus serialized options."""
    serialized = json.dumps(dict(options or {}), sort_keys=True, separators=(",", ":"), default=str)
    return f"{url}-{serialized}"


class ResponseCache:
    """Map of request key to decoded JSON body.

    Entries expire *ttl* seconds after they were stored and the least
    recently used entry is evicted once *maxsize* is reached.  Bodies are
    deep-copied in and out so callers can never mutate a cached value.

    Owned by a single client and injected where needed, so separate
    clients (and separate tests) never share entries.
    """

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        maxsize: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._entries: TTLCache[str, Any] = TTLCache(maxsize=maxsize, ttl=ttl, timer=clock)

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def maxsize(self) -> int:
        return int(self._entries.maxsize)

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _lookup(self, key: str) -> Any:
        return self._entries.get(key, _MISSING)

    def get(self, key: str) -> Any | None:
        data = self._lookup(key)
        if data is _MISSING:
            return None
        return copy.deepcopy(data)

    def set(self, key: str, data: Any) -> None:
        self._entries[key] = copy.deepcopy(data)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached body for *key*, fetching and storing it on a miss.

        Exceptions from *fetch* propagate and leave the cache untouched.
        """
        data = self._lookup(key)
        if data is not _MISSING:
            _logger.debug("Cache hit for %s", key)
            return copy.deepcopy(data)

        data = await fetch()
        self.set(key, data)
        return copy.deepcopy(data)
