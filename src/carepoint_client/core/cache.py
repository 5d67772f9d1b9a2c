"""In-memory stale-while-revalidate caching for catalog reads.

This module provides:
- Cache key helpers that ignore filters which are not actually set
- ``RevalidatingCache``: timestamped entries that stay readable after they go
  stale, plus one shared in-flight request per logical operation

Entries never expire on their own. Callers decide whether an entry is fresh
enough to skip the network; a stale entry is still served while the refresh
runs. Instances are owned by the store that uses them, so tests build their
own and nothing is shared between them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import Callable, Coroutine, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from cachetools import LRUCache

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ALL_CATEGORIES = "all"
_RESERVED_PARAMS = frozenset({"page", "limit"})


def effective_filters(filters: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop filters that are not set: None, "", NaN and ``category="all"``."""
    if not filters:
        return {}
    result: dict[str, Any] = {}
    for name, value in filters.items():
        if name in _RESERVED_PARAMS or _is_unset(value):
            continue
        if name == "category" and value == ALL_CATEGORIES:
            continue
        result[name] = value
    return result


def make_cache_key(page: int, filters: Mapping[str, Any] | None = None) -> str:
    """Serialize page and effective filters; key order does not matter."""
    params = {**effective_filters(filters), "page": page}
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


def build_query_params(
    page: int, filters: Mapping[str, Any] | None, limit: int
) -> dict[str, str]:
    params = {"page": str(page), "limit": str(limit)}
    for name, value in effective_filters(filters).items():
        params[name] = _format_param(value)
    return params


def _is_unset(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    return isinstance(value, float) and math.isnan(value)


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    data: T
    params_key: str
    timestamp: float


class RevalidatingCache(Generic[T]):
    """Timestamped cache with per-operation request deduplication.

    ``maxsize`` bounds the number of distinct parameter keys kept; the least
    recently used key is dropped first. An entry is only ever replaced as a
    whole by ``store``, so a failed refresh leaves the previous one in place.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        maxsize: int = 1,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._entries: LRUCache[str, CacheEntry[T]] = LRUCache(maxsize=maxsize)
        self._clock = clock
        self._name = name
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._hits = 0
        self._misses = 0
        self._fetches = 0
        self._failures = 0

    def lookup(self, key: str) -> CacheEntry[T] | None:
        entry = self._entries.get(key)
        if entry is not None:
            self._hits += 1
            logger.debug(
                "%s cache hit key=%s (hits=%d, misses=%d)",
                self._name,
                key,
                self._hits,
                self._misses,
            )
        else:
            self._misses += 1
            logger.debug(
                "%s cache miss key=%s (hits=%d, misses=%d)",
                self._name,
                key,
                self._hits,
                self._misses,
            )
        return entry

    def is_fresh(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.timestamp < self._ttl_seconds

    def store(self, key: str, data: T) -> CacheEntry[T]:
        entry = CacheEntry(data=data, params_key=key, timestamp=self._clock())
        self._entries[key] = entry
        return entry

    def in_flight(self, operation: str) -> bool:
        return operation in self._in_flight

    async def run_deduplicated(
        self,
        operation: str,
        factory: Callable[[], Coroutine[Any, Any, R]],
        *,
        force: bool = False,
    ) -> R:
        """Await the shared request for ``operation``, starting it if needed.

        Concurrent callers get the same result or exception. ``force`` always
        starts a new request, which then becomes the shared one. A caller that
        is cancelled does not cancel the request for the others.
        """
        task = self._in_flight.get(operation)
        if task is None or force:
            self._fetches += 1
            task = asyncio.create_task(self._run(operation, factory))
            self._in_flight[operation] = task
        else:
            logger.debug("%s joining in-flight %s request", self._name, operation)
        return await asyncio.shield(task)

    async def _run(
        self, operation: str, factory: Callable[[], Coroutine[Any, Any, R]]
    ) -> R:
        try:
            return await factory()
        except Exception:
            self._failures += 1
            raise
        finally:
            # A forced request may have replaced this one as the shared task.
            if self._in_flight.get(operation) is asyncio.current_task():
                del self._in_flight[operation]

    def clear(self) -> None:
        self._entries.clear()

    @property
    def stats(self) -> dict[str, int]:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "fetches": self._fetches,
            "failures": self._failures,
            "size": len(self._entries),
        }


__all__ = [
    "ALL_CATEGORIES",
    "CacheEntry",
    "RevalidatingCache",
    "build_query_params",
    "effective_filters",
    "make_cache_key",
]
