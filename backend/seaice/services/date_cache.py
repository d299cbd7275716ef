"""Time-boxed, single-flight cache for resolved observation dates.

Crawling a remote date catalog is expensive, so results are kept for a
freshness window (six hours by default) and concurrent requests for the same
key share one in-flight resolution instead of starting a second crawl.

The clock is injected so staleness can be tested without sleeping.

Example:
    >>> cache = DateCatalogCache(ttl_seconds=6 * 60 * 60)
    >>> dates = await cache.get_or_resolve(root_url, crawl)
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 6 * 60 * 60
DEFAULT_EMPTY_TTL_SECONDS = 5 * 60


@dataclasses.dataclass(frozen=True)
class DateCatalogEntry:
    """A resolved date list and the time it was resolved at.

    ``dates`` is deduplicated and sorted ascending.
    """

    resolved_at: float
    dates: tuple[str, ...]


class DateCatalogCache:
    """Process-wide cache of resolved date lists keyed by catalog identity.

    Entries are evicted only by staleness; there is no capacity bound. An
    empty date list usually means the upstream served something other than
    a catalog (a maintenance page, say), so it is kept only for the shorter
    ``empty_ttl_seconds``.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        empty_ttl_seconds: float = DEFAULT_EMPTY_TTL_SECONDS,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.empty_ttl_seconds = min(empty_ttl_seconds, ttl_seconds)
        self._clock = clock
        self._entries: dict[str, DateCatalogEntry] = {}
        self._inflight: dict[str, asyncio.Task[tuple[str, ...]]] = {}

    def get(self, key: str) -> list[str] | None:
        """Return the fresh cached dates for ``key``, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        ttl = self.ttl_seconds if entry.dates else self.empty_ttl_seconds
        if self._clock() - entry.resolved_at >= ttl:
            return None
        return list(entry.dates)

    def put(self, key: str, dates: Iterable[str]) -> DateCatalogEntry:
        """Store ``dates`` for ``key``, deduplicated and sorted."""
        entry = DateCatalogEntry(
            resolved_at=self._clock(),
            dates=tuple(sorted(set(dates))),
        )
        self._entries[key] = entry
        return entry

    def is_resolving(self, key: str) -> bool:
        return key in self._inflight

    async def get_or_resolve(
        self,
        key: str,
        resolve: Callable[[], Awaitable[Iterable[str]]],
    ) -> list[str]:
        """Return cached dates or run ``resolve`` once for all waiters.

        A caller that is cancelled while waiting does not cancel the shared
        resolution; the remaining waiters still receive its result.

        Args:
            key: Canonical cache key of the catalog.
            resolve: Zero-argument coroutine function performing the crawl.

        Returns:
            Sorted, deduplicated ISO dates.

        Raises:
            Whatever ``resolve`` raises; failures are not cached.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Date cache hit for %s", key)
            return cached

        task = self._inflight.get(key)
        if task is None:
            logger.debug("Date cache miss for %s, resolving", key)
            task = asyncio.ensure_future(self._resolve(key, resolve))
            task.add_done_callback(functools.partial(_log_failure, key))
            self._inflight[key] = task
        else:
            logger.debug("Joining in-flight resolution for %s", key)

        return list(await asyncio.shield(task))

    async def _resolve(
        self,
        key: str,
        resolve: Callable[[], Awaitable[Iterable[str]]],
    ) -> tuple[str, ...]:
        try:
            dates = await resolve()
            return self.put(key, dates).dates
        finally:
            self._inflight.pop(key, None)

    async def aclose(self) -> None:
        """Cancel in-flight resolutions; used at application shutdown."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()


def _log_failure(key: str, task: asyncio.Task[tuple[str, ...]]) -> None:
    # Retrieves the exception even when every waiter was cancelled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("Date resolution for %s failed: %s", key, exc)
