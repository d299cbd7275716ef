"""Discovery of valid observation dates from remote catalogs.

Two upstream shapes are supported:

- THREDDS hierarchical catalogs (year -> month -> daily files). The root
  catalog lists year catalogs, each year lists month catalogs, and each month
  lists dataset files whose names embed a ``YYYYMMDD`` token. Years are
  fetched by a pool of 4 workers and months by a pool of 6, so at most that
  many upstream connections are open per level. A failing year or month only
  loses its own dates; a failing root fails the whole resolution.
- WMTS capabilities documents. The ``time`` dimension of the requested layer
  holds a ``start/end`` range which is expanded into every UTC day in it.

Results go through a shared ``DateCatalogCache`` (6 hour freshness window,
single-flight), so repeated or concurrent lookups do not re-crawl.

Example:
    >>> async with httpx.AsyncClient() as client:
    ...     resolver = DateCatalogResolver(client, DateCatalogCache())
    ...     dates = await resolver.resolve_hierarchical(
    ...         "https://thredds.met.no/thredds/catalog/osisaf/met.no/ice/amsr2_conc"
    ...     )
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import re
import time
from typing import TYPE_CHECKING, TypeVar

import httpx

from seaice.core import config, errors
from seaice.services import date_cache, dates, hosts, xml_catalog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from seaice.catalog import models

logger = logging.getLogger(__name__)

_YEAR_REF_RE = re.compile(r"^\d{4}/catalog\.xml$")
_MONTH_REF_RE = re.compile(r"^\d{2}/catalog\.xml$")

T = TypeVar("T")
R = TypeVar("R")


async def map_limit(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T], Awaitable[R]],
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``limit`` running at once.

    A fixed pool of ``limit`` runners pulls items from one shared queue, so
    the number of concurrent upstream requests never exceeds ``limit``
    regardless of how many items there are. Results keep input order.
    """
    queue: asyncio.Queue[tuple[int, T]] = asyncio.Queue()
    for index, item in enumerate(items):
        queue.put_nowait((index, item))
    results: list[R | None] = [None] * len(items)

    async def runner() -> None:
        while True:
            try:
                index, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            results[index] = await worker(item)

    async with asyncio.TaskGroup() as group:
        for _ in range(min(max(limit, 1), len(items))):
            group.create_task(runner())
    return results  # type: ignore[return-value]


def catalog_xml_url(root: str) -> str:
    """Point a THREDDS catalog root at its ``catalog.xml`` document."""
    if root.endswith("/catalog.xml"):
        return root
    return f"{root.rstrip('/')}/catalog.xml"


def _to_utc_day(value: str) -> datetime.date:
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        moment = datetime.datetime.fromisoformat(text)
    except ValueError as exc:
        raise errors.InvalidTimeRange(f"Invalid timestamp {value!r}") from exc
    if moment.tzinfo is not None:
        moment = moment.astimezone(datetime.UTC)
    return moment.date()


def expand_time_range(value: str) -> list[str]:
    """Expand a ``start/end[/period]`` ISO-8601 range into daily dates.

    Both endpoints are included, counted in UTC calendar days.

    Raises:
        InvalidTimeRange: If the value is not two valid timestamps with
            start <= end.
    """
    parts = value.strip().split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise errors.InvalidTimeRange(f"Invalid time range {value!r}")
    return dates.daily_range(_to_utc_day(parts[0]), _to_utc_day(parts[1]))


class DateCatalogResolver:
    """Resolves the set of valid dates for remote catalogs.

    Attributes:
        cache: Shared date cache; hits skip all network activity.
        allowed_hosts: Hosts that may be contacted, or None for no check.
        year_concurrency: Worker count for year catalog fetches.
        month_concurrency: Worker count for month catalog fetches.
        file_pattern: Regex capturing ``YYYYMMDD`` in dataset filenames.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: date_cache.DateCatalogCache,
        *,
        allowed_hosts: Iterable[str] | None = None,
        year_concurrency: int = 4,
        month_concurrency: int = 6,
        file_pattern: str = config.DEFAULT_CATALOG_FILE_PATTERN,
        user_agent: str | None = None,
    ) -> None:
        self._client = client
        self.cache = cache
        self.allowed_hosts = (
            frozenset(allowed_hosts) if allowed_hosts is not None else None
        )
        self.year_concurrency = year_concurrency
        self.month_concurrency = month_concurrency
        self.file_pattern = re.compile(file_pattern)
        self._headers = {"User-Agent": user_agent} if user_agent else {}

    def _check_host(self, url: str) -> None:
        if self.allowed_hosts is not None:
            hosts.ensure_allowed(url, self.allowed_hosts)

    async def fetch_text(self, url: str) -> str:
        """GET ``url`` and return its body text."""
        return (await self.fetch(url)).text

    async def fetch(self, url: str) -> httpx.Response:
        """GET ``url`` and return the final successful response.

        Redirects are followed by hand, at most ``hosts.MAX_REDIRECTS``
        hops, and every target is checked against the allow-list before it
        is requested.

        Raises:
            InvalidUrl: If ``url`` or a redirect target is not http(s).
            HostNotAllowed: If ``url`` or a redirect target is not
                allow-listed.
            UpstreamTimeout: If the transport timed out.
            UpstreamFetchFailed: On a non-2xx status, a transport error or
                too many redirects.
        """
        target = url
        for _ in range(hosts.MAX_REDIRECTS + 1):
            self._check_host(target)
            response = await self._get(target)
            if not response.is_redirect:
                break
            target = str(response.url.join(response.headers["location"]))
            logger.debug("Following redirect from %s to %s", url, target)
        else:
            raise errors.UpstreamFetchFailed(
                url,
                response.status_code,
                f"Catalog fetch failed: more than {hosts.MAX_REDIRECTS} redirects",
            )

        if response.is_error:
            raise errors.UpstreamFetchFailed(
                url,
                response.status_code,
                f"Catalog fetch failed: {response.status_code} "
                f"{response.reason_phrase}",
            )
        return response

    async def _get(self, url: str) -> httpx.Response:
        try:
            return await self._client.get(
                url,
                headers=self._headers,
                follow_redirects=False,
            )
        except httpx.TimeoutException as exc:
            raise errors.UpstreamTimeout(url) from exc
        except httpx.HTTPError as exc:
            raise errors.UpstreamFetchFailed(
                url, None, f"Catalog fetch failed: {exc}"
            ) from exc

    async def resolve_hierarchical(self, root: str) -> list[str]:
        """Crawl a THREDDS catalog tree and return its sorted dates.

        Args:
            root: Catalog root URL, with or without ``/catalog.xml``.

        Raises:
            InvalidUrl: If ``root`` is not an http(s) URL.
            HostNotAllowed: If the root host, or the target of a redirect
                from it, is not allow-listed.
            UpstreamFetchFailed: If the root catalog cannot be fetched.
        """
        self._check_host(root)
        key = str(httpx.URL(root))
        return await self.cache.get_or_resolve(
            key, lambda: self._crawl(catalog_xml_url(key))
        )

    async def _crawl(self, root_url: str) -> set[str]:
        logger.info("Crawling date catalog %s", root_url)
        root = await self.fetch(root_url)
        year_urls = self._child_urls(root, _YEAR_REF_RE)

        month_lists = await map_limit(
            year_urls, self.year_concurrency, self._month_urls
        )
        month_urls = [url for urls in month_lists for url in urls]

        found: set[str] = set()
        for month_dates in await map_limit(
            month_urls, self.month_concurrency, self._month_dates
        ):
            found.update(month_dates)

        logger.info(
            "Resolved %d dates from %d year and %d month catalogs under %s",
            len(found), len(year_urls), len(month_urls), root_url,
        )
        return found

    @staticmethod
    def _child_urls(
        response: httpx.Response, pattern: re.Pattern[str]
    ) -> list[str]:
        # Relative refs resolve against the final URL after redirects.
        return [
            str(response.url.join(ref))
            for ref in xml_catalog.extract_catalog_refs(response.text)
            if pattern.match(ref)
        ]

    async def _month_urls(self, year_url: str) -> list[str]:
        try:
            year = await self.fetch(year_url)
        except errors.SeaIceError as exc:
            logger.warning("Skipping year catalog %s: %s", year_url, exc)
            return []
        return self._child_urls(year, _MONTH_REF_RE)

    async def _month_dates(self, month_url: str) -> set[str]:
        try:
            xml = await self.fetch_text(month_url)
        except errors.SeaIceError as exc:
            logger.warning("Skipping month catalog %s: %s", month_url, exc)
            return set()
        return xml_catalog.extract_dates(xml, self.file_pattern)

    async def resolve_capabilities(self, url: str, layer: str) -> list[str]:
        """Read a layer's time range from a WMTS capabilities document.

        Args:
            url: Capabilities document URL.
            layer: ``ows:Identifier`` of the layer.

        Raises:
            InvalidUrl: If ``url`` is not an http(s) URL.
            HostNotAllowed: If the host, or the target of a redirect from
                it, is not allow-listed.
            UpstreamFetchFailed: If the document cannot be fetched.
            TimeRangeNotFound: If the layer or its time dimension is missing.
            InvalidTimeRange: If the range cannot be parsed or is reversed.
        """
        self._check_host(url)
        key = f"{httpx.URL(url)}::{layer}"
        return await self.cache.get_or_resolve(
            key, lambda: self._read_capabilities(url, layer)
        )

    async def _read_capabilities(self, url: str, layer: str) -> list[str]:
        logger.info("Reading time range of %s from %s", layer, url)
        xml = await self.fetch_text(url)
        value = xml_catalog.extract_time_range(xml, layer)
        if value is None:
            raise errors.TimeRangeNotFound(layer)
        return expand_time_range(value)

    async def resolve_for_source(self, source: models.LayerSource) -> list[str]:
        """Resolve dates using whichever remote catalog ``source`` declares.

        Raises:
            ValueError: If the source declares no remote date catalog.
        """
        if source.catalog_root:
            return await self.resolve_hierarchical(source.catalog_root)
        if source.capabilities_url:
            return await self.resolve_capabilities(
                source.capabilities_url, source.layer
            )
        raise ValueError(f"Source {source.id!r} has no remote date catalog")

    async def aclose(self) -> None:
        await self.cache.aclose()


def build_resolver(
    client: httpx.AsyncClient,
    settings: config.Settings,
    clock: Callable[[], float] | None = None,
) -> DateCatalogResolver:
    """Create the process-wide resolver from application settings."""
    cache = date_cache.DateCatalogCache(
        settings.date_cache_ttl_seconds,
        clock or time.time,
        empty_ttl_seconds=settings.date_cache_empty_ttl_seconds,
    )
    return DateCatalogResolver(
        client,
        cache,
        allowed_hosts=settings.discovery_allowed_hosts,
        year_concurrency=settings.year_fetch_concurrency,
        month_concurrency=settings.month_fetch_concurrency,
        file_pattern=settings.catalog_file_pattern,
        user_agent=settings.user_agent,
    )
