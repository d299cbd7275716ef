"""Tests for the Date Catalog Resolver.

Upstream servers are replaced with ``httpx.MockTransport`` handlers that
serve canned THREDDS catalogs and WMTS capabilities documents and count
the requests they receive.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest

from seaice.catalog import defaults
from seaice.core import config, errors
from seaice.services import date_cache, date_resolver

if TYPE_CHECKING:
    from collections.abc import Callable

ROOT = "https://thredds.met.no/thredds/catalog/osisaf/met.no/ice/amsr2_conc"
CAPABILITIES_URL = (
    "https://wmts.marine.copernicus.eu/teroWmts?SERVICE=WMTS"
    "&REQUEST=GetCapabilities"
)

CATALOG_HEAD = (
    '<catalog xmlns="http://www.unidata.ucar.edu/namespaces/thredds/'
    'InvCatalog/v1.0" xmlns:xlink="http://www.w3.org/1999/xlink">'
)


def _refs(*hrefs: str) -> str:
    body = "".join(f'<catalogRef xlink:href="{href}"/>' for href in hrefs)
    return f"{CATALOG_HEAD}{body}</catalog>"


def _files(*days: str) -> str:
    body = "".join(
        f'<dataset name="ice_conc_nh_polstere-100_amsr2_{day}1200.nc"/>'
        for day in days
    )
    return f"{CATALOG_HEAD}<dataset name='month'>{body}</dataset></catalog>"


def _capabilities(value: str) -> str:
    return (
        '<Capabilities xmlns="http://www.opengis.net/wmts/1.0" '
        'xmlns:ows="http://www.opengis.net/ows/1.1"><Contents><Layer>'
        "<ows:Identifier>siconc</ows:Identifier><Dimension>"
        f"<ows:Identifier>time</ows:Identifier><Value>{value}</Value>"
        "</Dimension></Layer></Contents></Capabilities>"
    )


THREDDS = {
    f"{ROOT}/catalog.xml": _refs("2024/catalog.xml", "2025/catalog.xml", "x.xml"),
    f"{ROOT}/2024/catalog.xml": _refs("01/catalog.xml", "12/catalog.xml"),
    f"{ROOT}/2025/catalog.xml": _refs("01/catalog.xml"),
    f"{ROOT}/2024/01/catalog.xml": _files("20240115"),
    f"{ROOT}/2024/12/catalog.xml": _files("20241231", "20241231"),
    f"{ROOT}/2025/01/catalog.xml": _files("20250101"),
}


class Upstream:
    """Fake upstream serving documents by URL and recording requests.

    ``redirects`` maps a URL to the ``Location`` of a 302 answer.
    """

    def __init__(
        self,
        documents: dict[str, str],
        failures: dict[str, int] | None = None,
        redirects: dict[str, str] | None = None,
    ) -> None:
        self.documents = documents
        self.failures = failures or {}
        self.redirects = redirects or {}
        self.requested: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        if url in self.redirects:
            return httpx.Response(302, headers={"Location": self.redirects[url]})
        if url in self.failures:
            return httpx.Response(self.failures[url])
        if url not in self.documents:
            return httpx.Response(404)
        return httpx.Response(200, text=self.documents[url])


def _resolver(
    handler: Callable[[httpx.Request], httpx.Response],
    **kwargs: object,
) -> date_resolver.DateCatalogResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return date_resolver.DateCatalogResolver(
        client,
        date_cache.DateCatalogCache(),
        **kwargs,  # type: ignore[arg-type]
    )


def test_catalog_xml_url() -> None:
    assert date_resolver.catalog_xml_url(ROOT) == f"{ROOT}/catalog.xml"
    assert date_resolver.catalog_xml_url(f"{ROOT}/") == f"{ROOT}/catalog.xml"
    assert date_resolver.catalog_xml_url(f"{ROOT}/catalog.xml") == (
        f"{ROOT}/catalog.xml"
    )


def test_expand_time_range() -> None:
    assert date_resolver.expand_time_range(
        "2026-02-01T00:00:00Z/2026-02-03T00:00:00Z/P1D"
    ) == ["2026-02-01", "2026-02-02", "2026-02-03"]


def test_expand_time_range_counts_utc_days() -> None:
    """Test that offsets are normalised to UTC before taking the day."""
    assert date_resolver.expand_time_range(
        "2026-01-31T23:00:00-02:00/2026-02-02"
    ) == ["2026-02-01", "2026-02-02"]


@pytest.mark.parametrize(
    "value",
    ["2026-02-01", "not-a-date/2026-02-01", "2026-02-03/2026-02-01", "/"],
)
def test_expand_time_range_invalid(value: str) -> None:
    with pytest.raises(errors.InvalidTimeRange):
        date_resolver.expand_time_range(value)


@pytest.mark.asyncio
async def test_map_limit_bounds_concurrency() -> None:
    """Test that no more than ``limit`` workers run at once, in order."""
    active = 0
    peak = 0

    async def worker(item: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0)
        active -= 1
        return item * 2

    results = await date_resolver.map_limit(list(range(20)), 4, worker)
    assert results == [item * 2 for item in range(20)]
    assert peak == 4


@pytest.mark.asyncio
async def test_map_limit_empty() -> None:
    async def worker(item: int) -> int:
        return item

    assert await date_resolver.map_limit([], 4, worker) == []


@pytest.mark.asyncio
async def test_hierarchical_crawl_unions_and_sorts() -> None:
    upstream = Upstream(THREDDS)
    resolver = _resolver(upstream)

    found = await resolver.resolve_hierarchical(ROOT)

    assert found == ["2024-01-15", "2024-12-31", "2025-01-01"]
    assert len(upstream.requested) == 6
    assert f"{ROOT}/x.xml" not in upstream.requested


@pytest.mark.asyncio
async def test_hierarchical_cache_hit_skips_network() -> None:
    upstream = Upstream(THREDDS)
    resolver = _resolver(upstream)

    first = await resolver.resolve_hierarchical(ROOT)
    calls = len(upstream.requested)
    second = await resolver.resolve_hierarchical(ROOT)

    assert first == second
    assert len(upstream.requested) == calls


@pytest.mark.asyncio
async def test_concurrent_crawls_share_one_flight() -> None:
    upstream = Upstream(THREDDS)
    resolver = _resolver(upstream)

    first, second = await asyncio.gather(
        resolver.resolve_hierarchical(ROOT),
        resolver.resolve_hierarchical(ROOT),
    )

    assert first == second
    assert upstream.requested.count(f"{ROOT}/catalog.xml") == 1


@pytest.mark.asyncio
async def test_failed_month_only_loses_its_dates() -> None:
    upstream = Upstream(THREDDS, failures={f"{ROOT}/2024/12/catalog.xml": 500})
    resolver = _resolver(upstream)

    assert await resolver.resolve_hierarchical(ROOT) == [
        "2024-01-15",
        "2025-01-01",
    ]


@pytest.mark.asyncio
async def test_failed_year_only_loses_its_dates() -> None:
    upstream = Upstream(THREDDS, failures={f"{ROOT}/2025/catalog.xml": 502})
    resolver = _resolver(upstream)

    assert await resolver.resolve_hierarchical(ROOT) == [
        "2024-01-15",
        "2024-12-31",
    ]


@pytest.mark.asyncio
async def test_failed_root_fails_resolution() -> None:
    upstream = Upstream(THREDDS, failures={f"{ROOT}/catalog.xml": 503})
    resolver = _resolver(upstream)

    with pytest.raises(errors.UpstreamFetchFailed) as excinfo:
        await resolver.resolve_hierarchical(ROOT)

    assert excinfo.value.upstream_status == 503
    assert excinfo.value.status_code == 502
    assert resolver.cache.get(ROOT) is None


@pytest.mark.asyncio
async def test_timeout_is_reported_as_upstream_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    resolver = _resolver(handler)
    with pytest.raises(errors.UpstreamTimeout):
        await resolver.resolve_hierarchical(ROOT)


@pytest.mark.asyncio
async def test_disallowed_host_makes_no_request() -> None:
    upstream = Upstream(THREDDS)
    resolver = _resolver(
        upstream,
        allowed_hosts=config.Settings().discovery_allowed_hosts,
    )

    with pytest.raises(errors.HostNotAllowed):
        await resolver.resolve_hierarchical("https://evil.example.com/catalog")
    with pytest.raises(errors.InvalidUrl):
        await resolver.resolve_hierarchical("ftp://thredds.met.no/catalog")
    assert upstream.requested == []


@pytest.mark.asyncio
async def test_redirect_within_allowed_hosts_is_followed() -> None:
    moved = "https://thredds.met.no/thredds/catalog/moved"
    documents = {
        f"{moved}/catalog.xml": _refs("2024/catalog.xml"),
        f"{moved}/2024/catalog.xml": _refs("01/catalog.xml"),
        f"{moved}/2024/01/catalog.xml": _files("20240115"),
    }
    upstream = Upstream(
        documents, redirects={f"{ROOT}/catalog.xml": f"{moved}/catalog.xml"}
    )
    resolver = _resolver(upstream, allowed_hosts=["thredds.met.no"])

    assert await resolver.resolve_hierarchical(ROOT) == ["2024-01-15"]
    assert upstream.requested[:2] == [f"{ROOT}/catalog.xml", f"{moved}/catalog.xml"]


@pytest.mark.asyncio
async def test_root_redirect_to_disallowed_host_is_rejected() -> None:
    upstream = Upstream(
        {"https://evil.example/catalog.xml": _refs("2024/catalog.xml")},
        redirects={f"{ROOT}/catalog.xml": "https://evil.example/catalog.xml"},
    )
    resolver = _resolver(upstream, allowed_hosts=["thredds.met.no"])

    with pytest.raises(errors.HostNotAllowed):
        await resolver.resolve_hierarchical(ROOT)

    assert [httpx.URL(url).host for url in upstream.requested] == [
        "thredds.met.no"
    ]
    assert resolver.cache.get(ROOT) is None


@pytest.mark.asyncio
async def test_child_redirect_to_disallowed_host_only_loses_its_dates() -> None:
    upstream = Upstream(
        THREDDS,
        redirects={f"{ROOT}/2025/catalog.xml": "http://169.254.169.254/latest"},
    )
    resolver = _resolver(upstream, allowed_hosts=["thredds.met.no"])

    assert await resolver.resolve_hierarchical(ROOT) == [
        "2024-01-15",
        "2024-12-31",
    ]
    assert all(
        httpx.URL(url).host == "thredds.met.no" for url in upstream.requested
    )


@pytest.mark.asyncio
async def test_redirect_loop_fails_resolution() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": str(request.url)})

    resolver = _resolver(handler, allowed_hosts=["thredds.met.no"])

    with pytest.raises(errors.UpstreamFetchFailed) as excinfo:
        await resolver.resolve_hierarchical(ROOT)

    assert excinfo.value.upstream_status == 302


@pytest.mark.asyncio
async def test_capabilities_range_is_expanded() -> None:
    upstream = Upstream({
        CAPABILITIES_URL: _capabilities(
            "2026-02-01T00:00:00Z/2026-02-03T00:00:00Z/P1D"
        ),
    })
    resolver = _resolver(upstream)

    found = await resolver.resolve_capabilities(CAPABILITIES_URL, "siconc")
    again = await resolver.resolve_capabilities(CAPABILITIES_URL, "siconc")

    assert found == ["2026-02-01", "2026-02-02", "2026-02-03"]
    assert again == found
    assert len(upstream.requested) == 1


@pytest.mark.asyncio
async def test_capabilities_unknown_layer() -> None:
    upstream = Upstream({CAPABILITIES_URL: _capabilities("2026-02-01/2026-02-03")})
    resolver = _resolver(upstream)

    with pytest.raises(errors.TimeRangeNotFound):
        await resolver.resolve_capabilities(CAPABILITIES_URL, "missing")


@pytest.mark.asyncio
async def test_capabilities_reversed_range() -> None:
    upstream = Upstream({CAPABILITIES_URL: _capabilities("2026-02-03/2026-02-01")})
    resolver = _resolver(upstream)

    with pytest.raises(errors.InvalidTimeRange):
        await resolver.resolve_capabilities(CAPABILITIES_URL, "siconc")


@pytest.mark.asyncio
async def test_resolve_for_source() -> None:
    source = defaults.ICE_SOURCES["copernicusArcticSiconc"]
    document = _capabilities("2026-02-07/2026-02-08").replace(
        "siconc", source.layer
    )
    upstream = Upstream({defaults.COPERNICUS_CAPABILITIES_URL: document})
    resolver = _resolver(upstream)

    assert await resolver.resolve_for_source(source) == [
        "2026-02-07",
        "2026-02-08",
    ]
    with pytest.raises(ValueError):
        await resolver.resolve_for_source(defaults.BASE_LAYERS["blueMarble"])


def test_build_resolver_uses_settings() -> None:
    settings = config.Settings(
        date_cache_ttl_seconds=60,
        date_cache_empty_ttl_seconds=15,
        year_fetch_concurrency=2,
        month_fetch_concurrency=3,
    )
    resolver = date_resolver.build_resolver(httpx.AsyncClient(), settings)
    assert resolver.cache.ttl_seconds == 60
    assert resolver.cache.empty_ttl_seconds == 15
    assert resolver.year_concurrency == 2
    assert resolver.month_concurrency == 3
    assert resolver.allowed_hosts == frozenset(settings.discovery_allowed_hosts)
