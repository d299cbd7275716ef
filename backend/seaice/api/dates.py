"""Date discovery API endpoints.

This module exposes the Date Catalog Resolver over HTTP. Both endpoints
restrict the target host to the discovery allow-list, cache results for six
hours per catalog, and answer with the sorted ISO dates.

Example:
    Crawl a THREDDS catalog:
        >>> response = client.get(
        ...     "/dates/hierarchical",
        ...     params={"root": "https://thredds.met.no/thredds/catalog/"
        ...                     "osisaf/met.no/ice/amsr2_conc"},
        ... )
        >>> response.json()
        >>> # Returns: {"dates": ["2024-01-15", "2024-01-16", ...]}

    Expand the time range of a WMTS layer:
        >>> response = client.get(
        ...     "/dates/capabilities",
        ...     params={"url": capabilities_url, "layer": layer_id},
        ... )
"""

from __future__ import annotations

import fastapi

from seaice import api
from seaice.services import date_resolver

router = fastapi.APIRouter(prefix="/dates", tags=["dates"])


@router.get("/hierarchical")
async def hierarchical_dates(
    root: str = fastapi.Query(..., description="THREDDS catalog root URL"),
    resolver: date_resolver.DateCatalogResolver = fastapi.Depends(api.get_resolver),  # noqa: B008
) -> dict[str, list[str]]:
    """List the dates available under a hierarchical THREDDS catalog.

    Args:
        root: Catalog root URL, with or without a trailing ``catalog.xml``.
        resolver: Date resolver (injected via FastAPI Depends).

    Returns:
        Dictionary with the ascending ISO ``dates``.

    Raises:
        HostNotAllowed: If the root host is not allow-listed (403).
        UpstreamFetchFailed: If the root catalog cannot be fetched (502).
    """
    return {"dates": await resolver.resolve_hierarchical(root)}


@router.get("/capabilities")
async def capabilities_dates(
    url: str = fastapi.Query(..., description="WMTS capabilities URL"),
    layer: str = fastapi.Query(..., description="Layer identifier"),
    resolver: date_resolver.DateCatalogResolver = fastapi.Depends(api.get_resolver),  # noqa: B008
) -> dict[str, list[str]]:
    """List the days covered by a WMTS layer's time dimension.

    Raises:
        HostNotAllowed: If the host is not allow-listed (403).
        TimeRangeNotFound: If the layer has no time dimension (404).
        InvalidTimeRange: If the range is malformed or reversed (422).
        UpstreamFetchFailed: If the document cannot be fetched (502).
    """
    return {"dates": await resolver.resolve_capabilities(url, layer)}
