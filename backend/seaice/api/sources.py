"""Layer source catalog query API endpoints.

This module provides read-only REST endpoints over the built-in source
catalog: the full catalog snapshot used to populate pickers, individual
source records, the request URL of a source for a date, the valid dates of
a source, and generated graticule geometry for synthetic overlays.

Example:
    Build the NOAA GeoTIFF request for one day:
        >>> response = client.get(
        ...     "/api/sources/noaaSeaIceConcentration/url",
        ...     params={"date": "2026-02-08"},
        ... )
        >>> response.json()["url"]
        >>> # Returns: "/proxy?url=https%3A%2F%2Fnoaadata.apps.nsidc.org..."

    List the dates of a source, falling back to snapshot dates:
        >>> response = client.get("/api/sources/osiSafAmsr2Wms/dates")
        >>> # Returns: {"dates": ["2024-01-15", ...], "fallback": false}
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

import fastapi

from seaice import api
from seaice.catalog import models, registry
from seaice.core import errors
from seaice.services import date_resolver, dates, graticule, url_builder

logger = logging.getLogger(__name__)

PROXY_PATH = "/proxy"

router = fastapi.APIRouter(prefix="/api", tags=["sources"])


def _get_repo() -> registry.SourceRepositoryProtocol:
    """Resolve the source repository dependency."""
    return registry.get_source_repository()


def _get_source(
    source_id: str,
    repo: registry.SourceRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> models.OverlaySource:
    source = repo.get(source_id)
    if source is None:
        raise fastapi.HTTPException(status_code=404, detail="Source not found")
    return source


def _get_layer_source(
    source: models.OverlaySource = fastapi.Depends(_get_source),  # noqa: B008
) -> models.LayerSource:
    if isinstance(source, models.GraticuleSource):
        raise fastapi.HTTPException(
            status_code=400,
            detail="Graticule overlays are generated locally and have no URL",
        )
    return source


@router.get("/catalog")
async def get_catalog(
    repo: registry.SourceRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Return the full read-only catalog snapshot.

    The snapshot holds the shared map configuration, every source grouped
    as base layers, ice sources and overlays, the built-in snapshots and
    the initial UI defaults.
    """
    return dataclasses.asdict(repo.dataset())


@router.get("/sources")
async def list_sources(
    repo: registry.SourceRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """List every source: base layers, ice sources, then overlays."""
    return [dataclasses.asdict(source) for source in repo.all()]


@router.get("/sources/{source_id}")
async def get_source(
    source: models.OverlaySource = fastapi.Depends(_get_source),  # noqa: B008
) -> dict[str, Any]:
    """Get one source record.

    Raises:
        HTTPException: If the source is not found (404 status code).
    """
    return dataclasses.asdict(source)


@router.get("/sources/{source_id}/url")
async def get_source_url(
    date: str = fastapi.Query(..., description="Observation date, YYYY-MM-DD"),
    playback: bool = False,
    proxy: bool = True,
    source: models.LayerSource = fastapi.Depends(_get_layer_source),  # noqa: B008
) -> dict[str, Any]:
    """Build the layer request of a source for one date.

    Args:
        date: Observation date in ``YYYY-MM-DD`` form.
        playback: Whether the date is being advanced automatically.
        proxy: Route GeoTIFF URLs through the cross-origin relay.
        source: URL-addressed source (injected via FastAPI Depends).

    Returns:
        Dictionary with the request ``kind``, ``url``, WMS ``params``,
        ``opacity``, ``attribution`` and ``ready_on_first_tile``.

    Raises:
        InvalidDate: If ``date`` is malformed (400).
        HTTPException: If the source is unknown (404) or is a generated
            graticule (400).
    """
    request = url_builder.build_layer_request(
        source,
        date,
        playback=playback,
        proxy_base=PROXY_PATH if proxy else None,
    )
    return {
        "kind": request.kind,
        "url": request.url,
        "params": dict(request.params),
        "opacity": request.opacity,
        "attribution": request.attribution,
        "ready_on_first_tile": request.ready_on_first_tile,
    }


@router.get("/sources/{source_id}/dates")
async def get_source_dates(
    source: models.LayerSource = fastapi.Depends(_get_layer_source),  # noqa: B008
    repo: registry.SourceRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
    resolver: date_resolver.DateCatalogResolver = fastapi.Depends(api.get_resolver),  # noqa: B008
) -> dict[str, Any]:
    """List the valid dates of a source.

    Sources with a remote date catalog are resolved through it. When the
    source has none, discovery fails, or discovery finds nothing, the
    built-in snapshot dates are returned with ``fallback`` set.
    """
    found: list[str] = []
    if source.has_date_catalog:
        try:
            found = await resolver.resolve_for_source(source)
        except errors.SeaIceError as exc:
            logger.warning(
                "Date discovery for %s failed, using snapshot dates: %s",
                source.id, exc.message,
            )
        if not found:
            logger.info("No remote dates for %s, using snapshot dates", source.id)

    if found:
        return {"dates": found, "fallback": False}
    return {"dates": dates.fallback_dates(repo.dataset()), "fallback": True}


@router.get("/overlays/{source_id}/graticule")
async def get_graticule(
    zoom: int = fastapi.Query(..., ge=0, description="Map zoom level"),
    source: models.OverlaySource = fastapi.Depends(_get_source),  # noqa: B008
) -> dict[str, Any]:
    """Generate the graticule geometry of a synthetic overlay.

    Returns:
        GeoJSON FeatureCollection of parallels, meridians and labels.

    Raises:
        HTTPException: If the overlay is unknown or not a generated
            graticule (404 status code).
    """
    if not isinstance(source, models.GraticuleSource):
        raise fastapi.HTTPException(
            status_code=404, detail="Graticule overlay not found"
        )
    return graticule.generate_graticule(source, zoom).to_geojson()
