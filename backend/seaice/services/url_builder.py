"""Request URL construction for tile, WMS and GeoTIFF sources.

This module turns a ``(LayerSource, date)`` pair into the concrete URL the
rendering surface fetches. Every function is pure: identical inputs give
identical outputs, which lets the layer reconciler recognise a no-op change
by comparing the ``LayerRequest`` objects built here.

Protocol handling:
    - ``tile``: ``{layer}``, ``{time}``, ``{tileMatrixSet}`` and ``{format}``
      are substituted; ``{z}/{y}/{x}`` are left for the rendering surface.
    - ``wms``: the date is substituted into the file path
      (``{YYYY}``, ``{MM}``, ``{DD}``, ``{YYYYMMDD}``) and a GetMap query
      string is built on the caller side.
    - ``geotiff``: ``{year}``, ``{month}``, ``{monthName}`` and ``{ymd}``
      address NOAA's date-encoded file naming.

Example:
    Build the NOAA GeoTIFF URL for one day:
        >>> from seaice.catalog import defaults
        >>> from seaice.services import url_builder
        >>> source = defaults.ICE_SOURCES["noaaSeaIceConcentration"]
        >>> url_builder.build_url(source, "2026-02-08")
        '.../geotiff/2026/02_Feb/N_20260208_concentration_v4.0.tif'
"""

from __future__ import annotations

import dataclasses
import datetime
from typing import TYPE_CHECKING, Literal, assert_never
from urllib import parse

from seaice.catalog import models
from seaice.services import dates

if TYPE_CHECKING:
    from collections.abc import Mapping

    from seaice.services import graticule

# English and fixed: the token addresses a remote file-naming convention.
_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

RequestKind = Literal["tile", "wms", "geotiff", "vector"]


@dataclasses.dataclass(frozen=True)
class LayerRequest:
    """Everything the rendering surface needs to construct one layer.

    Instances are immutable and compare by value; two requests that are
    equal describe the same on-screen layer.

    Attributes:
        kind: How the surface should render the layer.
        url: Request URL (tile template, WMS base URL or GeoTIFF URL).
        opacity: Target opacity once the layer is revealed.
        attribution: Attribution text.
        params: Extra query parameters, as sorted key/value pairs, that the
            surface merges with its own (WMS bbox/width/height).
        ready_on_first_tile: Report the layer ready on its first tile.
        geometry: Locally generated vector geometry (graticules).
    """

    kind: RequestKind
    url: str = ""
    opacity: float = 1.0
    attribution: str = ""
    params: tuple[tuple[str, str], ...] = ()
    ready_on_first_tile: bool = False
    geometry: graticule.Graticule | None = None

    @property
    def is_empty(self) -> bool:
        return not self.url and self.geometry is None


def _substitute(template: str, values: Mapping[str, str]) -> str:
    result = template
    for name, value in values.items():
        result = result.replace("{" + name + "}", value)
    return result


def build_tile_url(source: models.TileSource, date: str) -> str:
    """Fill the date and layer tokens of a WMTS tile template."""
    dates.parse_iso_date(date)
    return _substitute(
        source.url_template,
        {
            "layer": source.layer,
            "time": date,
            "tileMatrixSet": source.tile_matrix_set,
            "format": source.format,
        },
    )


def build_wms_base_url(source: models.WmsSource, date: str) -> str:
    """Fill the date-encoded path of a WMS endpoint."""
    day = dates.parse_iso_date(date)
    year, month, dom = f"{day.year:04d}", f"{day.month:02d}", f"{day.day:02d}"
    return _substitute(
        source.url_template,
        {
            "YYYYMMDD": f"{year}{month}{dom}",
            "YYYY": year,
            "MM": month,
            "DD": dom,
        },
    )


def build_wms_params(
    source: models.WmsSource,
    date: str,
    *,
    crs: str | None = None,
    style: str | None = None,
    today: datetime.date | None = None,
) -> dict[str, str]:
    """Build the fixed GetMap parameters for a WMS source.

    The ``time`` parameter is only sent when the source has a time dimension
    and the requested day is not in the future: upstream servers reject
    future times.

    Args:
        source: WMS source descriptor.
        date: Observation date, ``YYYY-MM-DD``.
        crs: CRS to request; defaults to the first CRS of the source.
        style: Style to request; defaults to the source default style.
        today: Reference "today" (UTC) for the future-date check.

    Returns:
        Parameter mapping without bbox, width and height.

    Raises:
        InvalidDate: If ``date`` is malformed.
    """
    day = dates.parse_iso_date(date)
    params = {
        "service": "WMS",
        "request": "GetMap",
        "version": "1.3.0",
        "layers": source.layer,
        "styles": style if style is not None else source.default_style,
        "crs": crs or source.crs[0],
        "format": "image/png",
        "transparent": "true",
    }
    if source.palette:
        params["palette"] = source.palette
    if source.color_scale_range is not None:
        low, high = source.color_scale_range
        params["colorscalerange"] = f"{low:g},{high:g}"
    if source.time_enabled and day <= (today or dates.utc_today()):
        params["time"] = date
    return params


def build_wms_getmap_url(
    source: models.WmsSource,
    date: str,
    *,
    bbox: tuple[float, float, float, float],
    width: int,
    height: int,
    crs: str | None = None,
    style: str | None = None,
    today: datetime.date | None = None,
) -> str:
    """Build a complete WMS GetMap URL for an explicit bounding box."""
    params = build_wms_params(source, date, crs=crs, style=style, today=today)
    params["bbox"] = ",".join(f"{value:.15g}" for value in bbox)
    params["width"] = str(width)
    params["height"] = str(height)
    return f"{build_wms_base_url(source, date)}?{parse.urlencode(params)}"


def build_geotiff_url(source: models.GeoTiffSource, date: str) -> str:
    """Fill the year/month/day tokens of a GeoTIFF file template."""
    day = dates.parse_iso_date(date)
    month = f"{day.month:02d}"
    return _substitute(
        source.url_template,
        {
            "year": f"{day.year:04d}",
            "monthName": _MONTH_ABBR[day.month - 1],
            "month": month,
            "ymd": f"{day.year:04d}{month}{day.day:02d}",
        },
    )


def build_url(source: models.LayerSource, date: str) -> str:
    """Build the request URL of any layer source for a date.

    Raises:
        InvalidDate: If ``date`` is malformed.
    """
    match source:
        case models.TileSource():
            return build_tile_url(source, date)
        case models.WmsSource():
            return build_wms_base_url(source, date)
        case models.GeoTiffSource():
            return build_geotiff_url(source, date)
        case _:
            assert_never(source)


def proxied(url: str, proxy_base: str) -> str:
    """Route a URL through the cross-origin relay endpoint."""
    return f"{proxy_base}?{parse.urlencode({'url': url})}"


def build_layer_request(
    source: models.LayerSource,
    date: str,
    *,
    playback: bool = False,
    today: datetime.date | None = None,
    proxy_base: str | None = None,
) -> LayerRequest:
    """Describe the layer the reconciler should mount for a source and date.

    Args:
        source: Layer source descriptor.
        date: Observation date, ``YYYY-MM-DD``.
        playback: Whether the date is being advanced automatically; sources
            that opt into ``ready_on_first_tile`` only use it then.
        today: Reference "today" for the WMS future-date check.
        proxy_base: Relay endpoint for GeoTIFFs that cannot be fetched
            cross-origin directly.

    Returns:
        An immutable, comparable layer request.
    """
    params: tuple[tuple[str, str], ...] = ()
    url = build_url(source, date)
    match source:
        case models.WmsSource():
            wms_params = build_wms_params(source, date, today=today)
            params = tuple(sorted(wms_params.items()))
        case models.GeoTiffSource():
            if proxy_base:
                url = proxied(url, proxy_base)
        case models.TileSource():
            pass
        case _:
            assert_never(source)

    return LayerRequest(
        kind=source.kind,
        url=url,
        opacity=source.opacity,
        attribution=source.attribution,
        params=params,
        ready_on_first_tile=playback and source.ready_on_first_tile,
    )


def fill_tile_coordinates(url: str, z: int, y: int, x: int) -> str:
    """Substitute the rendering surface's tile tokens, for sample URLs."""
    return _substitute(
        url,
        {
            "z": str(z),
            "y": str(y),
            "x": str(x),
            "TileMatrix": str(z),
            "TileRow": str(y),
            "TileCol": str(x),
        },
    )
