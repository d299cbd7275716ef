"""Data models for layer sources and the shared map configuration.

This module defines the immutable records the rest of the application is
built on. Selectable data layers are a tagged union over three protocol
kinds, each carrying only the fields its protocol needs:

- ``TileSource``: WMTS-style tiles addressed by (zoom, row, column).
- ``WmsSource``: single rendered images requested per bbox/CRS/time.
- ``GeoTiffSource``: whole georeferenced rasters fetched and decoded
  client-side.

Synthetic graticule overlays (``GraticuleSource``) have no URL at all; their
geometry is generated locally. URL templates are validated when a source is
constructed so an unknown placeholder fails at import, not as a broken tile.

Example:
    Creating a tile source:
        >>> from seaice.catalog.models import TileSource
        >>> coastlines = TileSource(
        ...     id="coastlines",
        ...     label="Coastlines",
        ...     url_template="https://gibs/{layer}/default/{time}/"
        ...                  "{tileMatrixSet}/{z}/{y}/{x}.{format}",
        ...     layer="Coastlines",
        ...     tile_matrix_set="250m",
        ...     format="png",
        ...     attribution="NASA GIBS",
        ...     opacity=0.9,
        ... )
"""

from __future__ import annotations

import dataclasses
import re
from typing import Literal

from seaice.core import errors

Point = tuple[float, float]
Bounds = tuple[Point, Point]
ProtocolKind = Literal["tile", "wms", "geotiff"]

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")

# Tokens the rendering surface fills per tile; they survive URL building.
SURFACE_TILE_PLACEHOLDERS = frozenset(
    {"z", "y", "x", "s", "TileMatrix", "TileRow", "TileCol"}
)

TEMPLATE_PLACEHOLDERS: dict[str, frozenset[str]] = {
    "tile": frozenset({"layer", "time", "tileMatrixSet", "format"}),
    "wms": frozenset({"YYYY", "MM", "DD", "YYYYMMDD"}),
    "geotiff": frozenset({"year", "month", "monthName", "ymd"}),
}


def template_placeholders(template: str) -> set[str]:
    """Return the set of ``{name}`` placeholders used in a URL template."""
    return set(_PLACEHOLDER_RE.findall(template))


def validate_template(kind: ProtocolKind, template: str) -> None:
    """Check that every placeholder in ``template`` is known for ``kind``.

    Args:
        kind: Protocol kind of the source owning the template.
        template: URL template to validate.

    Raises:
        TemplateError: If the template is empty or uses a placeholder the
            URL builder cannot substitute for this kind.
    """
    if not template:
        raise errors.TemplateError(f"Empty URL template for {kind} source")

    allowed = TEMPLATE_PLACEHOLDERS[kind]
    if kind == "tile":
        allowed = allowed | SURFACE_TILE_PLACEHOLDERS

    unknown = template_placeholders(template) - allowed
    if unknown:
        raise errors.TemplateError(
            f"Unknown placeholders for {kind} template: "
            f"{', '.join(sorted(unknown))}"
        )


def _check_opacity(source_id: str, opacity: float) -> None:
    if not 0.0 <= opacity <= 1.0:
        raise errors.CatalogConfigurationError(
            f"Opacity of {source_id!r} must be within [0, 1], got {opacity}"
        )


@dataclasses.dataclass(frozen=True, kw_only=True)
class _UrlSource:
    """Fields shared by every URL-addressed layer source.

    Attributes:
        id: Unique key of the source in the catalog.
        label: Human-readable name shown in pickers.
        url_template: URL with ``{placeholder}`` tokens for the URL builder.
        layer: Upstream layer identifier.
        format: Image or file format token (``png``, ``jpeg``, ``tif``).
        attribution: Attribution text for the rendering surface.
        opacity: Target opacity of the layer once visible.
        info_url: Optional link to the dataset documentation.
        catalog_root: Root of a THREDDS hierarchical date catalog.
        capabilities_url: WMTS capabilities document exposing a time range.
        ready_on_first_tile: Treat the layer as ready as soon as its first
            tile loads during playback, instead of waiting for all tiles.
    """

    id: str
    label: str
    url_template: str
    layer: str
    format: str
    attribution: str
    opacity: float = 1.0
    info_url: str | None = None
    catalog_root: str | None = None
    capabilities_url: str | None = None
    ready_on_first_tile: bool = False

    def __post_init__(self) -> None:
        validate_template(self.kind, self.url_template)  # type: ignore[attr-defined]
        _check_opacity(self.id, self.opacity)
        if self.catalog_root and self.capabilities_url:
            raise errors.CatalogConfigurationError(
                f"{self.id!r} declares both a catalog root and a "
                "capabilities URL"
            )

    @property
    def has_date_catalog(self) -> bool:
        """Whether valid dates can be discovered remotely for this source."""
        return bool(self.catalog_root or self.capabilities_url)


@dataclasses.dataclass(frozen=True, kw_only=True)
class TileSource(_UrlSource):
    """A WMTS-style tiled source."""

    tile_matrix_set: str
    kind: Literal["tile"] = "tile"


@dataclasses.dataclass(frozen=True, kw_only=True)
class WmsSource(_UrlSource):
    """A WMS source rendered per bounding box.

    Attributes:
        crs: Coordinate reference systems the server supports; the first one
            is used by default.
        time_enabled: Whether requests carry a ``time`` parameter. Servers
            that address dates through the file path set this to False.
        styles: Styles offered by the server.
        default_style: Style requested when the caller picks none.
        palette: Optional ncWMS palette name.
        color_scale_range: Optional (min, max) colour-scale bounds.
    """

    crs: tuple[str, ...] = ("EPSG:3857",)
    time_enabled: bool = True
    styles: tuple[str, ...] = ()
    default_style: str = ""
    palette: str | None = None
    color_scale_range: tuple[float, float] | None = None
    kind: Literal["wms"] = "wms"

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.crs:
            raise errors.CatalogConfigurationError(
                f"WMS source {self.id!r} must list at least one CRS"
            )


@dataclasses.dataclass(frozen=True, kw_only=True)
class GeoTiffSource(_UrlSource):
    """A whole-file GeoTIFF source addressed by date-encoded filenames."""

    kind: Literal["geotiff"] = "geotiff"


LayerSource = TileSource | WmsSource | GeoTiffSource


@dataclasses.dataclass(frozen=True)
class GraticuleDensity:
    """Line and label spacing of a generated graticule, in degrees."""

    lat_step: float
    lon_step: float
    segment_step: float
    label_lat_every: float
    label_lon_every: float

    def __post_init__(self) -> None:
        for name in ("lat_step", "lon_step", "segment_step"):
            if getattr(self, name) <= 0:
                raise errors.CatalogConfigurationError(
                    f"Graticule {name} must be positive"
                )


@dataclasses.dataclass(frozen=True)
class ZoomDensity:
    """Density override applied for zooms in ``[min_zoom, max_zoom]``."""

    min_zoom: int
    max_zoom: int
    density: GraticuleDensity


@dataclasses.dataclass(frozen=True, kw_only=True)
class GraticuleSource:
    """A synthetic overlay whose parallels and meridians are generated."""

    id: str
    label: str
    attribution: str = ""
    opacity: float = 1.0
    min_lat: float = 50.0
    max_lat: float = 90.0
    density: GraticuleDensity
    zoom_overrides: tuple[ZoomDensity, ...] = ()
    kind: Literal["graticule"] = "graticule"

    def __post_init__(self) -> None:
        _check_opacity(self.id, self.opacity)
        if not -90.0 <= self.min_lat < self.max_lat <= 90.0:
            raise errors.CatalogConfigurationError(
                f"Invalid latitude span for {self.id!r}: "
                f"{self.min_lat}..{self.max_lat}"
            )


OverlaySource = LayerSource | GraticuleSource


@dataclasses.dataclass(frozen=True, kw_only=True)
class MapConfiguration:
    """Projection and tiling grid shared by all layers on one map.

    Attributes:
        projection: Projection identifier, e.g. ``EPSG:3413``.
        proj4: proj4 definition string of the projection.
        resolutions: Meters per pixel per zoom level, most zoomed-out first.
        origin: Tile grid origin in projected coordinates.
        bounds: Covering bounds ((minx, miny), (maxx, maxy)), projected.
        center: Initial (lat, lon) view center.
        initial_zoom: Initial zoom level.
        min_zoom: Smallest zoom level.
        max_zoom: Largest zoom level.
        max_bounds: Lat/lon clamp ((south, west), (north, east)).
    """

    projection: str
    proj4: str
    resolutions: tuple[float, ...]
    origin: Point
    bounds: Bounds
    center: Point
    initial_zoom: int
    min_zoom: int
    max_zoom: int
    max_bounds: Bounds

    def __post_init__(self) -> None:
        levels = self.max_zoom - self.min_zoom + 1
        if levels < 1 or len(self.resolutions) < levels:
            raise errors.CatalogConfigurationError(
                f"{len(self.resolutions)} resolutions cannot cover zooms "
                f"{self.min_zoom}..{self.max_zoom}"
            )
        if any(a <= b for a, b in zip(self.resolutions, self.resolutions[1:])):
            raise errors.CatalogConfigurationError(
                "Resolutions must be strictly decreasing"
            )
        (minx, miny), (maxx, maxy) = self.bounds
        ox, oy = self.origin
        if not (minx <= ox <= maxx and miny <= oy <= maxy):
            raise errors.CatalogConfigurationError(
                f"Origin {self.origin} lies outside bounds {self.bounds}"
            )
        if not self.min_zoom <= self.initial_zoom <= self.max_zoom:
            raise errors.CatalogConfigurationError(
                f"Initial zoom {self.initial_zoom} outside "
                f"{self.min_zoom}..{self.max_zoom}"
            )


@dataclasses.dataclass(frozen=True)
class Snapshot:
    """A built-in observation summary for one date."""

    label: str
    date: str
    extent: float
    anomaly: float
    drift: str
    concentration: int


@dataclasses.dataclass(frozen=True)
class CatalogDefaults:
    base_layer_key: str
    ice_source_key: str
    show_coastlines: bool
    show_graticule: bool
    default_date: str


@dataclasses.dataclass(frozen=True)
class DatasetCatalog:
    """The complete read-only catalog exposed to the UI."""

    map_config: MapConfiguration
    base_layers: dict[str, LayerSource]
    ice_sources: dict[str, LayerSource]
    overlays: dict[str, OverlaySource]
    snapshots: tuple[Snapshot, ...]
    defaults: CatalogDefaults

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for source in self.all_sources():
            if source.id in seen:
                raise errors.CatalogConfigurationError(
                    f"Duplicate source id {source.id!r}"
                )
            seen.add(source.id)

    def all_sources(self) -> list[OverlaySource]:
        """Return base layers, ice sources and overlays in that order."""
        return [
            *self.base_layers.values(),
            *self.ice_sources.values(),
            *self.overlays.values(),
        ]

    def find(self, source_id: str) -> OverlaySource | None:
        """Look up a source by its ``id`` across all groups."""
        for source in self.all_sources():
            if source.id == source_id:
                return source
        return None
