"""Local graticule generation for synthetic overlays.

When an overlay has no tile source, its parallels and meridians are
generated here and handed to the rendering surface as vector geometry.
Line and label density depend on the zoom level, so the geometry is rebuilt
whenever the zoom bracket changes. Lines are sampled densely enough to bend
correctly under the polar projection.

Generation is deterministic and memoised per (source, density): moving
between zooms of the same bracket returns the cached geometry.

Example:
    >>> from seaice.catalog import defaults
    >>> from seaice.services import graticule
    >>> source = defaults.OVERLAYS["graticuleLocal"]
    >>> grid = graticule.generate_graticule(source, zoom=5)
    >>> grid.labels[0].text
    '50° N'
"""

from __future__ import annotations

import dataclasses
import functools
import math
from typing import TYPE_CHECKING, Any, Literal

from seaice.services import url_builder

if TYPE_CHECKING:
    from seaice.catalog import models

LABEL_TOLERANCE = 1e-6

Axis = Literal["lat", "lon"]


@dataclasses.dataclass(frozen=True)
class GraticuleLine:
    """One parallel (``axis="lat"``) or meridian (``axis="lon"``).

    ``coordinates`` are (lat, lon) pairs in sampling order.
    """

    axis: Axis
    value: float
    coordinates: tuple[tuple[float, float], ...]


@dataclasses.dataclass(frozen=True)
class GraticuleLabel:
    axis: Axis
    text: str
    position: tuple[float, float]


@dataclasses.dataclass(frozen=True)
class Graticule:
    """Generated lines and labels for one zoom bracket."""

    lines: tuple[GraticuleLine, ...]
    labels: tuple[GraticuleLabel, ...]

    def to_geojson(self) -> dict[str, Any]:
        """Render as a GeoJSON FeatureCollection (lon/lat order)."""
        features: list[dict[str, Any]] = []
        for line in self.lines:
            features.append({
                "type": "Feature",
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[lon, lat] for lat, lon in line.coordinates],
                },
                "properties": {"kind": "line", "axis": line.axis,
                               "value": line.value},
            })
        for label in self.labels:
            lat, lon = label.position
            features.append({
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lon, lat]},
                "properties": {"kind": "label", "axis": label.axis,
                               "text": label.text},
            })
        return {"type": "FeatureCollection", "features": features}


def _steps(start: float, stop: float, step: float) -> list[float]:
    """Values from ``start`` to ``stop`` inclusive, computed by index.

    Multiplying the index avoids the drift of repeated float addition.
    """
    count = math.floor((stop - start) / step + LABEL_TOLERANCE)
    return [round(start + index * step, 9) for index in range(count + 1)]


def _is_multiple(value: float, every: float) -> bool:
    if every <= 0:
        return False
    ratio = value / every
    return abs(ratio - round(ratio)) < LABEL_TOLERANCE


def format_coordinate(value: float, axis: Axis) -> str:
    """Format degrees as ``63°30' N`` style text.

    Minutes are omitted on whole degrees; the equator, prime meridian and
    antimeridian carry no hemisphere letter.
    """
    total_minutes = round(abs(value) * 60)
    degrees, minutes = divmod(total_minutes, 60)
    text = f"{degrees}°{minutes:02d}'" if minutes else f"{degrees}°"
    if total_minutes == 0 or (axis == "lon" and degrees == 180 and not minutes):
        return text
    if axis == "lat":
        hemisphere = "N" if value > 0 else "S"
    else:
        hemisphere = "E" if value > 0 else "W"
    return f"{text} {hemisphere}"


def select_density(
    source: models.GraticuleSource,
    zoom: int,
) -> models.GraticuleDensity:
    """Pick the density override whose zoom bracket contains ``zoom``.

    Falls back to the source's base density when no bracket matches.
    """
    for override in source.zoom_overrides:
        if override.min_zoom <= zoom <= override.max_zoom:
            return override.density
    return source.density


@functools.lru_cache(maxsize=32)
def _generate(
    source: models.GraticuleSource,
    density: models.GraticuleDensity,
) -> Graticule:
    lines: list[GraticuleLine] = []
    labels: list[GraticuleLabel] = []

    sample_lons = _steps(-180.0, 180.0, density.segment_step)
    if sample_lons[-1] != 180.0:
        sample_lons.append(180.0)
    for lat in _steps(source.min_lat, source.max_lat, density.lat_step):
        if lat >= 90.0:
            # The pole is a point, not a line.
            continue
        lines.append(GraticuleLine(
            axis="lat",
            value=lat,
            coordinates=tuple((lat, lon) for lon in sample_lons),
        ))
        if _is_multiple(lat, density.label_lat_every):
            labels.append(GraticuleLabel(
                axis="lat",
                text=format_coordinate(lat, "lat"),
                position=(lat, 0.0),
            ))

    sample_lats = _steps(source.min_lat, source.max_lat, density.segment_step)
    if sample_lats[-1] != source.max_lat:
        sample_lats.append(source.max_lat)
    mid_lat = round((source.min_lat + source.max_lat) / 2, 9)
    for lon in _steps(-180.0, 180.0, density.lon_step):
        if lon >= 180.0:
            # Same meridian as -180.
            continue
        lines.append(GraticuleLine(
            axis="lon",
            value=lon,
            coordinates=tuple((lat, lon) for lat in sample_lats),
        ))
        if _is_multiple(lon, density.label_lon_every):
            labels.append(GraticuleLabel(
                axis="lon",
                text=format_coordinate(lon, "lon"),
                position=(mid_lat, lon),
            ))

    return Graticule(lines=tuple(lines), labels=tuple(labels))


def generate_graticule(
    source: models.GraticuleSource,
    zoom: int,
) -> Graticule:
    """Generate the graticule geometry of ``source`` at ``zoom``."""
    return _generate(source, select_density(source, zoom))


def build_graticule_request(
    source: models.GraticuleSource,
    zoom: int,
) -> url_builder.LayerRequest:
    """Describe a vector graticule layer for the reconciler."""
    return url_builder.LayerRequest(
        kind="vector",
        opacity=source.opacity,
        attribution=source.attribution,
        geometry=generate_graticule(source, zoom),
    )
