"""Tests for request URL construction.

Covers per-protocol placeholder substitution, the WMS time rule, GeoTIFF
month folder naming, relay wrapping, determinism and date validation.
"""

from __future__ import annotations

import dataclasses
import datetime
from urllib import parse

import pytest

from seaice.catalog import defaults
from seaice.core import errors
from seaice.services import url_builder

NOAA = defaults.ICE_SOURCES["noaaSeaIceConcentration"]
OSI = defaults.ICE_SOURCES["osiSafAmsr2Wms"]
MODIS = defaults.BASE_LAYERS["modisTrueColor"]
TODAY = datetime.date(2026, 2, 10)


def test_noaa_geotiff_url() -> None:
    """Test the NOAA G02135 month folder and file token."""
    url = url_builder.build_url(NOAA, "2026-02-08")
    assert url == (
        "https://noaadata.apps.nsidc.org/NOAA/G02135/north/daily/geotiff/"
        "2026/02_Feb/N_20260208_concentration_v4.0.tif"
    )


def test_geotiff_month_name_is_english() -> None:
    """Test that month names follow the remote naming convention."""
    url = url_builder.build_url(NOAA, "2025-12-31")
    assert "/2025/12_Dec/N_20251231_" in url


def test_tile_url_keeps_surface_tokens() -> None:
    """Test that tile URLs substitute date tokens but keep z/y/x."""
    url = url_builder.build_url(MODIS, "2026-02-08")
    assert url == (
        "https://gibs.earthdata.nasa.gov/wmts/epsg3413/best/"
        "MODIS_Terra_CorrectedReflectance_TrueColor/default/2026-02-08/"
        "250m/{z}/{y}/{x}.jpg"
    )
    assert url_builder.fill_tile_coordinates(url, 3, 2, 1).endswith(
        "/250m/3/2/1.jpg"
    )


def test_wms_base_url_encodes_date_in_path() -> None:
    """Test that the OSI SAF file path embeds the date."""
    url = url_builder.build_url(OSI, "2024-01-15")
    assert url.endswith(
        "/amsr2_conc/2024/01/ice_conc_nh_polstere-100_amsr2_202401151200.nc"
    )


def test_wms_params_fixed_fields() -> None:
    """Test the fixed GetMap parameters."""
    params = url_builder.build_wms_params(OSI, "2024-01-15", today=TODAY)
    assert params["service"] == "WMS"
    assert params["request"] == "GetMap"
    assert params["version"] == "1.3.0"
    assert params["layers"] == "ice_conc"
    assert params["styles"] == "boxfill/occam"
    assert params["crs"] == "EPSG:3857"
    assert params["format"] == "image/png"
    assert params["transparent"] == "true"
    assert params["colorscalerange"] == "0,100"


def test_wms_time_omitted_when_disabled() -> None:
    """Test that sources without a time dimension never send time."""
    params = url_builder.build_wms_params(OSI, "2024-01-15", today=TODAY)
    assert "time" not in params


def test_wms_time_sent_for_past_dates() -> None:
    """Test that time-enabled sources send time up to today."""
    source = dataclasses.replace(OSI, time_enabled=True)
    params = url_builder.build_wms_params(source, "2026-02-10", today=TODAY)
    assert params["time"] == "2026-02-10"


def test_wms_time_omitted_for_future_dates() -> None:
    """Test that a future date never reaches the upstream server."""
    source = dataclasses.replace(OSI, time_enabled=True)
    params = url_builder.build_wms_params(source, "2026-02-11", today=TODAY)
    assert "time" not in params


def test_wms_getmap_url() -> None:
    """Test a complete GetMap URL with bbox and size."""
    url = url_builder.build_wms_getmap_url(
        OSI,
        "2024-01-15",
        bbox=(-4194304, -4194304, 4194304, 4194304),
        width=256,
        height=256,
        crs="EPSG:4326",
        today=TODAY,
    )
    base, query = url.split("?", 1)
    params = dict(parse.parse_qsl(query))
    assert base == url_builder.build_wms_base_url(OSI, "2024-01-15")
    assert params["bbox"] == "-4194304,-4194304,4194304,4194304"
    assert params["crs"] == "EPSG:4326"
    assert params["width"] == "256"


@pytest.mark.parametrize("bad", ["2026-2-8", "20260208", "2026-02-30", ""])
def test_invalid_date_rejected(bad: str) -> None:
    """Test that malformed dates fail instead of producing a URL."""
    with pytest.raises(errors.InvalidDate):
        url_builder.build_url(NOAA, bad)


def test_build_url_is_deterministic() -> None:
    """Test that identical inputs produce identical outputs."""
    for source in defaults.DATASET.all_sources():
        if source.kind == "graticule":
            continue
        assert url_builder.build_url(source, "2026-02-08") == (
            url_builder.build_url(source, "2026-02-08")
        )
        assert url_builder.build_layer_request(
            source, "2026-02-08", today=TODAY
        ) == url_builder.build_layer_request(source, "2026-02-08", today=TODAY)


def test_layer_request_proxies_geotiff() -> None:
    """Test that GeoTIFF requests are routed through the relay."""
    request = url_builder.build_layer_request(
        NOAA, "2026-02-08", proxy_base="/proxy"
    )
    assert request.kind == "geotiff"
    assert request.url.startswith("/proxy?url=https%3A%2F%2Fnoaadata")
    assert request.opacity == 0.7


def test_layer_request_wms_params_sorted() -> None:
    """Test that WMS requests carry their params as sorted pairs."""
    request = url_builder.build_layer_request(OSI, "2024-01-15", today=TODAY)
    keys = [key for key, _ in request.params]
    assert keys == sorted(keys)
    assert ("layers", "ice_conc") in request.params


def test_ready_on_first_tile_only_during_playback() -> None:
    """Test that the early-ready opt-in applies during playback only."""
    source = defaults.ICE_SOURCES["copernicusArcticSiconc"]
    idle = url_builder.build_layer_request(source, "2026-02-08")
    playing = url_builder.build_layer_request(
        source, "2026-02-08", playback=True
    )
    assert not idle.ready_on_first_tile
    assert playing.ready_on_first_tile
    assert not url_builder.build_layer_request(
        NOAA, "2026-02-08", playback=True
    ).ready_on_first_tile


def test_empty_request() -> None:
    """Test that a request without URL or geometry is empty."""
    assert url_builder.LayerRequest(kind="tile").is_empty
