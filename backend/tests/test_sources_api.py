"""API endpoint tests for the source catalog endpoints.

This module covers the /api catalog, source, request URL, date listing and
graticule endpoints. The source repository and date resolver are always
injected using dependency overrides.

See Also:
    - backend/seaice/api/sources.py for API implementation,
    - backend/seaice/catalog/registry.py for the repository protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi import testclient

from seaice import api, main
from seaice.api import sources as api_sources
from seaice.catalog import defaults, registry
from seaice.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterator

    from seaice.catalog import models


class FakeResolver:
    """Resolver double returning canned dates or raising."""

    def __init__(
        self,
        found: list[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.found = found or []
        self.error = error
        self.calls: list[str] = []

    async def resolve_for_source(self, source: models.LayerSource) -> list[str]:
        self.calls.append(source.id)
        if self.error is not None:
            raise self.error
        return self.found


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver(found=["2024-01-15", "2024-01-16"])


@pytest.fixture
def client(resolver: FakeResolver) -> Iterator[testclient.TestClient]:
    repo = registry.StaticSourceRepository(defaults.DATASET)
    app = main.create_app()
    app.dependency_overrides[api_sources._get_repo] = lambda: repo
    app.dependency_overrides[api.get_resolver] = lambda: resolver
    try:
        yield testclient.TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_catalog_snapshot(client: testclient.TestClient) -> None:
    """Test that the catalog exposes map config, sources and defaults."""
    response = client.get("/api/catalog")
    assert response.status_code == 200
    body = response.json()
    assert body["map_config"]["projection"] == "EPSG:3413"
    assert len(body["map_config"]["resolutions"]) == 8
    assert set(body["base_layers"]) == {
        "blueMarble",
        "blueMarbleBathymetry",
        "modisTrueColor",
    }
    assert body["defaults"]["ice_source_key"] == "noaaSeaIceConcentration"
    assert body["snapshots"][-1]["date"] == "2026-02-08"


def test_list_sources(client: testclient.TestClient) -> None:
    response = client.get("/api/sources")
    assert response.status_code == 200
    ids = [source["id"] for source in response.json()]
    assert ids[0] == "blueMarble"
    assert "coastlines_nasa" in ids
    assert "graticuleLocal" in ids
    assert len(ids) == len(set(ids))


def test_get_source(client: testclient.TestClient) -> None:
    response = client.get("/api/sources/osiSafAmsr2Wms")
    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "wms"
    assert body["catalog_root"] == defaults.OSI_SAF_CATALOG_ROOT
    assert body["time_enabled"] is False


def test_get_source_not_found(client: testclient.TestClient) -> None:
    response = client.get("/api/sources/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Source not found"


def test_source_url_geotiff_is_proxied(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/sources/noaaSeaIceConcentration/url",
        params={"date": "2026-02-08"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "geotiff"
    assert body["url"].startswith("/proxy?url=https%3A%2F%2Fnoaadata")
    assert body["url"].endswith("N_20260208_concentration_v4.0.tif")


def test_source_url_direct(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/sources/noaaSeaIceConcentration/url",
        params={"date": "2026-02-08", "proxy": "false"},
    )
    assert response.json()["url"].endswith(
        "/2026/02_Feb/N_20260208_concentration_v4.0.tif"
    )


def test_source_url_wms_params(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/sources/osiSafAmsr2Wms/url", params={"date": "2024-01-15"}
    )
    body = response.json()
    assert body["kind"] == "wms"
    assert body["params"]["layers"] == "ice_conc"
    assert body["params"]["version"] == "1.3.0"
    assert "time" not in body["params"]


def test_source_url_playback_flag(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/sources/copernicusArcticSiconc/url",
        params={"date": "2026-02-08", "playback": "true"},
    )
    assert response.json()["ready_on_first_tile"] is True


def test_source_url_invalid_date(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/sources/noaaSeaIceConcentration/url",
        params={"date": "2026-02-30"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidDate"


def test_source_url_for_graticule(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/sources/graticuleLocal/url", params={"date": "2026-02-08"}
    )
    assert response.status_code == 400


def test_source_dates_resolved(
    client: testclient.TestClient,
    resolver: FakeResolver,
) -> None:
    response = client.get("/api/sources/osiSafAmsr2Wms/dates")
    assert response.status_code == 200
    assert response.json() == {
        "dates": ["2024-01-15", "2024-01-16"],
        "fallback": False,
    }
    assert resolver.calls == ["osiSafAmsr2Wms"]


def test_source_dates_fall_back_on_failure(
    client: testclient.TestClient,
    resolver: FakeResolver,
) -> None:
    """Test that discovery failures fall back to the snapshot dates."""
    resolver.error = errors.UpstreamFetchFailed("https://x", 500, "boom")
    response = client.get("/api/sources/copernicusArcticSiconc/dates")
    assert response.status_code == 200
    body = response.json()
    assert body["fallback"] is True
    assert body["dates"] == [snapshot.date for snapshot in defaults.SNAPSHOTS]


def test_source_dates_fall_back_when_empty(
    client: testclient.TestClient,
    resolver: FakeResolver,
) -> None:
    resolver.found = []
    response = client.get("/api/sources/osiSafAmsr2Wms/dates")
    assert response.json()["fallback"] is True


def test_source_dates_without_catalog(
    client: testclient.TestClient,
    resolver: FakeResolver,
) -> None:
    response = client.get("/api/sources/noaaSeaIceConcentration/dates")
    assert response.json()["fallback"] is True
    assert resolver.calls == []


def test_graticule_geojson(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/overlays/graticuleLocal/graticule", params={"zoom": 0}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "FeatureCollection"
    kinds = [feature["properties"]["kind"] for feature in body["features"]]
    assert kinds.count("line") == 16
    assert kinds.count("label") == 16


def test_graticule_for_tile_overlay(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/overlays/coastlines_nasa/graticule", params={"zoom": 0}
    )
    assert response.status_code == 404


def test_graticule_negative_zoom(client: testclient.TestClient) -> None:
    response = client.get(
        "/api/overlays/graticuleLocal/graticule", params={"zoom": -1}
    )
    assert response.status_code == 422
