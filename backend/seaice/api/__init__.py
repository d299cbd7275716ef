"""API router subpackage for the sea-ice viewer backend.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance. Dependencies shared between routers live here.

Submodules:
    - dates: Date discovery from THREDDS catalogs and WMTS capabilities.
    - proxy: Cross-origin relay for rasters served without CORS headers.
    - sources: Read-only source catalog, request URLs, dates and graticules.
"""

from __future__ import annotations

import fastapi

from seaice.services import date_resolver


def get_resolver(request: fastapi.Request) -> date_resolver.DateCatalogResolver:
    """Resolve the process-wide date resolver created at startup."""
    return request.app.state.date_resolver
