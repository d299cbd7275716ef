"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that configures
logging, sets up CORS middleware, includes the date discovery, proxy and
source catalog routers, translates service errors into JSON responses, and
exposes a health check endpoint for monitoring.

One outbound ``httpx.AsyncClient`` and one date resolver (with its shared
six-hour cache) are created per application at startup and closed at
shutdown.

Example:
    The application can be run with uvicorn:
        $ uvicorn seaice.main:app --reload

    Or imported and used programmatically:
        >>> from seaice.main import create_app
        >>> app = create_app()
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import fastapi
import httpx
from fastapi import responses
from fastapi.middleware import cors

from seaice.api import dates, proxy, sources
from seaice.core import config, errors
from seaice.services import date_resolver

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: config.Settings) -> None:
    """Configure root logging from the ``log_level`` setting."""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
    """Own the outbound HTTP client and date resolver for the app's lifetime."""
    settings = config.get_settings()
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout_seconds),
        headers={"User-Agent": settings.user_agent},
    ) as client:
        resolver = date_resolver.build_resolver(client, settings)
        app.state.http_client = client
        app.state.date_resolver = resolver
        logger.info("Sea-ice viewer backend started")
        try:
            yield
        finally:
            await resolver.aclose()
            logger.info("Sea-ice viewer backend stopped")


async def handle_service_error(
    request: fastapi.Request,
    exc: errors.SeaIceError,
) -> responses.JSONResponse:
    """Translate a ``SeaIceError`` into its JSON error response."""
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level, "%s %s failed: %s", request.method, request.url.path,
        exc.message,
    )
    return responses.JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures logging, includes the dates, proxy and sources routers,
    registers the service error handler and adds a health check endpoint.
    CORS origins are configured from settings, allowing cross-origin
    requests from specified domains.

    Returns:
        Configured FastAPI application instance ready for ASGI server.

    Example:
        The app can be used with uvicorn or other ASGI servers:
            >>> app = create_app()
            >>> # Or use the module-level app instance:
            >>> from seaice.main import app
    """
    settings = config.get_settings()
    configure_logging(settings)
    app = fastapi.FastAPI(
        title="Arctic Sea Ice Viewer",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(dates.router)
    app.include_router(proxy.router)
    app.include_router(sources.router)

    app.add_exception_handler(
        errors.SeaIceError,
        handle_service_error,  # type: ignore[arg-type]
    )

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
