"""Cross-origin relay for binary rasters.

Some upstream servers (NOAA GeoTIFFs in particular) do not send CORS
headers, so the browser fetches them through this endpoint instead. Only
GET is relayed, only to allow-listed hosts, and the upstream body is capped
at ``max_proxy_response_bytes``. Redirects are followed only when their
target is allow-listed too. Responses are never cached.

Example:
    >>> response = client.get("/proxy", params={"url": geotiff_url})
    >>> response.headers["content-type"]
    'image/tiff'
"""

from __future__ import annotations

import logging

import fastapi
import httpx
from fastapi import responses

from seaice.core import config, errors
from seaice.services import hosts

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=["proxy"])

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _get_http_client(request: fastapi.Request) -> httpx.AsyncClient:
    """Resolve the shared outbound HTTP client created at startup."""
    return request.app.state.http_client


def _too_large(limit: int) -> fastapi.HTTPException:
    return fastapi.HTTPException(
        status_code=413,
        detail=f"Upstream response exceeds the maximum of {limit} bytes",
    )


async def _open_upstream(
    client: httpx.AsyncClient,
    url: str,
    settings: config.Settings,
) -> httpx.Response:
    """Open a streamed GET, following redirects only to allow-listed hosts."""
    target = url
    for _ in range(hosts.MAX_REDIRECTS + 1):
        request = client.build_request(
            "GET", target, headers={"User-Agent": settings.user_agent}
        )
        upstream = await client.send(request, stream=True, follow_redirects=False)
        if not upstream.is_redirect:
            return upstream
        await upstream.aclose()
        target = hosts.redirect_target(upstream, settings.proxy_allowed_hosts)
        logger.info("Following redirect from %s to %s", url, target)
    raise errors.UpstreamFetchFailed(
        url, None, f"Proxy fetch failed: more than {hosts.MAX_REDIRECTS} redirects"
    )


@router.get("/proxy")
async def proxy(
    url: str = fastapi.Query(..., description="URL to relay"),
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    client: httpx.AsyncClient = fastapi.Depends(_get_http_client),  # noqa: B008
) -> fastapi.Response:
    """Relay a GET request to an allow-listed host.

    Args:
        url: Absolute http(s) URL to fetch.
        settings: Application settings (injected via FastAPI Depends).
        client: Shared HTTP client (injected via FastAPI Depends).

    Returns:
        The upstream body with its ``Content-Type`` and
        ``Cache-Control: no-store``. A non-2xx upstream answer is returned
        as a JSON error body carrying the upstream status code.

    Raises:
        InvalidUrl: If ``url`` is not an absolute http(s) URL (400).
        HostNotAllowed: If the host, or the host of a redirect target, is
            not allow-listed (403).
        HTTPException: If the body exceeds the size limit (413).
        UpstreamTimeout: If the upstream did not answer in time (504).
        UpstreamFetchFailed: On a transport error (502).
    """
    hosts.ensure_allowed(url, settings.proxy_allowed_hosts)
    limit = settings.max_proxy_response_bytes
    logger.info("Proxying request to %s", url)

    try:
        upstream = await _open_upstream(client, url, settings)
        try:
            if upstream.is_error:
                failure = errors.UpstreamFetchFailed(
                    url,
                    upstream.status_code,
                    f"Upstream failed: {upstream.status_code} "
                    f"{upstream.reason_phrase}",
                )
                logger.warning("%s", failure.message)
                return responses.JSONResponse(
                    failure.to_dict(),
                    status_code=upstream.status_code,
                    headers={"Cache-Control": "no-store"},
                )

            declared = upstream.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > limit:
                raise _too_large(limit)

            body = bytearray()
            async for chunk in upstream.aiter_bytes():
                body.extend(chunk)
                if len(body) > limit:
                    raise _too_large(limit)

            content_type = upstream.headers.get(
                "content-type", DEFAULT_CONTENT_TYPE
            )
        finally:
            await upstream.aclose()
    except httpx.TimeoutException as exc:
        raise errors.UpstreamTimeout(url) from exc
    except httpx.HTTPError as exc:
        raise errors.UpstreamFetchFailed(
            url, None, f"Proxy fetch failed: {exc}"
        ) from exc

    return fastapi.Response(
        content=bytes(body),
        media_type=content_type,
        headers={"Cache-Control": "no-store"},
    )
