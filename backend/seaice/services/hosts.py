"""Host allow-list checks for outbound requests.

Discovery and relay requests may only target explicitly allow-listed hosts.
The check runs before any network I/O is attempted, and again on every
redirect target before it is followed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib import parse

from seaice.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterable

    import httpx

ALLOWED_SCHEMES = frozenset({"http", "https"})
MAX_REDIRECTS = 5


def ensure_allowed(url: str, allowed_hosts: Iterable[str]) -> str:
    """Validate that ``url`` is an http(s) URL on an allow-listed host.

    Args:
        url: Absolute URL to check.
        allowed_hosts: Host names (optionally ``host:port``) that may be
            contacted.

    Returns:
        The lower-cased host name of ``url``.

    Raises:
        InvalidUrl: If the URL cannot be parsed or is not http(s).
        HostNotAllowed: If the host is not in ``allowed_hosts``.
    """
    try:
        parsed = parse.urlsplit(url)
        host = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError as exc:
        raise errors.InvalidUrl(f"Invalid URL: {url!r}") from exc

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not host:
        raise errors.InvalidUrl(f"URL must be absolute http(s): {url!r}")

    allowed = {entry.lower() for entry in allowed_hosts}
    candidates = {host} if port is None else {host, f"{host}:{port}"}
    if allowed.isdisjoint(candidates):
        raise errors.HostNotAllowed(host)
    return host


def redirect_target(response: httpx.Response, allowed_hosts: Iterable[str]) -> str:
    """Return the absolute ``Location`` of a redirect after checking its host.

    Args:
        response: A response for which ``is_redirect`` is true.
        allowed_hosts: Host names that may be contacted.

    Raises:
        InvalidUrl: If the target is not an http(s) URL.
        HostNotAllowed: If the target host is not in ``allowed_hosts``.
    """
    target = str(response.url.join(response.headers["location"]))
    ensure_allowed(target, allowed_hosts)
    return target
