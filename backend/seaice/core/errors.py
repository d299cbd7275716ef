"""Exception hierarchy for catalog, discovery and layer errors.

Every runtime error the service can surface derives from ``SeaIceError`` and
carries the HTTP status the API layer answers with, so a single FastAPI
exception handler translates them into JSON error bodies. Construction-time
problems in the static source catalog (``TemplateError``,
``CatalogConfigurationError``) are ``ValueError`` subclasses instead: they
are programming errors caught at import, not conditions a user can trigger.

Example:
    Handle a failed discovery request:
        >>> from seaice.core import errors
        >>> try:
        ...     await resolver.resolve_hierarchical(root)
        ... except errors.UpstreamFetchFailed as e:
        ...     print(e.upstream_status, e.message)
"""

from __future__ import annotations


class SeaIceError(RuntimeError):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        """Serialize the error into a JSON-compatible response body."""
        return {"error": type(self).__name__, "detail": self.message}


class InvalidDate(SeaIceError):
    """A date string is not a valid ``YYYY-MM-DD`` calendar date."""

    status_code = 400

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid date: {value!r} (expected YYYY-MM-DD)")
        self.value = value


class InvalidUrl(SeaIceError):
    """A requested upstream URL could not be parsed or has a bad scheme."""

    status_code = 400


class InvalidTimeRange(SeaIceError):
    """A time range is malformed or its start lies after its end."""

    status_code = 422


class HostNotAllowed(SeaIceError):
    """The target host of a discovery or relay request is not allow-listed."""

    status_code = 403

    def __init__(self, host: str) -> None:
        super().__init__(f"Host not allowed: {host or '<none>'}")
        self.host = host


class TimeRangeNotFound(SeaIceError):
    """A capabilities document has no matching layer or time dimension."""

    status_code = 404

    def __init__(self, layer: str) -> None:
        super().__init__(f"Time range not found for layer {layer!r}")
        self.layer = layer


class UpstreamFetchFailed(SeaIceError):
    """A remote fetch returned a non-success status or a transport error.

    Attributes:
        url: The URL that was requested.
        upstream_status: HTTP status returned upstream, None for transport
            errors where no response was received.
    """

    status_code = 502

    def __init__(
        self,
        url: str,
        upstream_status: int | None,
        message: str,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.upstream_status = upstream_status

    def to_dict(self) -> dict[str, object]:
        body = super().to_dict()
        body["upstream_status"] = self.upstream_status
        return body


class UpstreamTimeout(UpstreamFetchFailed):
    """A remote fetch did not complete within the configured timeout."""

    status_code = 504

    def __init__(self, url: str) -> None:
        super().__init__(url, None, f"Upstream request timed out: {url}")


class TileLoadFailed(SeaIceError):
    """A layer failed before any of its tiles loaded successfully.

    Raised nowhere across slot boundaries: the layer reconciler records it in
    the failing slot's status and keeps the previous layer on screen.
    """

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class TemplateError(ValueError):
    """A URL template uses a placeholder its protocol cannot substitute."""


class CatalogConfigurationError(ValueError):
    """A static catalog record violates one of its invariants."""
