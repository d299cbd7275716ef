"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings cover
CORS origins, logging, the host allow-lists for date discovery and the
cross-origin relay, date catalog cache and crawl limits, and upstream
transport options.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from seaice.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.discovery_allowed_hosts)

    Environment variables can override defaults:
        >>> LOG_LEVEL=DEBUG
        >>> DATE_CACHE_TTL_SECONDS=3600
        >>> PROXY_ALLOWED_HOSTS='["noaadata.apps.nsidc.org"]'
"""

import functools

import pydantic_settings

DEFAULT_CATALOG_FILE_PATTERN = r"nh_polstere-100_amsr2_(\d{8})1200\.nc"


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.

    Attributes:
        allow_origins: List of allowed CORS origins (["*"] allows all).
        log_level: Root logging level name (DEBUG, INFO, WARNING, ...).
        discovery_allowed_hosts: Hosts the date discovery endpoints may crawl.
        proxy_allowed_hosts: Hosts the cross-origin relay may fetch from.
        date_cache_ttl_seconds: Freshness window of resolved date lists.
        date_cache_empty_ttl_seconds: Shorter freshness window for lookups
            that found no dates.
        year_fetch_concurrency: Worker count for year catalog fetches.
        month_fetch_concurrency: Worker count for month catalog fetches.
        catalog_file_pattern: Regex whose first group is the ``YYYYMMDD``
            token embedded in THREDDS dataset filenames.
        upstream_timeout_seconds: Per-request timeout for upstream fetches,
            None disables the bound.
        user_agent: User-Agent header sent upstream; some servers reject
            requests without one.
        max_proxy_response_bytes: Largest body the relay will forward.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     proxy_allowed_hosts=["noaadata.apps.nsidc.org"],
            ...     date_cache_ttl_seconds=60,
            ... )
    """

    allow_origins: list[str] = ["*"]
    log_level: str = "INFO"
    discovery_allowed_hosts: list[str] = [
        "thredds.met.no",
        "wmts.marine.copernicus.eu",
    ]
    proxy_allowed_hosts: list[str] = [
        "noaadata.apps.nsidc.org",
        "thredds.met.no",
        "gibs.earthdata.nasa.gov",
        "wmts.marine.copernicus.eu",
    ]
    date_cache_ttl_seconds: float = 6 * 60 * 60
    date_cache_empty_ttl_seconds: float = 5 * 60
    year_fetch_concurrency: int = 4
    month_fetch_concurrency: int = 6
    catalog_file_pattern: str = DEFAULT_CATALOG_FILE_PATTERN
    upstream_timeout_seconds: float | None = 60.0
    user_agent: str = "Mozilla/5.0 (compatible; seaice-viewer/0.1)"
    max_proxy_response_bytes: int = 256 * 1024 * 1024

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. Subsequent calls return the same
    cached instance.

    Returns:
        Settings instance with all configuration values populated.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    return Settings()
