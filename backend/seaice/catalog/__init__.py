"""Layer source records and the built-in catalog.

Re-exports the source repository protocol and its constructor from
seaice.catalog.registry so API dependencies have one import location.

Example:
    Use in a FastAPI dependency:
        >>> from seaice.catalog import get_source_repository
        >>> repo = get_source_repository()
        >>> repo.get("osiSafAmsr2Wms").catalog_root
"""

from seaice.catalog.registry import (
    SourceRepositoryProtocol,
    StaticSourceRepository,
    get_source_repository,
)

__all__ = [
    "SourceRepositoryProtocol",
    "StaticSourceRepository",
    "get_source_repository",
]
