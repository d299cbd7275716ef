"""Read-only repository of layer sources.

The source catalog is defined once at import and never mutated, so the only
implementation wraps an immutable ``DatasetCatalog``. API handlers depend on
the protocol so tests can substitute a smaller catalog through FastAPI
dependency overrides.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Protocol

from seaice.catalog import defaults

if TYPE_CHECKING:
    from collections.abc import Iterable

    from seaice.catalog import models


class SourceRepositoryProtocol(Protocol):
    """Protocol interface for looking up layer sources.

    Implementations expose the full dataset catalog plus id-based lookup
    across base layers, ice sources and overlays.
    """

    def get(self, source_id: str) -> models.OverlaySource | None: ...

    def all(self) -> Iterable[models.OverlaySource]: ...

    def dataset(self) -> models.DatasetCatalog: ...


class StaticSourceRepository(SourceRepositoryProtocol):
    """Repository over one immutable dataset catalog."""

    def __init__(self, catalog: models.DatasetCatalog) -> None:
        self._catalog = catalog
        self._index = {source.id: source for source in catalog.all_sources()}

    def get(self, source_id: str) -> models.OverlaySource | None:
        """Retrieve a source by its ``id``.

        Args:
            source_id: Unique identifier of the source.

        Returns:
            The source if found, None otherwise.
        """
        return self._index.get(source_id)

    def all(self) -> Iterable[models.OverlaySource]:
        """Get every source: base layers, ice sources, then overlays."""
        return self._catalog.all_sources()

    def dataset(self) -> models.DatasetCatalog:
        return self._catalog


@functools.lru_cache
def get_source_repository() -> SourceRepositoryProtocol:
    """Return the process-wide repository of built-in sources."""
    return StaticSourceRepository(defaults.DATASET)
