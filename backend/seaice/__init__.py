"""Backend package for the Arctic sea-ice map viewer.

This package holds the core of the viewer behind a small FastAPI service:
the immutable catalog of layer sources, URL construction per protocol, date
discovery from remote THREDDS catalogs and WMTS capabilities documents, the
layer reconciler that drives the rendering surface, and local graticule
generation.

- Sources are declared once at import and validated at construction
- Tile, WMS and GeoTIFF request URLs are built deterministically
- Valid dates are discovered with bounded concurrency and cached for 6 hours
- Layer swaps are flicker-free and tracked per slot with generation tokens
- Graticule overlays are synthesised per zoom bracket without a tile server

See module sub-docstrings for details on architecture and usage.
"""
