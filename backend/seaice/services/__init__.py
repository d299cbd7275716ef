"""Domain services: URL building, date discovery, reconciliation, graticules."""
