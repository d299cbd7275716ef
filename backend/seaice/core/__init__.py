"""Settings and the service exception hierarchy."""
