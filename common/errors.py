"""
Exception types shared by the Safe Route Navigator services.
"""


class UpstreamUnavailableError(Exception):
    """An incident store, feed, geocoder or news source could not be reached or timed out."""

    def __init__(self, source: str, message: str = ""):
        self.source = source
        super().__init__(f"{source} unavailable: {message}" if message else f"{source} unavailable")


class StorageError(Exception):
    """A write to the incident or rating store failed."""
