class TrackerError(Exception):
    """Base exception for trip resolution failures."""


class InvalidInputError(TrackerError, ValueError):
    """Raised when a date, time or limit argument is malformed."""


class StoreUnavailableError(TrackerError):
    """Raised when the GTFS database cannot be opened."""
