"""Custom exception classes for the application."""

from typing import Optional


class DealHubException(Exception):
    """Base exception for all DealHub errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class LocationSearchError(DealHubException):
    """Raised when a location search upstream cannot produce results.

    ``reason`` holds the failure of the last upstream tried so callers
    can show it and let the user retry or narrow the query.
    """

    def __init__(self, provider: str, reason: str, endpoint: Optional[str] = None):
        self.provider = provider
        self.reason = reason
        self.endpoint = endpoint
        super().__init__(f"Location search via {provider} failed: {reason}")


class GeocodingError(DealHubException):
    """Raised when the geocoder returns an error or a malformed payload."""

    def __init__(self, message: str):
        super().__init__(f"Geocoding failed: {message}")


class PersistenceError(DealHubException):
    """Raised when the database cannot complete an operation."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Database error during {operation}: {message}")
