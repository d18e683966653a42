"""Store location search against public OpenStreetMap services.

This package provides:
- The CandidateLocation type every provider normalizes into
- LocationSearchClient: Nominatim search, forward and reverse geocoding
- NationwideLocationSearch: Overpass brand search with mirror fallback
"""

from .base import BaseLocator, CandidateLocation
from .nominatim import LocationSearchClient
from .overpass import NationwideLocationSearch

__all__ = [
    "BaseLocator",
    "CandidateLocation",
    "LocationSearchClient",
    "NationwideLocationSearch",
]
