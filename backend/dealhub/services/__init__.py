"""Services module for business logic and data operations.

Services hold the deal persistence rules, distance ranking, and the
cache used in front of slow upstream searches.
"""

from dealhub.services.cache_service import CacheService, NullCache, build_cache
from dealhub.services.deal_service import DealService
from dealhub.services.distance import Coordinates, centroid, distance_km, filter_by_distance

__all__ = [
    "CacheService",
    "NullCache",
    "build_cache",
    "DealService",
    "Coordinates",
    "centroid",
    "distance_km",
    "filter_by_distance",
]
