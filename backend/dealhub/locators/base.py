"""Base locator interface.

Locators turn a store or brand name into candidate store locations using a
public map service. Every provider maps its raw payload into
``CandidateLocation`` right after the network call so nothing downstream
needs to know which service answered.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

import httpx
import structlog

from dealhub.locators.utils.rate_limiter import DomainRateLimiter


@dataclass
class CandidateLocation:
    """Normalized search result offered to the admin for selection.

    Never persisted: the admin copies the chosen coordinates and address
    onto a deal.
    """

    lat: float
    lng: float
    name: str = ""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    display_name: str = ""
    place_id: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)  # Raw provider tags

    def __post_init__(self):
        """Validate data after initialization."""
        if self.lat is None or self.lng is None:
            raise ValueError("lat and lng are required")


def first_present(source: Dict[str, str], keys: List[str], default: str = "") -> str:
    """Return the first non-empty value among ``keys`` in ``source``."""
    for key in keys:
        value = source.get(key)
        if value:
            return value
    return default


class BaseLocator(ABC):
    """Abstract base class for location search providers.

    The HTTP client is created once by the application and injected here;
    locators never own its lifecycle.
    """

    provider: str = ""  # Must be overridden in subclass (e.g., "nominatim")

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        rate_limiter: Optional[DomainRateLimiter] = None,
    ):
        self.http_client = http_client
        self.rate_limiter = rate_limiter or DomainRateLimiter()
        self.logger = structlog.get_logger(locator=self.provider)

    @abstractmethod
    async def search(self, query: str, **filters) -> List[CandidateLocation]:
        """Find candidate locations for a store or brand name.

        Args:
            query: Free-text store or brand name
            **filters: Provider-specific narrowing (city, state, limit)

        Returns:
            List of CandidateLocation objects

        Raises:
            LocationSearchError: If the provider cannot be reached
        """
        pass

    async def _throttle(self, url: str) -> None:
        """Wait for the per-domain rate limiter before calling ``url``."""
        await self.rate_limiter.acquire(urlparse(url).netloc)
