"""Nominatim (OpenStreetMap) geocoding client.

Used for small-scale store lookups in the admin panel plus forward and
reverse geocoding. Free, no API key; the usage policy requires an
identifying User-Agent and at most one request per second.
Documentation: https://nominatim.org/release-docs/latest/api/Overview/
"""

from typing import Any, Dict, List, Optional

import httpx

from dealhub.config import settings
from dealhub.core.exceptions import GeocodingError, LocationSearchError
from dealhub.core.result import ServiceResult
from dealhub.locators.base import BaseLocator, CandidateLocation, first_present
from dealhub.locators.utils.rate_limiter import DomainRateLimiter


# Address keys that can carry the locality, most specific first
CITY_KEYS = ["city", "town", "village", "municipality"]


class LocationSearchClient(BaseLocator):
    """Local store search and geocoding against a Nominatim instance."""

    provider = "nominatim"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        rate_limiter: Optional[DomainRateLimiter] = None,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        country_code: Optional[str] = None,
        result_limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(http_client, rate_limiter)
        self.base_url = (base_url or settings.NOMINATIM_URL).rstrip("/")
        self.user_agent = user_agent or settings.NOMINATIM_USER_AGENT
        self.country_code = country_code or settings.NOMINATIM_COUNTRY_CODE
        self.result_limit = result_limit or settings.NOMINATIM_RESULT_LIMIT
        self._timeout = timeout or settings.NOMINATIM_TIMEOUT_SECONDS

    async def search(
        self,
        query: str,
        city: Optional[str] = None,
        state: Optional[str] = None,
    ) -> List[CandidateLocation]:
        """Search for store locations by name with optional city/state hints.

        Args:
            query: Store name (e.g., "Trader Joe's")
            city: Optional city appended to the query text
            state: Optional state appended to the query text

        Returns:
            Up to ``result_limit`` CandidateLocation objects

        Raises:
            LocationSearchError: If Nominatim is unreachable or answers
                with an error
        """
        store_name = query.strip()
        if not store_name:
            return []

        text = " ".join(part for part in [store_name, city, state] if part) + ", USA"

        try:
            data = await self._get("/search", {
                "q": text,
                "format": "json",
                "addressdetails": 1,
                "limit": self.result_limit,
                "countrycodes": self.country_code,
            })
        except (httpx.HTTPError, GeocodingError) as e:
            self.logger.error("nominatim_search_failed", query=text, error=str(e))
            raise LocationSearchError(self.provider, str(e), endpoint=self.base_url) from e

        if not isinstance(data, list):
            raise LocationSearchError(self.provider, "unexpected response shape", endpoint=self.base_url)

        locations = [
            self._to_candidate(item, name=store_name)
            for item in data
            if item.get("lat") is not None and item.get("lon") is not None
        ]

        self.logger.info("nominatim_search_complete", query=text, results=len(locations))
        return locations

    async def reverse(self, lat: float, lng: float) -> ServiceResult[CandidateLocation]:
        """Resolve coordinates to the nearest address.

        Returns:
            ok with the location, not_found when Nominatim has nothing at
            that point, transport_error on network or HTTP failure
        """
        try:
            data = await self._get("/reverse", {
                "lat": lat,
                "lon": lng,
                "format": "json",
                "addressdetails": 1,
            })
        except (httpx.HTTPError, GeocodingError) as e:
            self.logger.error("nominatim_reverse_failed", lat=lat, lng=lng, error=str(e))
            return ServiceResult.transport_error(str(e))

        if not isinstance(data, dict) or "error" in data or not data.get("display_name"):
            return ServiceResult.not_found()

        address = data.get("address") or {}
        location = self._to_candidate(
            data,
            lat=lat,
            lng=lng,
            street=first_present(address, ["road"]) or data["display_name"].split(",")[0],
        )
        return ServiceResult.ok(location)

    async def geocode(
        self,
        address: str,
        city: Optional[str] = None,
        state: Optional[str] = None,
    ) -> ServiceResult[CandidateLocation]:
        """Resolve a free-text address to its single best match.

        City and state hints are used both to narrow the query and as
        fallbacks when the result lacks those fields.
        """
        text = ", ".join(part for part in [address, city, state] if part) + ", USA"

        try:
            data = await self._get("/search", {
                "q": text,
                "format": "json",
                "addressdetails": 1,
                "limit": 1,
                "countrycodes": self.country_code,
            })
        except (httpx.HTTPError, GeocodingError) as e:
            self.logger.error("nominatim_geocode_failed", query=text, error=str(e))
            return ServiceResult.transport_error(str(e))

        if not isinstance(data, list) or not data:
            return ServiceResult.not_found()

        location = self._to_candidate(
            data[0],
            fallback_address=address,
            fallback_city=city or "",
            fallback_state=state or "",
        )
        return ServiceResult.ok(location)

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        """Issue a throttled GET and decode the JSON body.

        Raises:
            httpx.HTTPStatusError: If Nominatim returns an error status
            httpx.TimeoutException: If the request times out
            GeocodingError: If the body is not JSON
        """
        url = f"{self.base_url}{path}"
        await self._throttle(url)

        self.logger.debug("nominatim_api_call", path=path, params=params)

        response = await self.http_client.get(
            url,
            params=params,
            headers={"User-Agent": self.user_agent},
            timeout=self._timeout,
        )
        response.raise_for_status()

        try:
            return response.json()
        except ValueError as e:
            raise GeocodingError(f"invalid JSON from {path}") from e

    def _to_candidate(
        self,
        item: Dict[str, Any],
        name: Optional[str] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        street: Optional[str] = None,
        fallback_address: str = "",
        fallback_city: str = "",
        fallback_state: str = "",
    ) -> CandidateLocation:
        """Map one raw Nominatim result onto CandidateLocation."""
        address = item.get("address") or {}
        display_name = item.get("display_name", "")

        if street is None:
            street = (
                display_name.split(",")[0]
                or first_present(address, ["road"])
                or fallback_address
            )

        place_id = item.get("place_id")

        return CandidateLocation(
            lat=float(item["lat"]) if lat is None else lat,
            lng=float(item["lon"]) if lng is None else lng,
            name=item.get("name") or name or street,
            address=street,
            city=first_present(address, CITY_KEYS, default=fallback_city),
            state=address.get("state") or fallback_state,
            zip_code=address.get("postcode", ""),
            display_name=display_name,
            place_id=str(place_id) if place_id is not None else None,
            tags={k: str(v) for k, v in address.items()},
        )
