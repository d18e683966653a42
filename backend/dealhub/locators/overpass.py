"""Overpass API search for every location of a store chain.

Queries OpenStreetMap through the public Overpass API: free, no API key.
A popular brand can legitimately take 30-120 seconds to answer, so the
per-endpoint timeout is generous and callers must treat this as a
long-running call.

Mirrors are tried strictly in order, one at a time. Each public mirror
rate-limits on its own, so requests are never fanned out in parallel.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

from dealhub.config import settings
from dealhub.core.exceptions import GeocodingError, LocationSearchError
from dealhub.locators.base import BaseLocator, CandidateLocation
from dealhub.locators.utils.rate_limiter import DomainRateLimiter
from dealhub.locators.utils.us_states import is_us_state, states_match


# Two results closer than this (in degrees, ~100 m) are the same store
DEDUP_DEGREES = 0.001

_REGEX_META = re.compile(r"([\\.^$*+?()\[\]{}|])")

# Tag filters that identify a chain location; each is emitted for nodes and ways
_TAG_FILTERS = [
    '["brand"~"{brand}",i]',
    '["name"~"{brand}",i]["shop"]',
    '["name"~"{brand}",i]["amenity"]',
    '["operator"~"{brand}",i]',
]

_US_AREA = 'area["ISO3166-1"="US"][admin_level=2]->.searchArea;'


class EmptyResultError(Exception):
    """An endpoint answered successfully but returned no elements."""


def escape_brand(brand: str) -> str:
    """Make ``brand`` safe to embed as a regex inside an Overpass QL string.

    Regex metacharacters are backslash-escaped, then the result is escaped
    again for the double-quoted QL string literal.
    """
    as_regex = _REGEX_META.sub(r"\\\1", brand)
    return as_regex.replace("\\", "\\\\").replace('"', '\\"')


def build_query(escaped_brand: str, us_only: bool, timeout_seconds: int = 120) -> str:
    """Build the Overpass QL union query for one brand.

    Args:
        escaped_brand: Output of ``escape_brand``
        us_only: Restrict matches to the United States area
        timeout_seconds: Server-side query timeout

    Returns:
        Overpass QL text asking for node/way centers
    """
    area = "(area.searchArea)" if us_only else ""
    statements = [
        f"  {kind}{tag_filter.format(brand=escaped_brand)}{area};"
        for tag_filter in _TAG_FILTERS
        for kind in ("node", "way")
    ]

    lines = [f"[out:json][timeout:{timeout_seconds}];"]
    if us_only:
        lines.append(_US_AREA)
    lines.append("(")
    lines.extend(statements)
    lines.append(");")
    lines.append("out center;")
    return "\n".join(lines)


def parse_element(element: Dict[str, Any], brand: str) -> Optional[CandidateLocation]:
    """Convert one Overpass element into a CandidateLocation.

    Ways carry a computed ``center``; nodes carry ``lat``/``lon`` directly.
    Returns None when coordinates are missing.
    """
    tags = element.get("tags") or {}
    center = element.get("center") or {}

    lat = center.get("lat", element.get("lat"))
    lng = center.get("lon", element.get("lon"))
    if lat is None or lng is None:
        return None

    street = tags.get("addr:street", "")
    if tags.get("addr:housenumber"):
        address = f"{tags['addr:housenumber']} {street}".strip()
    else:
        address = street

    city = tags.get("addr:city") or tags.get("addr:place") or ""
    state = tags.get("addr:state", "")
    zip_code = tags.get("addr:postcode", "")
    name = tags.get("name") or tags.get("brand") or brand

    state_zip = " ".join(p for p in [state, zip_code] if p)
    display_name = ", ".join(p for p in [name, address, city, state_zip] if p)

    return CandidateLocation(
        lat=float(lat),
        lng=float(lng),
        name=name,
        address=address or None,
        city=city or None,
        state=state or None,
        zip_code=zip_code or None,
        display_name=display_name,
        place_id=f"{element.get('type', 'node')}/{element['id']}" if "id" in element else None,
        tags=tags,
    )


def matches_brand(tags: Dict[str, str], brand: str) -> bool:
    """True when the element's name or brand overlaps the query brand.

    Overlap means one lowercased string contains the other. The operator
    tag is only consulted when the element has neither name nor brand.
    """
    wanted = brand.lower()
    candidates = [tags.get(k) for k in ("name", "brand") if tags.get(k)]
    if not candidates and tags.get("operator"):
        candidates = [tags["operator"]]

    for value in candidates:
        value = value.lower()
        if wanted in value or value in wanted:
            return True
    return False


def matches_region(
    location: CandidateLocation,
    state: Optional[str] = None,
    city: Optional[str] = None,
) -> bool:
    """Apply the state/city filters.

    With no filters at all, only locations in a recognized US state or DC
    are kept.
    """
    if not state and not city:
        return is_us_state(location.state)

    if state and not states_match(location.state, state):
        return False

    if city and (not location.city or city.strip().lower() not in location.city.lower()):
        return False

    return True


def dedupe_by_proximity(
    locations: Iterable[CandidateLocation],
    threshold: float = DEDUP_DEGREES,
) -> List[CandidateLocation]:
    """Drop locations within ``threshold`` degrees of an earlier kept one.

    Keeps the first occurrence. Kept points are bucketed on a grid of
    ``threshold``-sized cells so only neighbouring cells are compared.
    """
    kept: List[CandidateLocation] = []
    grid: Dict[Tuple[int, int], List[CandidateLocation]] = {}

    for loc in locations:
        cell = (int(loc.lat // threshold), int(loc.lng // threshold))
        neighbours = (
            other
            for d_lat in (-1, 0, 1)
            for d_lng in (-1, 0, 1)
            for other in grid.get((cell[0] + d_lat, cell[1] + d_lng), ())
        )
        if any(
            abs(other.lat - loc.lat) < threshold and abs(other.lng - loc.lng) < threshold
            for other in neighbours
        ):
            continue

        kept.append(loc)
        grid.setdefault(cell, []).append(loc)

    return kept


class NationwideLocationSearch(BaseLocator):
    """Find all known locations of a brand through Overpass mirrors."""

    provider = "overpass"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        rate_limiter: Optional[DomainRateLimiter] = None,
        endpoints: Optional[List[str]] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(http_client, rate_limiter)
        self.endpoints = endpoints if endpoints is not None else settings.get_overpass_endpoints()
        self._timeout = timeout or settings.OVERPASS_TIMEOUT_SECONDS

    async def search(
        self,
        query: str,
        state: Optional[str] = None,
        city: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[CandidateLocation]:
        """Search every location of a brand, optionally narrowed by region.

        The US-restricted query runs first; the unrestricted one only runs
        when the first produced nothing.

        Args:
            query: Brand or store name (e.g., "Starbucks")
            state: Optional state filter (abbreviation or full name)
            city: Optional city filter (substring match)
            limit: Optional maximum number of results

        Returns:
            Deduplicated CandidateLocation list in endpoint response order

        Raises:
            LocationSearchError: When every endpoint failed; carries the
                last endpoint's failure reason
        """
        brand = query.strip()
        if not brand:
            return []

        escaped = escape_brand(brand)
        server_timeout = int(self._timeout)

        elements: List[Dict[str, Any]] = []
        error: Optional[LocationSearchError] = None

        for us_only in (True, False):
            try:
                elements = await self._fetch_elements(
                    build_query(escaped, us_only=us_only, timeout_seconds=server_timeout)
                )
            except LocationSearchError as e:
                self.logger.warning("overpass_scope_failed", brand=brand, us_only=us_only, error=e.reason)
                error = e
                continue

            error = None
            if elements:
                break

        if not elements and error:
            raise error

        locations = [
            loc
            for loc in (parse_element(el, brand) for el in elements if matches_brand(el.get("tags") or {}, brand))
            if loc is not None and matches_region(loc, state=state, city=city)
        ]
        locations = dedupe_by_proximity(locations)

        if limit:
            locations = locations[:limit]

        self.logger.info(
            "overpass_search_complete",
            brand=brand,
            raw_elements=len(elements),
            locations=len(locations),
            state=state,
            city=city,
        )

        return locations

    async def _fetch_elements(self, query_text: str) -> List[Dict[str, Any]]:
        """POST the query to each endpoint in order until one has results.

        Returns an empty list when the endpoints answered but none had any
        elements.

        Raises:
            LocationSearchError: When the last endpoint failed in transit
        """
        if not self.endpoints:
            raise LocationSearchError(self.provider, "no Overpass endpoints configured")

        endpoint = self.endpoints[0]

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(len(self.endpoints)),
                wait=wait_none(),
                retry=retry_if_exception_type(
                    (httpx.HTTPError, GeocodingError, EmptyResultError)
                ),
                before_sleep=self._log_fallback,
                reraise=True,
            ):
                with attempt:
                    endpoint = self.endpoints[attempt.retry_state.attempt_number - 1]
                    return await self._post(endpoint, query_text)
        except EmptyResultError:
            return []
        except (httpx.HTTPError, GeocodingError) as e:
            reason = _describe_failure(e)
            self.logger.error("overpass_all_endpoints_failed", endpoint=endpoint, error=reason)
            raise LocationSearchError(self.provider, reason, endpoint=endpoint) from e

    async def _post(self, endpoint: str, query_text: str) -> List[Dict[str, Any]]:
        """Send one query to one endpoint.

        Raises:
            httpx.HTTPStatusError: On a non-2xx answer
            httpx.TimeoutException: If the endpoint does not answer in time
            GeocodingError: If the body is not an Overpass JSON document
            EmptyResultError: If the answer holds no elements
        """
        await self._throttle(endpoint)
        self.logger.info("overpass_query_sent", endpoint=endpoint)

        response = await self.http_client.post(
            endpoint,
            data={"data": query_text},
            timeout=self._timeout,
        )
        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise GeocodingError(f"invalid JSON from {endpoint}") from e

        if not isinstance(payload, dict):
            raise GeocodingError(f"unexpected payload from {endpoint}")

        elements = payload.get("elements") or []
        if not elements:
            raise EmptyResultError(endpoint)

        return elements

    def _log_fallback(self, retry_state: RetryCallState) -> None:
        failed = self.endpoints[retry_state.attempt_number - 1]
        next_endpoint = self.endpoints[retry_state.attempt_number]
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            "overpass_endpoint_failed",
            endpoint=failed,
            next_endpoint=next_endpoint,
            error=_describe_failure(error) if error else None,
        )


def _describe_failure(error: BaseException) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code} from {error.request.url}"
    if isinstance(error, httpx.TimeoutException):
        return f"timed out: {error}" if str(error) else "timed out"
    if isinstance(error, EmptyResultError):
        return f"no results from {error}"
    return str(error) or error.__class__.__name__
