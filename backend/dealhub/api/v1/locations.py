"""Store location search endpoints used by the admin panel."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dealhub.config import settings
from dealhub.core.exceptions import LocationSearchError
from dealhub.core.result import ResultStatus, ServiceResult
from dealhub.dependencies import get_cache, get_location_client, get_nationwide_search
from dealhub.locators import LocationSearchClient, NationwideLocationSearch
from dealhub.schemas import ApiResponse, CandidateLocationResponse, LocationSearchResponse
from dealhub.services.cache_service import CacheService, cache_key_for_nationwide

router = APIRouter()


def _search_failed(e: LocationSearchError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Location search failed: {e.reason}",
    )


def _unwrap_location(result: ServiceResult) -> CandidateLocationResponse:
    if result.status is ResultStatus.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    if result.status is ResultStatus.TRANSPORT_ERROR:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Geocoding failed: {result.error}",
        )
    return CandidateLocationResponse.model_validate(result.value)


@router.get("/search", response_model=LocationSearchResponse)
async def search_locations(
    q: str = Query(..., min_length=1, description="Store name"),
    city: Optional[str] = Query(None, description="City hint"),
    state: Optional[str] = Query(None, description="State hint"),
    client: LocationSearchClient = Depends(get_location_client),
):
    """Look up a store by name near a city through Nominatim."""
    try:
        locations = await client.search(q, city=city, state=state)
    except LocationSearchError as e:
        raise _search_failed(e)

    data = [CandidateLocationResponse.model_validate(loc) for loc in locations]
    return LocationSearchResponse(data=data, count=len(data))


@router.get("/nationwide", response_model=LocationSearchResponse)
async def search_nationwide(
    q: str = Query(..., min_length=1, description="Brand or chain name"),
    state: Optional[str] = Query(None, description="State code or full name"),
    city: Optional[str] = Query(None, description="City name (substring match)"),
    limit: Optional[int] = Query(None, ge=1, le=5000, description="Maximum results"),
    search: NationwideLocationSearch = Depends(get_nationwide_search),
    cache: CacheService = Depends(get_cache),
):
    """Find every location of a chain through Overpass.

    Slow: a large brand can take up to a couple of minutes on a cold
    cache. Results are cached for SEARCH_CACHE_TTL_SECONDS.
    """
    cache_key = cache_key_for_nationwide(q, state=state, city=city, limit=limit)
    cached = await cache.get(cache_key)
    if cached:
        response = LocationSearchResponse.model_validate_json(cached)
        response.cached = True
        return response

    try:
        locations = await search.search(q, state=state, city=city, limit=limit)
    except LocationSearchError as e:
        raise _search_failed(e)

    data = [CandidateLocationResponse.model_validate(loc) for loc in locations]
    response = LocationSearchResponse(data=data, count=len(data))

    if data:
        await cache.set(
            cache_key,
            response.model_dump_json(by_alias=True),
            ttl=settings.SEARCH_CACHE_TTL_SECONDS,
        )

    return response


@router.get("/reverse", response_model=ApiResponse[CandidateLocationResponse])
async def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    client: LocationSearchClient = Depends(get_location_client),
):
    """Resolve a map click to the nearest address."""
    return ApiResponse(data=_unwrap_location(await client.reverse(lat, lng)))


@router.get("/geocode", response_model=ApiResponse[CandidateLocationResponse])
async def geocode_address(
    address: str = Query(..., min_length=1),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    client: LocationSearchClient = Depends(get_location_client),
):
    """Resolve a typed address to coordinates."""
    return ApiResponse(data=_unwrap_location(await client.geocode(address, city=city, state=state)))
