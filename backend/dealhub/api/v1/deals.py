"""Deals API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dealhub.config import settings
from dealhub.core.exceptions import PersistenceError
from dealhub.core.result import ResultStatus, ServiceResult
from dealhub.dependencies import get_cache, get_db, require_admin
from dealhub.models import DEAL_CATEGORIES
from dealhub.schemas import (
    ApiResponse,
    BulkCreateResult,
    BulkDealCreateRequest,
    CoordinatesSchema,
    DealCreateRequest,
    DealEventRequest,
    DealListResponse,
    DealResponse,
    DealUpdateRequest,
)
from dealhub.services.cache_service import CacheService, cache_key_for_deals, invalidate_deals_cache
from dealhub.services.deal_service import DealService
from dealhub.services.distance import Coordinates, centroid

router = APIRouter()

CATEGORY_FILTER = "^(all|" + "|".join(DEAL_CATEGORIES) + ")$"


def _unwrap(result: ServiceResult):
    """Turn a non-ok ServiceResult into the matching HTTP error."""
    if result.status is ResultStatus.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deal not found")
    if result.status is ResultStatus.TRANSPORT_ERROR:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal storage is unavailable",
        )
    return result.value


@router.get("", response_model=DealListResponse, response_model_by_alias=True)
async def list_deals(
    lat: Optional[float] = Query(None, ge=-90, le=90, description="Viewer latitude"),
    lng: Optional[float] = Query(None, ge=-180, le=180, description="Viewer longitude"),
    max_distance: Optional[float] = Query(
        None, alias="maxDistance", ge=0, description="Maximum distance in km (default 50 with an origin)"
    ),
    category: Optional[str] = Query(
        None, pattern=CATEGORY_FILTER, description="Filter by category"
    ),
    sort: Optional[str] = Query(
        None, pattern="^(closest|highest-discount|trending)$", description="Sort method"
    ),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """List active deals, optionally ranked around the viewer.

    Sort options:
    - closest: Nearest first (default when lat/lng are given)
    - highest-discount: Largest discount percentage first
    - trending: Most viewed first

    Without lat/lng deals come back in insertion order and no distance
    filter applies. Cached for DEALS_CACHE_TTL_SECONDS.
    """
    origin = Coordinates(lat=lat, lng=lng) if lat is not None and lng is not None else None
    if origin is not None and max_distance is None:
        max_distance = settings.DEFAULT_MAX_DISTANCE_KM

    cache_key = cache_key_for_deals(
        category=category,
        lat=lat if origin else None,
        lng=lng if origin else None,
        max_distance=max_distance if origin else None,
        sort_by=sort,
    )
    cached = await cache.get(cache_key)
    if cached:
        return DealListResponse.model_validate_json(cached)

    service = DealService(db)
    try:
        pairs = await service.get_deals(
            category=category,
            origin=origin,
            max_distance=max_distance,
            sort_by=sort,
        )
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal storage is unavailable",
        )

    deals = [DealResponse.from_model(deal, distance=distance) for deal, distance in pairs]
    center = centroid([Coordinates(lat=d.location.lat, lng=d.location.lng) for d in deals])

    response = DealListResponse(
        data=deals,
        count=len(deals),
        center=CoordinatesSchema(lat=center.lat, lng=center.lng),
    )

    await cache.set(
        cache_key,
        response.model_dump_json(by_alias=True),
        ttl=settings.DEALS_CACHE_TTL_SECONDS,
    )

    return response


@router.get("/{deal_id}", response_model=ApiResponse[DealResponse])
async def get_deal(
    deal_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get deal details by ID."""
    service = DealService(db)
    deal = _unwrap(await service.get_deal_by_id(deal_id))
    return ApiResponse(data=DealResponse.from_model(deal))


@router.post(
    "",
    response_model=ApiResponse[DealResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_deal(
    body: DealCreateRequest,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Create a deal at one store location (admin only)."""
    service = DealService(db)
    try:
        deal = await service.create_deal(body.model_dump())
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to create deal",
        )

    await invalidate_deals_cache(cache)
    return ApiResponse(data=DealResponse.from_model(deal))


@router.post(
    "/bulk",
    response_model=ApiResponse[BulkCreateResult],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_deals_bulk(
    body: BulkDealCreateRequest,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Create the same deal at every selected location (admin only).

    Used after a nationwide search to publish one offer across a chain.
    """
    payload = body.model_dump(exclude={"locations"})
    locations = [loc.model_dump() for loc in body.locations]

    service = DealService(db)
    try:
        deals = await service.create_many(payload, locations)
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to create deals",
        )

    await invalidate_deals_cache(cache)

    created = [DealResponse.from_model(d) for d in deals]
    return ApiResponse(
        data=BulkCreateResult(created=created, count=len(created)),
        message=f"Created {len(created)} deal(s)",
    )


@router.put(
    "/{deal_id}",
    response_model=ApiResponse[DealResponse],
    dependencies=[Depends(require_admin)],
)
async def update_deal(
    deal_id: UUID,
    body: DealUpdateRequest,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Update a deal in place (admin only). Only fields sent are changed."""
    changes = body.model_dump(exclude_unset=True)
    if body.location is not None:
        # A new location replaces the old one as a whole
        changes["location"] = body.location.model_dump()

    service = DealService(db)
    deal = _unwrap(await service.update_deal(deal_id, changes))

    await invalidate_deals_cache(cache)
    return ApiResponse(data=DealResponse.from_model(deal), message="Deal updated successfully")


@router.delete(
    "/{deal_id}",
    response_model=ApiResponse[None],
    dependencies=[Depends(require_admin)],
)
async def delete_deal(
    deal_id: UUID,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Delete a deal (admin only)."""
    service = DealService(db)
    _unwrap(await service.delete_deal(deal_id))

    await invalidate_deals_cache(cache)
    return ApiResponse(data=None, message="Deal deleted successfully")


@router.post("/{deal_id}/events", response_model=ApiResponse[DealResponse])
async def record_deal_event(
    deal_id: UUID,
    event: DealEventRequest,
    db: AsyncSession = Depends(get_db),
):
    """Record a view or a click-through to the partner app."""
    service = DealService(db)
    deal = _unwrap(await service.record_event(deal_id, event.type))
    return ApiResponse(data=DealResponse.from_model(deal))
