"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealhub.dependencies import get_cache, get_db
from dealhub.schemas import HealthCheckResponse
from dealhub.services.cache_service import CacheService

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Return service health status.

    Checks connectivity to:
    - Database
    - Redis (reported as "disabled" when REDIS_URL is empty)
    """
    services = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except SQLAlchemyError as e:
        db_status = f"error: {str(e)}"

    services["database"] = db_status

    if cache.enabled:
        cache_status = "ok" if await cache.health_check() else "error: ping failed"
    else:
        cache_status = "disabled"

    services["cache"] = cache_status

    overall_status = "ok" if all(s in ("ok", "disabled") for s in services.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        cache=cache_status,
        services=services,
    )
