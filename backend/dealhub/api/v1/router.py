"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter, Depends

from dealhub.api.v1 import deals, health, locations
from dealhub.dependencies import require_admin

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(deals.router, prefix="/deals", tags=["deals"])
api_v1_router.include_router(
    locations.router,
    prefix="/locations",
    tags=["locations"],
    dependencies=[Depends(require_admin)],
)
