"""DealHub Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dealhub.api.v1.router import api_v1_router
from dealhub.config import settings
from dealhub.core.exceptions import DealHubException, LocationSearchError, PersistenceError
from dealhub.core.logging import setup_logging
from dealhub.db.session import create_engine, create_session_factory
from dealhub.locators import LocationSearchClient, NationwideLocationSearch
from dealhub.locators.utils.rate_limiter import DomainRateLimiter
from dealhub.models import Base
from dealhub.schemas import ErrorDetail, ErrorResponse
from dealhub.services.cache_service import build_cache

setup_logging()
logger = structlog.get_logger(__name__)

_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_502_BAD_GATEWAY: "upstream_error",
    status.HTTP_503_SERVICE_UNAVAILABLE: "service_unavailable",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: build shared clients, then close them."""
    logger.info("app_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    engine = create_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_ready")

    cache = build_cache(settings.REDIS_URL)
    if cache.enabled and not await cache.health_check():
        logger.warning("cache_unreachable_at_startup")

    # One HTTP client and one rate limiter shared by every locator
    http_client = httpx.AsyncClient(
        timeout=settings.NOMINATIM_TIMEOUT_SECONDS,
        follow_redirects=True,
    )
    rate_limiter = DomainRateLimiter()

    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.cache = cache
    app.state.http_client = http_client
    app.state.location_client = LocationSearchClient(http_client, rate_limiter)
    app.state.nationwide_search = NationwideLocationSearch(http_client, rate_limiter)

    if not settings.ADMIN_PASSWORD:
        logger.warning("admin_password_not_set", detail="write endpoints are unauthenticated")

    yield

    logger.info("app_shutting_down")
    await http_client.aclose()
    await cache.close()
    await engine.dispose()


app = FastAPI(
    title="DealHub API",
    description="Location-based local deals API",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


def _error_response(status_code: int, code: str, message: str, field=None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, field=field))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report the first invalid field as a 400 with a field-naming message."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ())]
    field = loc[-1] if loc else None

    if first.get("type") == "missing":
        message = f"Missing required field: {field}"
    else:
        message = f"Invalid value for {field}: {first.get('msg', 'invalid input')}"

    logger.info("request_validation_failed", path=request.url.path, field=field, errors=len(errors))
    return _error_response(status.HTTP_400_BAD_REQUEST, "validation_error", message, field=field)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = _ERROR_CODES.get(exc.status_code, "error")
    return _error_response(exc.status_code, code, str(exc.detail), headers=exc.headers)


@app.exception_handler(DealHubException)
async def dealhub_exception_handler(request: Request, exc: DealHubException):
    """Last-resort mapping for domain errors a route did not handle."""
    if isinstance(exc, LocationSearchError):
        status_code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, PersistenceError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.error("unhandled_domain_error", path=request.url.path, error=exc.message)
    return _error_response(status_code, _ERROR_CODES.get(status_code, "error"), exc.message)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "DealHub API",
        "version": "0.1.0",
        "description": "Location-based local deals",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
