"""FastAPI dependency injection providers.

Long-lived clients (database session factory, HTTP-backed locators, cache)
are created once in ``dealhub.main.lifespan`` and stored on ``app.state``;
these providers hand them to request handlers.
"""

import secrets
from typing import AsyncGenerator, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dealhub.config import settings
from dealhub.locators import LocationSearchClient, NationwideLocationSearch
from dealhub.services.cache_service import CacheService

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.
    """
    async with request.app.state.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_cache(request: Request) -> CacheService:
    return request.app.state.cache


def get_location_client(request: Request) -> LocationSearchClient:
    return request.app.state.location_client


def get_nationwide_search(request: Request) -> NationwideLocationSearch:
    return request.app.state.nationwide_search


def get_admin_password() -> str:
    """The configured admin secret; overridable in tests."""
    return settings.ADMIN_PASSWORD


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    admin_password: str = Depends(get_admin_password),
) -> None:
    """Check the shared admin secret sent as a bearer token.

    When no secret is configured every caller is let through; that is a
    development convenience, not a security boundary.

    Raises 401 "Unauthorized" on a missing or wrong token.
    """
    if not admin_password:
        logger.warning("admin_auth_disabled")
        return

    supplied = credentials.credentials if credentials else ""

    # Constant-time comparison
    if not secrets.compare_digest(supplied.encode(), admin_password.encode()):
        logger.warning("admin_auth_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
