"""API dependencies — database session, principal resolution, and services.

The principal comes from the identity provider's token, sent either as
``Authorization: Bearer <token>`` or in the ``accessToken`` cookie. The
token is only verified, never issued, here.
"""
from typing import AsyncGenerator, Annotated

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, settings
from app.core.exceptions import UnauthorizedError
from app.core.security import Principal, decode_principal
from app.database import async_session_factory
from app.services.image_service import CloudinaryImageStorage, ImageCoordinator, ImageStorage
from app.services.property_service import PropertyService


# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for request scope."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_settings() -> Settings:
    return settings


# ---------------------------------------------------------------------------
# Principal
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(
    auto_error=False,  # False para devolver 401 no envelope em vez do 403 por defeito
    description="Access token issued by the user service",
)


async def get_current_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer)],
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> Principal:
    """Resolve the authenticated principal or raise UnauthorizedError (401)."""
    token = credentials.credentials if credentials else request.cookies.get("accessToken")
    if not token:
        raise UnauthorizedError("Authentication required")
    return decode_principal(token, app_settings)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

def get_image_storage(app_settings: Annotated[Settings, Depends(get_settings)]) -> ImageStorage:
    return CloudinaryImageStorage(app_settings)


def get_image_coordinator(
    storage: Annotated[ImageStorage, Depends(get_image_storage)],
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> ImageCoordinator:
    return ImageCoordinator(storage, app_settings)


def get_property_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    images: Annotated[ImageCoordinator, Depends(get_image_coordinator)],
) -> PropertyService:
    return PropertyService(db, images)
