"""
FastAPI dependency injection utilities for authentication, roles and services.
Provides reusable dependencies for route protection and user extraction.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.database import get_db
from marketplace.models.user import User
from marketplace.services.auth import AuthService
from marketplace.services.coordinates import CoordinateService
from marketplace.services.favorite import FavoriteService
from marketplace.services.image import ImageService
from marketplace.services.moderation import ModerationService
from marketplace.services.property import PropertyService
from marketplace.services.visit import VisitService
from marketplace.utils.exceptions import (
    ForbiddenError,
    InactiveUserError,
    InsufficientPermissionsError,
    UnauthorizedError,
)


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


async def get_property_service(db: AsyncSession = Depends(get_db)) -> PropertyService:
    return PropertyService(db)


async def get_image_service(db: AsyncSession = Depends(get_db)) -> ImageService:
    return ImageService(db)


async def get_favorite_service(db: AsyncSession = Depends(get_db)) -> FavoriteService:
    return FavoriteService(db)


async def get_visit_service(db: AsyncSession = Depends(get_db)) -> VisitService:
    return VisitService(db)


async def get_moderation_service(db: AsyncSession = Depends(get_db)) -> ModerationService:
    return ModerationService(db)


async def get_coordinate_service(db: AsyncSession = Depends(get_db)) -> CoordinateService:
    return CoordinateService(db)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials
        auth_service: Authentication service

    Returns:
        Current User object

    Raises:
        UnauthorizedError: If no token provided or token is invalid
        TokenExpiredError: If token is expired
        InactiveUserError: If user account is inactive
    """
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    return await auth_service.get_current_user(credentials.credentials)


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current active user (additional check for user status).

    Raises:
        InactiveUserError: If user account is inactive
    """
    if not current_user.is_active:
        raise InactiveUserError()

    return current_user


async def get_current_owner_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """Property owners and admins, the accounts that may list properties."""
    if not current_user.can_list_properties:
        raise InsufficientPermissionsError("list properties")

    return current_user


async def get_current_staff_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Moderators, admins and super admins.

    Raises:
        InsufficientPermissionsError: If the user is not part of the moderation staff
    """
    if not current_user.is_staff:
        raise InsufficientPermissionsError("access moderation resources")

    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Get current user with an admin role.

    Raises:
        InsufficientPermissionsError: If user is not an admin
    """
    if not current_user.is_admin:
        raise InsufficientPermissionsError("access admin resources")

    return current_user


# Optional authentication dependency (for public endpoints that can benefit from user context)
async def get_optional_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[User]:
    """
    Get current user if token is provided and valid, otherwise return None.

    Args:
        credentials: HTTP Bearer credentials (optional)
        auth_service: Authentication service

    Returns:
        User object if authenticated, None otherwise
    """
    if not credentials:
        return None

    try:
        user = await auth_service.get_current_user(credentials.credentials)
    except (UnauthorizedError, ForbiddenError):
        # Public endpoints fall back to anonymous access
        return None

    return user if user.is_active else None
