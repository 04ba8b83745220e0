"""
Liked properties of the current user.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from uuid import UUID

from marketplace.config import settings
from marketplace.models.user import User
from marketplace.services.favorite import FavoriteService
from marketplace.schemas.favorite import LikeStatusResponse, LikedPropertyIdsResponse, LikedPropertiesResponse
from marketplace.schemas.error import get_common_error_responses
from marketplace.routers.properties import build_property_responses
from marketplace.utils.dependencies import get_current_active_user, get_favorite_service


router = APIRouter(prefix="/favorites", tags=["Favorites"])


@router.get(
    "",
    response_model=LikedPropertiesResponse,
    status_code=status.HTTP_200_OK,
    summary="List liked properties",
    responses=get_common_error_responses()
)
async def list_liked_properties(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_active_user),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> LikedPropertiesResponse:
    properties, total = await favorite_service.list_liked_properties(current_user, page, page_size)
    responses = await build_property_responses(properties, favorite_service, current_user)
    return LikedPropertiesResponse(properties=responses, total=total, page=page, page_size=page_size)


@router.get(
    "/ids",
    response_model=LikedPropertyIdsResponse,
    status_code=status.HTTP_200_OK,
    summary="IDs of liked properties"
)
async def get_liked_property_ids(
    current_user: User = Depends(get_current_active_user),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> LikedPropertyIdsResponse:
    property_ids = await favorite_service.get_liked_property_ids(current_user)
    return LikedPropertyIdsResponse(property_ids=[str(property_id) for property_id in property_ids])


@router.get(
    "/{property_id}",
    response_model=LikeStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Like status of a property"
)
async def get_like_status(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> LikeStatusResponse:
    return LikeStatusResponse(
        property_id=str(property_id),
        liked=await favorite_service.is_liked(current_user, property_id),
        like_count=await favorite_service.like_count(property_id)
    )


@router.post(
    "/{property_id}",
    response_model=LikeStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Like a property",
    description="Liking a property twice has no further effect",
    responses=get_common_error_responses()
)
async def like_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> LikeStatusResponse:
    await favorite_service.like_property(current_user, property_id)
    return LikeStatusResponse(
        property_id=str(property_id),
        liked=True,
        like_count=await favorite_service.like_count(property_id)
    )


@router.delete(
    "/{property_id}",
    response_model=LikeStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Unlike a property",
    responses=get_common_error_responses()
)
async def unlike_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> LikeStatusResponse:
    await favorite_service.unlike_property(current_user, property_id)
    return LikeStatusResponse(
        property_id=str(property_id),
        liked=False,
        like_count=await favorite_service.like_count(property_id)
    )
