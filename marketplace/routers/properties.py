"""
Property management API endpoints: the listing wizard, lifecycle changes,
search, similar and nearby listings.
"""

from fastapi import APIRouter, Depends, status, Query, Path, Response
from typing import List, Optional
from decimal import Decimal
from uuid import UUID
import math

from marketplace.config import settings
from marketplace.flows.definitions import FlowType
from marketplace.models.property import Property, PropertyStatus
from marketplace.models.user import User
from marketplace.services.coordinates import CoordinateService
from marketplace.services.favorite import FavoriteService
from marketplace.services.property import PropertyService
from marketplace.schemas.flow import CompletionResponse, StepValidationResponse
from marketplace.schemas.moderation import MapMarkerResponse
from marketplace.schemas.property import (
    PropertyCreate,
    PropertyUpdate,
    StepSaveRequest,
    PropertyResponse,
    PropertyListResponse,
    PropertySearchFilters,
    SimilarPropertyResponse,
    NearbyPropertyResponse,
    PropertyStatsResponse,
)
from marketplace.utils.dependencies import (
    get_current_active_user,
    get_current_owner_user,
    get_optional_current_user,
    get_property_service,
    get_favorite_service,
    get_coordinate_service,
)
from marketplace.schemas.error import get_crud_error_responses, get_common_error_responses


router = APIRouter(prefix="/properties", tags=["Properties"])


async def build_property_responses(
    properties: List[Property],
    favorite_service: FavoriteService,
    current_user: Optional[User] = None
) -> List[PropertyResponse]:
    """Property responses with like counts and the viewer's like flag."""
    counts, liked = await favorite_service.like_summary([p.id for p in properties], current_user)
    return [
        PropertyResponse.model_validate({
            **prop.to_dict(include_owner=True, include_images=True),
            "like_count": counts.get(prop.id, 0),
            "is_liked": prop.id in liked if current_user else None,
        })
        for prop in properties
    ]


async def build_property_response(
    property_obj: Property,
    favorite_service: FavoriteService,
    current_user: Optional[User] = None
) -> PropertyResponse:
    responses = await build_property_responses([property_obj], favorite_service, current_user)
    return responses[0]


def paginate(properties: List[PropertyResponse], total: int, page: int, page_size: int) -> PropertyListResponse:
    total_pages = math.ceil(total / page_size) if total > 0 else 1
    return PropertyListResponse(
        properties=properties,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1
    )


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a new listing",
    description="Create a draft in one of the listing flows. Requires the property owner or an admin role.",
    responses=get_crud_error_responses()
)
async def create_property(
    property_data: PropertyCreate,
    current_user: User = Depends(get_current_owner_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    """
    Create a draft listing.

    Raises:
        InsufficientPermissionsError: If the user cannot list properties
        InvalidFlowError: If an initial step does not belong to the flow
    """
    property_obj = await property_service.create_property(property_data, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.get(
    "",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="Search published listings",
    description="Paginated search with text, location, flow and range filters",
    responses=get_common_error_responses()
)
async def search_properties(
    # Search parameters
    query: Optional[str] = Query(None, description="Text over title, description, address, city and code"),
    city: Optional[str] = Query(None, description="City filter"),
    state: Optional[str] = Query(None, description="State filter"),

    # Flow filters
    flow_type: Optional[FlowType] = Query(None, description="Exact listing flow"),
    property_type: Optional[str] = Query(None, description="residential, commercial, land, pghostel or flatmates"),
    subtype: Optional[str] = Query(None, description="Subtype such as apartment, office or hot_desk"),
    transaction_type: Optional[str] = Query(None, description="buy or rent"),

    # Range filters
    min_price: Optional[Decimal] = Query(None, ge=0, description="Minimum price filter"),
    max_price: Optional[Decimal] = Query(None, ge=0, description="Maximum price filter"),
    bedrooms: Optional[int] = Query(None, ge=0, le=50, description="Minimum number of bedrooms"),
    bathrooms: Optional[int] = Query(None, ge=0, le=50, description="Minimum number of bathrooms"),
    min_area: Optional[int] = Query(None, gt=0, description="Minimum area in square feet"),
    max_area: Optional[int] = Query(None, gt=0, description="Maximum area in square feet"),

    # Owner filter (admin only)
    owner_id: Optional[str] = Query(None, description="Filter by owner ID (admin only)"),

    # Pagination
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),

    # Sorting
    sort_by: str = Query("created_at", description="Sort field"),
    sort_order: str = Query("desc", description="Sort order (asc/desc)"),

    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyListResponse:
    search_filters = PropertySearchFilters(
        query=query,
        city=city,
        state=state,
        flow_type=flow_type,
        property_type=property_type,
        subtype=subtype,
        transaction_type=transaction_type,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        min_area=min_area,
        max_area=max_area,
        owner_id=owner_id,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order
    )

    properties, total = await property_service.search_properties(search_filters, current_user)
    responses = await build_property_responses(properties, favorite_service, current_user)
    return paginate(responses, total, page, page_size)


@router.get(
    "/my",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get my listings",
    description="Listings of the current user in every status",
    responses=get_common_error_responses()
)
async def get_my_properties(
    status_filter: Optional[PropertyStatus] = Query(None, alias="status", description="Only this status"),
    include_archived: bool = Query(False, description="Include archived listings"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyListResponse:
    properties, total = await property_service.get_owner_properties(
        current_user.id,
        current_user,
        page=page,
        page_size=page_size,
        status=status_filter,
        include_archived=include_archived
    )
    responses = await build_property_responses(properties, favorite_service, current_user)
    return paginate(responses, total, page, page_size)


@router.get(
    "/stats",
    response_model=PropertyStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="Listing statistics",
    description="Counts and price statistics; owners see their own listings, admins may pick any owner",
    responses=get_common_error_responses()
)
async def get_property_stats(
    owner_id: Optional[UUID] = Query(None, description="Owner to report on (admin only)"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyStatsResponse:
    stats = await property_service.get_property_statistics(current_user, owner_id)
    return PropertyStatsResponse.model_validate(stats)


@router.get(
    "/nearby",
    response_model=List[NearbyPropertyResponse],
    status_code=status.HTTP_200_OK,
    summary="Listings near a point",
    description="Published listings within a radius, nearest first",
    responses=get_common_error_responses()
)
async def get_nearby_properties(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(5.0, gt=0, le=100, description="Search radius in kilometers"),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> List[NearbyPropertyResponse]:
    nearby = await property_service.get_nearby_properties(latitude, longitude, radius_km, limit)
    responses = await build_property_responses([prop for prop, _ in nearby], favorite_service, current_user)
    return [
        NearbyPropertyResponse(property=response, distance_km=distance)
        for response, (_, distance) in zip(responses, nearby)
    ]


@router.get(
    "/map",
    response_model=List[MapMarkerResponse],
    status_code=status.HTTP_200_OK,
    summary="Map markers in a bounding box",
    description="Published listings inside the box; west greater than east crosses the antimeridian",
    responses=get_common_error_responses()
)
async def get_map_markers(
    south: float = Query(..., ge=-90, le=90),
    west: float = Query(..., ge=-180, le=180),
    north: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
    limit: int = Query(200, ge=1, le=500),
    coordinate_service: CoordinateService = Depends(get_coordinate_service)
) -> List[MapMarkerResponse]:
    markers = await coordinate_service.find_in_bounds(south, west, north, east, limit)
    return [MapMarkerResponse.model_validate(marker) for marker in markers]


@router.get(
    "/code/{code}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a listing by its code",
    responses=get_common_error_responses()
)
async def get_property_by_code(
    code: str = Path(..., min_length=6, max_length=6, description="Six character property code"),
    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    property_obj = await property_service.get_by_code(code, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.get(
    "/owner/{owner_id}",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get an owner's listings",
    description="Other users only see the owner's published listings",
    responses=get_common_error_responses()
)
async def get_owner_properties(
    owner_id: UUID = Path(..., description="Owner ID"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyListResponse:
    properties, total = await property_service.get_owner_properties(
        owner_id, current_user, page=page, page_size=page_size
    )
    responses = await build_property_responses(properties, favorite_service, current_user)
    return paginate(responses, total, page, page_size)


@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a listing",
    description="Drafts and rejected listings are only visible to their owner and the moderation staff",
    responses=get_common_error_responses()
)
async def get_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    property_obj = await property_service.get_property(property_id, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.get(
    "/{property_id}/similar",
    response_model=List[SimilarPropertyResponse],
    status_code=status.HTTP_200_OK,
    summary="Similar listings",
    description="Published listings scored on flow, city, price and bedrooms",
    responses=get_common_error_responses()
)
async def get_similar_properties(
    property_id: UUID = Path(..., description="Property ID"),
    limit: Optional[int] = Query(None, description="Maximum results, clamped to 1-50"),
    min_score: Optional[float] = Query(None, description="Minimum score, clamped to 0-1"),
    current_user: Optional[User] = Depends(get_optional_current_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> List[SimilarPropertyResponse]:
    similar = await property_service.get_similar_properties(property_id, limit, min_score, current_user)
    responses = await build_property_responses([prop for prop, _ in similar], favorite_service, current_user)
    return [
        SimilarPropertyResponse(property=response, score=score)
        for response, (_, score) in zip(responses, similar)
    ]


@router.put(
    "/{property_id}/steps/{step_id}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Save a wizard step",
    description="Replace the data of one step. With validate set, invalid fields reject the save.",
    responses=get_crud_error_responses()
)
async def save_step(
    step_data: StepSaveRequest,
    property_id: UUID = Path(..., description="Property ID"),
    step_id: str = Path(..., description="Full step id, e.g. res_rent_location"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    """
    Save one step of the wizard.

    Raises:
        InvalidFlowError: If the step doesn't belong to the property's flow
        StepValidationError: If validation was requested and fields are invalid
    """
    property_obj = await property_service.save_step(
        property_id, step_id, step_data.data, current_user, validate=step_data.validate_step
    )
    return await build_property_response(property_obj, favorite_service, current_user)


@router.get(
    "/{property_id}/steps/{step_id}/validation",
    response_model=StepValidationResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate a saved step",
    responses=get_common_error_responses()
)
async def validate_saved_step(
    property_id: UUID = Path(..., description="Property ID"),
    step_id: str = Path(..., description="Full step id"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> StepValidationResponse:
    result = await property_service.validate_step(property_id, step_id, current_user)
    return StepValidationResponse.model_validate(result.to_dict())


@router.get(
    "/{property_id}/completion",
    response_model=CompletionResponse,
    status_code=status.HTTP_200_OK,
    summary="Listing completion",
    description="Missing steps and images that block publishing",
    responses=get_common_error_responses()
)
async def get_completion(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> CompletionResponse:
    completion = await property_service.get_completion(property_id, current_user)
    return CompletionResponse.model_validate(completion.to_dict())


@router.put(
    "/{property_id}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Update a listing",
    description="Update description and tags, or replace the whole details blob",
    responses=get_crud_error_responses()
)
async def update_property(
    property_data: PropertyUpdate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    property_obj = await property_service.update_property(property_id, property_data, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.post(
    "/{property_id}/publish",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Publish a listing",
    description="Publish a complete draft or resubmit a rejected listing",
    responses=get_crud_error_responses()
)
async def publish_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    """
    Publish a listing.

    Raises:
        PropertyIncompleteError: If steps or images are missing
        StepValidationError: If a step has invalid fields
        PropertyStatusError: If the listing is already published or archived
    """
    property_obj = await property_service.publish_property(property_id, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.post(
    "/{property_id}/toggle-publish",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Publish or unpublish a listing",
    responses=get_crud_error_responses()
)
async def toggle_publish(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    property_obj = await property_service.toggle_publish(property_id, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.post(
    "/{property_id}/archive",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Archive a listing",
    description="Remove a listing from search while keeping its data",
    responses=get_crud_error_responses()
)
async def archive_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    property_obj = await property_service.archive_property(property_id, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.delete(
    "/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a listing",
    description="Delete a listing with its images, likes, visits and reports",
    responses=get_common_error_responses()
)
async def delete_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> Response:
    await property_service.delete_property(property_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
