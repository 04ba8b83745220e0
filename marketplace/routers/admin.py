"""
Administration endpoints: the moderation queue, user management, listing
reports and the coordinate sync.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from typing import Optional
from uuid import UUID
import math

from marketplace.config import settings
from marketplace.models.user import User, UserRole
from marketplace.models.visit import ReportStatus
from marketplace.services.coordinates import CoordinateService
from marketplace.services.favorite import FavoriteService
from marketplace.services.moderation import ModerationService
from marketplace.services.visit import VisitService
from marketplace.schemas.moderation import (
    RejectRequest,
    ModerationStatsResponse,
    PropertySyncResponse,
    SyncResultResponse,
    MigrationStatsResponse,
)
from marketplace.schemas.property import PropertyResponse, PropertyListResponse
from marketplace.schemas.user import (
    UserResponse,
    UserListResponse,
    UserRoleUpdate,
    UserStatusUpdate,
    UserStatsResponse,
)
from marketplace.schemas.visit import ReportResolve, ReportResponse, ReportListResponse
from marketplace.schemas.error import get_crud_error_responses, get_common_error_responses
from marketplace.routers.properties import build_property_response, build_property_responses, paginate
from marketplace.utils.dependencies import (
    get_current_admin_user,
    get_current_staff_user,
    get_coordinate_service,
    get_favorite_service,
    get_moderation_service,
    get_visit_service,
)


router = APIRouter(prefix="/admin", tags=["Administration"])


# Moderation

@router.get(
    "/properties/pending",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="Moderation queue",
    description="Listings awaiting review, oldest first",
    responses=get_common_error_responses()
)
async def list_pending_properties(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_staff_user),
    moderation_service: ModerationService = Depends(get_moderation_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyListResponse:
    properties, total = await moderation_service.list_pending(current_user, page, page_size)
    responses = await build_property_responses(properties, favorite_service, current_user)
    return paginate(responses, total, page, page_size)


@router.post(
    "/properties/{property_id}/approve",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve a listing",
    description="Publish the listing and tag it public",
    responses=get_crud_error_responses()
)
async def approve_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_staff_user),
    moderation_service: ModerationService = Depends(get_moderation_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    property_obj = await moderation_service.approve_property(property_id, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.post(
    "/properties/{property_id}/reject",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Reject a listing",
    description="The reason is stored on the listing for its owner",
    responses=get_crud_error_responses()
)
async def reject_property(
    reject_data: RejectRequest,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_staff_user),
    moderation_service: ModerationService = Depends(get_moderation_service),
    favorite_service: FavoriteService = Depends(get_favorite_service)
) -> PropertyResponse:
    property_obj = await moderation_service.reject_property(property_id, reject_data.reason, current_user)
    return await build_property_response(property_obj, favorite_service, current_user)


@router.get(
    "/stats",
    response_model=ModerationStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="Moderation statistics",
    responses=get_common_error_responses()
)
async def get_moderation_stats(
    current_user: User = Depends(get_current_staff_user),
    moderation_service: ModerationService = Depends(get_moderation_service)
) -> ModerationStatsResponse:
    stats = await moderation_service.get_moderation_stats(current_user)
    return ModerationStatsResponse.model_validate(stats)


# User management

@router.get(
    "/users",
    response_model=UserListResponse,
    status_code=status.HTTP_200_OK,
    summary="List users",
    responses=get_common_error_responses()
)
async def list_users(
    search: Optional[str] = Query(None, max_length=255, description="Text over email and name"),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_admin_user),
    moderation_service: ModerationService = Depends(get_moderation_service)
) -> UserListResponse:
    users, total = await moderation_service.list_users(
        current_user, search=search, role=role, is_active=is_active, page=page, page_size=page_size
    )
    return UserListResponse(
        users=[UserResponse.model_validate(user.to_dict()) for user in users],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total > 0 else 0
    )


@router.get(
    "/users/stats",
    response_model=UserStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="User statistics",
    responses=get_common_error_responses()
)
async def get_user_stats(
    current_user: User = Depends(get_current_admin_user),
    moderation_service: ModerationService = Depends(get_moderation_service)
) -> UserStatsResponse:
    stats = await moderation_service.get_user_statistics(current_user)
    return UserStatsResponse.model_validate(stats)


@router.put(
    "/users/{user_id}/role",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Change a user's role",
    description="Only super admins grant or revoke admin roles",
    responses=get_crud_error_responses()
)
async def update_user_role(
    role_data: UserRoleUpdate,
    user_id: UUID = Path(..., description="User ID"),
    current_user: User = Depends(get_current_admin_user),
    moderation_service: ModerationService = Depends(get_moderation_service)
) -> UserResponse:
    user = await moderation_service.update_user_role(user_id, role_data.role, current_user)
    return UserResponse.model_validate(user.to_dict())


@router.put(
    "/users/{user_id}/status",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Activate or deactivate a user",
    responses=get_crud_error_responses()
)
async def update_user_status(
    status_data: UserStatusUpdate,
    user_id: UUID = Path(..., description="User ID"),
    current_user: User = Depends(get_current_admin_user),
    moderation_service: ModerationService = Depends(get_moderation_service)
) -> UserResponse:
    user = await moderation_service.update_user_status(user_id, status_data.is_active, current_user)
    return UserResponse.model_validate(user.to_dict())


# Reports

@router.get(
    "/reports",
    response_model=ReportListResponse,
    status_code=status.HTTP_200_OK,
    summary="List listing reports",
    responses=get_common_error_responses()
)
async def list_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_staff_user),
    visit_service: VisitService = Depends(get_visit_service)
) -> ReportListResponse:
    reports, total = await visit_service.list_reports(current_user, status_filter, page, page_size)
    return ReportListResponse(
        reports=[ReportResponse.model_validate(report.to_dict()) for report in reports],
        total=total,
        page=page,
        page_size=page_size
    )


@router.put(
    "/reports/{report_id}",
    response_model=ReportResponse,
    status_code=status.HTTP_200_OK,
    summary="Resolve or dismiss a report",
    responses=get_crud_error_responses()
)
async def resolve_report(
    resolve_data: ReportResolve,
    report_id: UUID = Path(..., description="Report ID"),
    current_user: User = Depends(get_current_staff_user),
    visit_service: VisitService = Depends(get_visit_service)
) -> ReportResponse:
    report = await visit_service.resolve_report(report_id, resolve_data.status, current_user)
    return ReportResponse.model_validate(report.to_dict())


# Coordinate sync

@router.post(
    "/coordinates/sync",
    response_model=SyncResultResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync coordinates of every listing",
    description="Copy location step coordinates into the coordinates table; failures are reported per listing",
    responses=get_common_error_responses()
)
async def sync_all_coordinates(
    batch_size: Optional[int] = Query(None, ge=1, le=1000, description="Listings loaded per batch"),
    current_user: User = Depends(get_current_admin_user),
    coordinate_service: CoordinateService = Depends(get_coordinate_service)
) -> SyncResultResponse:
    result = await coordinate_service.sync_all(batch_size)
    return SyncResultResponse.model_validate(result.to_dict())


@router.post(
    "/coordinates/sync/{property_id}",
    response_model=PropertySyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync coordinates of one listing",
    responses=get_common_error_responses()
)
async def sync_property_coordinates(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_admin_user),
    coordinate_service: CoordinateService = Depends(get_coordinate_service)
) -> PropertySyncResponse:
    outcome = await coordinate_service.sync_property(property_id)
    return PropertySyncResponse.model_validate(outcome.to_dict())


@router.get(
    "/coordinates/stats",
    response_model=MigrationStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="Coordinate sync progress",
    responses=get_common_error_responses()
)
async def get_coordinate_stats(
    current_user: User = Depends(get_current_admin_user),
    coordinate_service: CoordinateService = Depends(get_coordinate_service)
) -> MigrationStatsResponse:
    stats = await coordinate_service.get_migration_stats()
    return MigrationStatsResponse.model_validate(stats)
