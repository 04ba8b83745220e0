"""
Visit requests and listing reports.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from typing import List, Optional
from uuid import UUID

from marketplace.models.user import User
from marketplace.models.visit import VisitStatus
from marketplace.services.visit import VisitService
from marketplace.schemas.visit import (
    VisitCreate,
    VisitStatusUpdate,
    VisitResponse,
    ReportCreate,
    ReportResponse,
)
from marketplace.schemas.error import get_crud_error_responses, get_common_error_responses
from marketplace.utils.dependencies import get_current_active_user, get_visit_service


router = APIRouter(tags=["Visits"])


@router.post(
    "/properties/{property_id}/visits",
    response_model=VisitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a visit",
    description="Ask the owner of a published listing for a visit on a future date",
    responses=get_crud_error_responses()
)
async def request_visit(
    visit_data: VisitCreate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    visit_service: VisitService = Depends(get_visit_service)
) -> VisitResponse:
    visit = await visit_service.request_visit(
        current_user, property_id, visit_data.visit_date, visit_data.message
    )
    return VisitResponse.model_validate(visit.to_dict())


@router.get(
    "/properties/{property_id}/visits",
    response_model=List[VisitResponse],
    status_code=status.HTTP_200_OK,
    summary="Visit requests of a property",
    description="For the owner of the property and admins",
    responses=get_common_error_responses()
)
async def list_property_visits(
    property_id: UUID = Path(..., description="Property ID"),
    status_filter: Optional[VisitStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    visit_service: VisitService = Depends(get_visit_service)
) -> List[VisitResponse]:
    visits = await visit_service.list_property_visits(property_id, current_user, status_filter)
    return [VisitResponse.model_validate(visit.to_dict()) for visit in visits]


@router.get(
    "/visits/my",
    response_model=List[VisitResponse],
    status_code=status.HTTP_200_OK,
    summary="My visit requests"
)
async def list_my_visits(
    current_user: User = Depends(get_current_active_user),
    visit_service: VisitService = Depends(get_visit_service)
) -> List[VisitResponse]:
    visits = await visit_service.list_my_visits(current_user)
    return [VisitResponse.model_validate(visit.to_dict()) for visit in visits]


@router.put(
    "/visits/{visit_id}/status",
    response_model=VisitResponse,
    status_code=status.HTTP_200_OK,
    summary="Answer or cancel a visit request",
    description="The owner approves or rejects; the requester cancels. Only pending requests change.",
    responses=get_crud_error_responses()
)
async def update_visit_status(
    status_data: VisitStatusUpdate,
    visit_id: UUID = Path(..., description="Visit ID"),
    current_user: User = Depends(get_current_active_user),
    visit_service: VisitService = Depends(get_visit_service)
) -> VisitResponse:
    visit = await visit_service.update_visit_status(visit_id, status_data.status, current_user)
    return VisitResponse.model_validate(visit.to_dict())


@router.post(
    "/properties/{property_id}/reports",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report a listing",
    description="One open report per user and listing",
    responses=get_crud_error_responses()
)
async def report_property(
    report_data: ReportCreate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    visit_service: VisitService = Depends(get_visit_service)
) -> ReportResponse:
    report = await visit_service.report_property(
        current_user, property_id, report_data.reason, report_data.description
    )
    return ReportResponse.model_validate(report.to_dict())
