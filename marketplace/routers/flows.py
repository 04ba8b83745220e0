"""
Listing flow endpoints: the wizard's flow and step tables and stateless
step validation for forms that check fields before saving.
"""

from fastapi import APIRouter, Path, status
from typing import List
from marketplace.flows.definitions import get_flow, list_flows, require_step
from marketplace.flows.validation import validate_step
from marketplace.schemas.flow import (
    FlowResponse,
    FlowSummaryResponse,
    StepConfigResponse,
    StepValidationRequest,
    StepValidationResponse,
)
from marketplace.schemas.error import get_error_responses


router = APIRouter(prefix="/flows", tags=["Flows"])


@router.get(
    "",
    response_model=List[FlowSummaryResponse],
    status_code=status.HTTP_200_OK,
    summary="List listing flows"
)
async def get_flows() -> List[FlowSummaryResponse]:
    return [
        FlowSummaryResponse(
            flow_type=flow.flow_type,
            name=flow.name,
            category=flow.category,
            listing_type=flow.listing_type,
            step_ids=flow.step_ids,
        )
        for flow in list_flows()
    ]


@router.get(
    "/{flow_type}",
    response_model=FlowResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a flow with its steps",
    description="Ordered wizard steps with their field rules",
    responses=get_error_responses(400)
)
async def get_flow_config(
    flow_type: str = Path(..., description="Flow type, e.g. residential_rent")
) -> FlowResponse:
    return FlowResponse.model_validate(get_flow(flow_type).to_dict())


@router.get(
    "/{flow_type}/steps/{step_id}",
    response_model=StepConfigResponse,
    status_code=status.HTTP_200_OK,
    summary="Get one step of a flow",
    responses=get_error_responses(400)
)
async def get_step(
    flow_type: str = Path(..., description="Flow type"),
    step_id: str = Path(..., description="Full step id, e.g. res_rent_location")
) -> StepConfigResponse:
    return StepConfigResponse.model_validate(require_step(flow_type, step_id).to_dict())


@router.post(
    "/validate",
    response_model=StepValidationResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate step data",
    description="Validate the fields of one step without saving anything",
    responses=get_error_responses(400, 422)
)
async def validate_step_data(request: StepValidationRequest) -> StepValidationResponse:
    """
    Check step data against the step's field rules.

    Raises:
        InvalidFlowError: If the step does not belong to the flow
    """
    require_step(request.flow_type, request.step_id)
    result = validate_step(request.flow_type, request.step_id, request.data)
    return StepValidationResponse.model_validate(result.to_dict())
