"""
Schemas for the flow tables and stateless step validation.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from marketplace.flows.definitions import FlowType


class FieldRuleResponse(BaseModel):
    name: str
    label: str
    kind: str
    required: bool
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    pattern: Optional[str] = None
    options: List[str] = Field(default_factory=list)
    min_items: Optional[int] = None


class StepConfigResponse(BaseModel):
    step_id: str = Field(..., examples=["res_rent_basic_details"])
    name: str = Field(..., examples=["Property Details"])
    fields: List[FieldRuleResponse]
    required_fields: List[str]


class FlowResponse(BaseModel):
    """A listing flow with its ordered wizard steps."""

    flow_type: FlowType
    name: str
    prefix: str
    category: str
    listing_type: str
    steps: List[StepConfigResponse]


class FlowSummaryResponse(BaseModel):
    flow_type: FlowType
    name: str
    category: str
    listing_type: str
    step_ids: List[str]


class StepValidationRequest(BaseModel):
    """Validate step data without saving it."""

    flow_type: FlowType = Field(..., description="Flow the step belongs to")
    step_id: str = Field(..., description="Full step id", examples=["res_rent_location"])
    data: Dict[str, Any] = Field(default_factory=dict, description="Field values of the step")


class StepValidationResponse(BaseModel):
    step_id: str
    is_valid: bool
    errors: Dict[str, str] = Field(default_factory=dict, description="Field name to error message")
    completion_percentage: int = Field(..., ge=0, le=100)


class CompletionResponse(BaseModel):
    """Whether a property can be published."""

    is_complete: bool
    missing_steps: List[str]
    completed_steps: List[str]
    has_images: bool
    percentage: int = Field(..., ge=0, le=100)
