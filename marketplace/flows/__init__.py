"""
Listing wizard flows: static tables, validation, blob extraction and search mapping.
These modules are pure and never touch the database.
"""

from marketplace.flows.definitions import (
    FlowType,
    FieldKind,
    FieldRule,
    StepConfig,
    FlowConfig,
    FLOW_CONFIGS,
    REVIEW_STEP,
    coerce_flow_type,
    get_flow,
    list_flows,
    get_step_ids,
    get_step_config,
    require_step,
    get_required_fields,
)
from marketplace.flows.validation import (
    StepValidationResult,
    CompletionStatus,
    validate_field,
    validate_step,
    is_step_valid,
    completion_percentage,
    validate_all_steps,
    check_completion,
)
from marketplace.flows.detection import map_subtype_to_flow, extract_transaction_type

__all__ = [
    "FlowType",
    "FieldKind",
    "FieldRule",
    "StepConfig",
    "FlowConfig",
    "FLOW_CONFIGS",
    "REVIEW_STEP",
    "coerce_flow_type",
    "get_flow",
    "list_flows",
    "get_step_ids",
    "get_step_config",
    "require_step",
    "get_required_fields",
    "StepValidationResult",
    "CompletionStatus",
    "validate_field",
    "validate_step",
    "is_step_valid",
    "completion_percentage",
    "validate_all_steps",
    "check_completion",
    "map_subtype_to_flow",
    "extract_transaction_type",
]
