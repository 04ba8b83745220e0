"""
Field and step validation for the listing wizard.

Validation is recomputed from the static flow tables each time it is asked
for; nothing about validity is stored on the property.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional
import math
import re

from marketplace.flows.definitions import (
    FieldKind,
    FieldRule,
    StepConfig,
    get_flow,
    get_step_config,
)


@dataclass
class StepValidationResult:
    """Outcome of validating one step."""
    step_id: str
    is_valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    completion_percentage: int = 100

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "is_valid": self.is_valid,
            "errors": dict(self.errors),
            "completion_percentage": self.completion_percentage,
        }


@dataclass
class CompletionStatus:
    """Whether a property has everything it needs to be published."""
    is_complete: bool
    missing_steps: List[str]
    has_images: bool
    percentage: int
    completed_steps: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_complete": self.is_complete,
            "missing_steps": list(self.missing_steps),
            "completed_steps": list(self.completed_steps),
            "has_images": self.has_images,
            "percentage": self.percentage,
        }


def is_empty(value: Any) -> bool:
    """None, blank strings and empty collections are empty; 0 and False are values."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def get_nested_value(data: Optional[Mapping[str, Any]], path: str) -> Any:
    """Resolve a dotted path such as ``coordinates.latitude``."""
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def _as_number(value: Any) -> Optional[float]:
    """Finite number from an int, float or numeric string; None otherwise."""
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _validate_coordinates(rule: FieldRule, value: Any) -> Optional[str]:
    if not isinstance(value, Mapping):
        return "Please select location on map"

    latitude = _as_number(value.get("latitude"))
    longitude = _as_number(value.get("longitude"))
    if latitude is None or longitude is None:
        return "Please select location on map"
    if abs(latitude) > 90 or abs(longitude) > 180:
        return "Invalid coordinates"
    return None


def validate_field(rule: FieldRule, value: Any) -> Optional[str]:
    """
    Validate a single field value against its rule.

    Args:
        rule: Field rule from the flow tables
        value: Submitted value

    Returns:
        Error message, or None when the value is acceptable
    """
    if is_empty(value):
        return f"{rule.label} is required" if rule.required else None

    if rule.kind == FieldKind.COORDINATES:
        return _validate_coordinates(rule, value)

    if rule.kind == FieldKind.CHECKBOX:
        items = value if isinstance(value, (list, tuple, set)) else [value]
        if rule.min_items is not None and len(items) < rule.min_items:
            return f"Select at least one {rule.label}"
        if rule.options and any(item not in rule.options for item in items):
            return f"{rule.label} must be one of the allowed options"
        return None

    if rule.kind == FieldKind.BOOLEAN:
        return None if isinstance(value, bool) else f"{rule.label} format is invalid"

    if rule.kind == FieldKind.DATE:
        try:
            date.fromisoformat(str(value)[:10])
        except ValueError:
            return f"{rule.label} format is invalid"
        return None

    if isinstance(value, str):
        if rule.min_length is not None and len(value) < rule.min_length:
            return f"{rule.label} must be at least {rule.min_length} characters"
        if rule.max_length is not None and len(value) > rule.max_length:
            return f"{rule.label} must not exceed {rule.max_length} characters"

    number = _as_number(value)
    if rule.kind == FieldKind.NUMBER and number is None:
        return f"{rule.label} format is invalid"
    if number is not None:
        if rule.min_value is not None and number < rule.min_value:
            return f"{rule.label} must be at least {_format_bound(rule.min_value)}"
        if rule.max_value is not None and number > rule.max_value:
            return f"{rule.label} must not exceed {_format_bound(rule.max_value)}"

    if rule.pattern and not re.match(rule.pattern, str(value)):
        return f"{rule.label} format is invalid"

    if rule.options and value not in rule.options:
        return f"{rule.label} must be one of the allowed options"

    return None


def completion_for(step: StepConfig, data: Optional[Mapping[str, Any]]) -> int:
    """Percentage of the step's required fields that hold a value."""
    required = [rule for rule in step.fields if rule.required]
    if not required:
        return 100

    filled = sum(1 for rule in required if not is_empty(get_nested_value(data, rule.name)))
    return round(100 * filled / len(required))


def validate_step_config(step: StepConfig, data: Optional[Mapping[str, Any]]) -> StepValidationResult:
    errors: Dict[str, str] = {}
    for rule in step.fields:
        error = validate_field(rule, get_nested_value(data, rule.name))
        if error:
            errors[rule.name] = error

    return StepValidationResult(
        step_id=step.step_id,
        is_valid=not errors,
        errors=errors,
        completion_percentage=completion_for(step, data),
    )


def validate_step(flow_type, step_id: str, data: Optional[Mapping[str, Any]]) -> StepValidationResult:
    """
    Validate the data of one wizard step.

    A step without a configuration (such as the review page) is always valid.
    """
    step = get_step_config(flow_type, step_id)
    if step is None:
        return StepValidationResult(step_id=step_id, is_valid=True)
    return validate_step_config(step, data)


def is_step_valid(flow_type, step_id: str, data: Optional[Mapping[str, Any]]) -> bool:
    return validate_step(flow_type, step_id, data).is_valid


def completion_percentage(flow_type, step_id: str, data: Optional[Mapping[str, Any]]) -> int:
    step = get_step_config(flow_type, step_id)
    if step is None:
        return 100
    return completion_for(step, data)


def validate_all_steps(flow_type, steps: Optional[Mapping[str, Any]]) -> Dict[str, StepValidationResult]:
    """Validate every step of the flow against the stored step data."""
    steps = steps or {}
    return {
        step.step_id: validate_step_config(step, steps.get(step.step_id))
        for step in get_flow(flow_type).steps
    }


def check_completion(flow_type, details: Optional[Mapping[str, Any]], image_count: int) -> CompletionStatus:
    """
    Check whether every step of the flow has data and at least one image exists.

    The percentage counts each step and the image requirement as one unit.
    """
    steps = (details or {}).get("steps") or {}
    flow = get_flow(flow_type)

    completed = [step_id for step_id in flow.step_ids if not is_empty(steps.get(step_id))]
    missing = [step_id for step_id in flow.step_ids if step_id not in completed]
    has_images = image_count > 0

    units = len(flow.step_ids) + 1
    done = len(completed) + (1 if has_images else 0)

    return CompletionStatus(
        is_complete=not missing and has_images,
        missing_steps=missing,
        has_images=has_images,
        percentage=round(100 * done / units),
        completed_steps=completed,
    )
