"""
Error response schemas for API documentation and consistent error formatting.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Any, Dict


class ErrorDetail(BaseModel):
    """Schema for individual error detail."""

    field: Optional[str] = Field(None, description="Field name that caused the error", examples=["pinCode"])
    message: str = Field(..., description="Human-readable error message", examples=["PIN Code format is invalid"])
    type: Optional[str] = Field(None, description="Error type identifier")
    input: Optional[Any] = Field(None, description="Input value that caused the error")
    rule: Optional[str] = Field(None, description="Rule or wizard step that was violated", examples=["res_rent_location"])


class ErrorResponse(BaseModel):
    """Schema for standardized error responses."""

    code: str = Field(..., description="Error code identifier", examples=["VALIDATION_ERROR"])
    message: str = Field(..., description="Human-readable error message")
    timestamp: str = Field(..., description="Error timestamp in ISO format")
    request_id: Optional[str] = Field(None, description="Unique request identifier for tracking")
    details: Optional[List[ErrorDetail]] = Field(None, description="Field level errors")


class APIErrorResponse(BaseModel):
    """Schema for API error response wrapper."""

    error: ErrorResponse = Field(..., description="Error information")


ERROR_DESCRIPTIONS = {
    400: ("BAD_REQUEST", "Bad Request - Invalid request parameters"),
    401: ("UNAUTHORIZED", "Unauthorized - Authentication required"),
    403: ("FORBIDDEN", "Forbidden - Access denied"),
    404: ("NOT_FOUND", "Not Found - Resource does not exist"),
    409: ("CONFLICT", "Conflict - Resource already exists"),
    422: ("VALIDATION_ERROR", "Unprocessable Entity - Validation failed"),
    429: ("RATE_LIMIT_EXCEEDED", "Too Many Requests - Rate limit exceeded"),
    500: ("INTERNAL_SERVER_ERROR", "Internal Server Error"),
}


def get_error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """
    Build OpenAPI ``responses`` entries for the given status codes.

    Args:
        status_codes: HTTP status codes the endpoint can return

    Returns:
        Mapping usable as the ``responses`` argument of a route decorator
    """
    responses = {}
    for status_code in status_codes:
        code, description = ERROR_DESCRIPTIONS[status_code]
        responses[status_code] = {
            "description": description,
            "model": APIErrorResponse,
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": code,
                            "message": description.split(" - ")[-1],
                            "timestamp": "2025-01-01T00:00:00Z",
                            "request_id": "abc12345",
                        }
                    }
                }
            },
        }
    return responses


def get_auth_error_responses() -> Dict[int, Dict[str, Any]]:
    return get_error_responses(401, 403)


def get_common_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get common error response schemas for most endpoints."""
    return get_error_responses(400, 401, 403, 404, 422, 500)


def get_crud_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get error response schemas for CRUD operations."""
    return get_error_responses(400, 401, 403, 404, 409, 422, 500)
