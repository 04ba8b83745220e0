"""
Error handling service for consistent error response formatting and logging.
Every error leaves the API as {"error": {code, message, timestamp, request_id, details?}}.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from marketplace.utils.exceptions import APIException
import logging
import uuid

logger = logging.getLogger(__name__)


class ErrorHandlerService:
    """
    Formats errors consistently across the application.
    The request id set by the request middleware is reused so logs and responses match.
    """

    @staticmethod
    def format_error_response(
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Format error response in a consistent structure.

        Args:
            error_code: Error code identifier
            message: Human-readable error message
            details: Optional list of field level errors
            request_id: Optional request identifier for tracking

        Returns:
            Formatted error response dictionary
        """
        response = {
            "error": {
                "code": error_code,
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                "request_id": request_id,
            }
        }

        if details:
            response["error"]["details"] = details

        return response

    @staticmethod
    def handle_api_exception(exception: APIException, request: Optional[Request] = None) -> JSONResponse:
        """Handle custom API exceptions, including field errors of validation failures."""
        request_id = ErrorHandlerService.get_request_id(request)
        details = getattr(exception, "field_errors", None) or None

        logger.warning(
            f"API Exception [{request_id}]: {exception.error_code} - {exception.detail}",
            extra={
                "error_code": exception.error_code,
                "status_code": exception.status_code,
                "request_id": request_id,
                "path": request.url.path if request else None,
            }
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code=exception.error_code or "API_ERROR",
            message=str(exception.detail),
            details=details,
            request_id=request_id,
        )
        return JSONResponse(status_code=exception.status_code, content=error_response, headers=exception.headers)

    @staticmethod
    def handle_validation_error(errors: List[Dict[str, Any]], request: Optional[Request] = None) -> JSONResponse:
        """
        Handle request validation errors with one entry per field.

        Args:
            errors: The ``errors()`` list of a pydantic or FastAPI validation error
            request: Optional FastAPI request object
        """
        request_id = ErrorHandlerService.get_request_id(request)

        validation_details = []
        for error in errors:
            validation_details.append({
                "field": " -> ".join(str(loc) for loc in error.get("loc", ())),
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type"),
                "input": error.get("input"),
            })

        logger.warning(
            f"Validation Error [{request_id}]: {len(validation_details)} field errors",
            extra={"request_id": request_id, "path": request.url.path if request else None}
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code="VALIDATION_ERROR",
            message="Request validation failed",
            details=validation_details,
            request_id=request_id,
        )
        return JSONResponse(status_code=422, content=jsonable_encoder(error_response))

    @staticmethod
    def handle_database_error(exception: SQLAlchemyError, request: Optional[Request] = None) -> JSONResponse:
        request_id = ErrorHandlerService.get_request_id(request)

        if isinstance(exception, IntegrityError):
            error_code = "INTEGRITY_ERROR"
            status_code = 409
            message = ErrorHandlerService._constraint_message(exception)
        else:
            error_code = "DATABASE_ERROR"
            status_code = 500
            message = "Database operation failed"

        logger.error(
            f"Database Error [{request_id}]: {error_code} - {str(exception)}",
            extra={"request_id": request_id, "path": request.url.path if request else None},
            exc_info=True
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code=error_code,
            message=message,
            request_id=request_id,
        )
        return JSONResponse(status_code=status_code, content=error_response)

    @staticmethod
    def handle_http_exception(exception: StarletteHTTPException, request: Optional[Request] = None) -> JSONResponse:
        """Handle framework HTTP exceptions such as unknown routes."""
        request_id = ErrorHandlerService.get_request_id(request)

        logger.warning(
            f"HTTP Exception [{request_id}]: {exception.status_code} - {exception.detail}",
            extra={"request_id": request_id, "path": request.url.path if request else None}
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code=f"HTTP_{exception.status_code}",
            message=str(exception.detail),
            request_id=request_id,
        )
        return JSONResponse(
            status_code=exception.status_code,
            content=error_response,
            headers=getattr(exception, "headers", None),
        )

    @staticmethod
    def handle_unexpected_error(exception: Exception, request: Optional[Request] = None) -> JSONResponse:
        """Log the traceback and return a generic message."""
        request_id = ErrorHandlerService.get_request_id(request)

        logger.error(
            f"Unexpected Error [{request_id}]: {type(exception).__name__} - {str(exception)}",
            extra={"request_id": request_id, "path": request.url.path if request else None},
            exc_info=exception
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code="INTERNAL_SERVER_ERROR",
            message="An unexpected error occurred. Please try again later.",
            request_id=request_id,
        )
        return JSONResponse(status_code=500, content=error_response)

    @staticmethod
    def get_request_id(request: Optional[Request]) -> str:
        if request is not None:
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                return request_id
        return str(uuid.uuid4())[:8]

    @staticmethod
    def _constraint_message(exception: IntegrityError) -> str:
        error_msg = str(exception.orig).lower()
        if "unique" in error_msg:
            return "Constraint violation: Duplicate value for unique field"
        if "foreign key" in error_msg:
            return "Constraint violation: Referenced record does not exist"
        if "not null" in error_msg:
            return "Constraint violation: Required field cannot be empty"
        return "Data integrity constraint violation"
