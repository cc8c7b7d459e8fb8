"""
Error response schemas for OpenAPI documentation.
Every failure is returned as {"error": {"code", "message", "timestamp", "request_id", "details"?}}.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Any, Dict


class ErrorDetail(BaseModel):
    """Schema for individual error detail."""

    field: Optional[str] = Field(
        None,
        description="Field name that caused the error",
        example="months"
    )

    message: str = Field(
        ...,
        description="Human-readable error message",
        example="Input should be less than or equal to 36"
    )

    type: Optional[str] = Field(
        None,
        description="Error type identifier",
        example="less_than_equal"
    )

    input: Optional[Any] = Field(
        None,
        description="Input value that caused the error",
        example=48
    )


class ErrorResponse(BaseModel):
    """Schema for standardized error responses."""

    code: str = Field(..., description="Error code identifier", example="VALIDATION_ERROR")
    message: str = Field(..., description="Human-readable error message", example="Request validation failed")
    timestamp: str = Field(..., description="Error timestamp in ISO format", example="2024-01-01T00:00:00Z")
    request_id: Optional[str] = Field(None, description="Request identifier, also sent as X-Request-ID", example="abc12345")
    details: Optional[List[ErrorDetail]] = Field(None, description="Field-level errors")


class APIErrorResponse(BaseModel):
    """Schema for API error response wrapper."""

    error: ErrorResponse = Field(..., description="Error information")


def _example(code: str, message: str, details: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    error = {
        "code": code,
        "message": message,
        "timestamp": "2024-01-01T00:00:00Z",
        "request_id": "abc12345",
    }
    if details:
        error["details"] = details
    return {"error": error}


def _response(description: str, **examples: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "description": description,
        "model": APIErrorResponse,
        "content": {
            "application/json": {
                "examples": {
                    name: {"summary": name.replace("_", " ").capitalize(), "value": value}
                    for name, value in examples.items()
                }
            }
        },
    }


COMMON_ERROR_RESPONSES = {
    400: _response(
        "Bad Request - The operation is not allowed in the current state",
        bad_request=_example("BAD_REQUEST", "Property is not available for rent"),
    ),
    401: _response(
        "Unauthorized - Authentication required",
        unauthorized=_example("UNAUTHORIZED", "Authentication required"),
        token_expired=_example("UNAUTHORIZED", "Token has expired"),
    ),
    403: _response(
        "Forbidden - Access denied",
        forbidden=_example("FORBIDDEN", "Access forbidden"),
        property_ownership=_example("FORBIDDEN", "You don't own this property"),
    ),
    404: _response(
        "Not Found - Resource not found",
        not_found=_example("NOT_FOUND", "Property not found with ID: 123e4567-e89b-12d3-a456-426614174000"),
    ),
    409: _response(
        "Conflict - Duplicate resource or invalid status transition",
        duplicate=_example("CONFLICT", "Rent request with property '123e4567' already exists"),
        transition=_example("INVALID_STATUS_TRANSITION", "Cannot move contract from 'active' to 'rejected'"),
        slot_taken=_example("CONFLICT", "The selected time slot is no longer available"),
    ),
    422: _response(
        "Unprocessable Entity - Validation error",
        validation_error=_example(
            "VALIDATION_ERROR",
            "Request validation failed",
            [{"field": "body -> months", "message": "Input should be less than or equal to 36",
              "type": "less_than_equal", "input": 48}],
        ),
    ),
    429: _response(
        "Too Many Requests - Rate limit exceeded",
        rate_limited=_example("RATE_LIMIT_EXCEEDED", "Rate limit exceeded"),
    ),
    500: _response(
        "Internal Server Error - Unexpected error",
        internal_error=_example("INTERNAL_SERVER_ERROR", "An unexpected error occurred. Please try again later."),
    ),
}


def get_error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """
    Get error response schemas for specific status codes.

    Args:
        status_codes: HTTP status codes to include

    Returns:
        Dictionary of error response schemas
    """
    return {
        code: COMMON_ERROR_RESPONSES[code]
        for code in status_codes
        if code in COMMON_ERROR_RESPONSES
    }


def get_auth_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get authentication and authorization error response schemas."""
    return get_error_responses(401, 403, 422)


def get_crud_error_responses() -> Dict[int, Dict[str, Any]]:
    """Get error response schemas for CRUD operations."""
    return get_error_responses(400, 401, 403, 404, 409, 422, 500)
