"""
Error handling service for consistent error response formatting and logging.
"""

from typing import Dict, Any, Optional, List
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from rental_api.config import settings
from rental_api.utils.exceptions import APIException, ValidationError
from rental_api.utils.timeutils import utcnow
import logging
import uuid

logger = logging.getLogger(__name__)


class ErrorHandlerService:
    """
    Formats every failure as {"error": {code, message, timestamp, request_id, details?}}
    and logs it at a level matching its severity.
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
            details: Optional list of field-level errors
            request_id: Request identifier for tracking

        Returns:
            Formatted error response dictionary
        """
        response = {
            "error": {
                "code": error_code,
                "message": message,
                "timestamp": utcnow().strftime("%Y-%m-%dT%H:%M:%SZ"),
                "request_id": request_id,
            }
        }

        if details:
            response["error"]["details"] = details

        return response

    @staticmethod
    def _json(status_code: int, content: Dict[str, Any], request_id: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
        response_headers = dict(headers or {})
        response_headers["X-Request-ID"] = request_id
        return JSONResponse(status_code=status_code, content=content, headers=response_headers)

    @staticmethod
    def handle_api_exception(exception: APIException, request: Optional[Request] = None) -> JSONResponse:
        """
        Handle custom API exceptions with structured response.

        Args:
            exception: API exception instance
            request: Optional FastAPI request object

        Returns:
            JSON response with formatted error
        """
        request_id = ErrorHandlerService.request_id_for(request)

        logger.warning(
            f"API Exception [{request_id}]: {exception.error_code} - {exception.detail}",
            extra={
                "error_code": exception.error_code,
                "status_code": exception.status_code,
                "path": request.url.path if request else None
            }
        )

        details = None
        if isinstance(exception, ValidationError) and exception.field_errors:
            details = exception.field_errors

        error_response = ErrorHandlerService.format_error_response(
            error_code=exception.error_code or "API_ERROR",
            message=exception.detail,
            details=details,
            request_id=request_id
        )
        return ErrorHandlerService._json(exception.status_code, error_response, request_id, exception.headers)

    @staticmethod
    def handle_validation_error(exception: Any, request: Optional[Request] = None) -> JSONResponse:
        """
        Handle request and model validation errors with per-field details.

        Args:
            exception: RequestValidationError or pydantic ValidationError
            request: Optional FastAPI request object

        Returns:
            JSON response with validation error details
        """
        request_id = ErrorHandlerService.request_id_for(request)

        validation_details = []
        for error in exception.errors():
            input_value = error.get("input")
            if not isinstance(input_value, (str, int, float, bool, type(None))):
                input_value = None
            validation_details.append({
                "field": " -> ".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
                "input": input_value
            })

        logger.warning(f"Validation Error [{request_id}]: {len(validation_details)} field errors")

        error_response = ErrorHandlerService.format_error_response(
            error_code="VALIDATION_ERROR",
            message="Request validation failed",
            details=validation_details,
            request_id=request_id
        )
        return ErrorHandlerService._json(422, error_response, request_id)

    @staticmethod
    def handle_database_error(exception: SQLAlchemyError, request: Optional[Request] = None) -> JSONResponse:
        """
        Handle database errors. Integrity violations map to 409, anything else to 500.
        """
        request_id = ErrorHandlerService.request_id_for(request)

        if isinstance(exception, IntegrityError):
            error_code = "INTEGRITY_ERROR"
            status_code = 409
            constraint_info = ErrorHandlerService._extract_constraint_info(exception)
            message = f"Constraint violation: {constraint_info}" if constraint_info else "Data integrity constraint violation"
        else:
            error_code = "DATABASE_ERROR"
            message = "Database operation failed"
            status_code = 500

        logger.error(f"Database Error [{request_id}]: {error_code} - {str(exception)}", exc_info=True)

        error_response = ErrorHandlerService.format_error_response(
            error_code=error_code,
            message=message,
            request_id=request_id
        )
        return ErrorHandlerService._json(status_code, error_response, request_id)

    @staticmethod
    def handle_http_exception(exception: HTTPException, request: Optional[Request] = None) -> JSONResponse:
        request_id = ErrorHandlerService.request_id_for(request)

        logger.warning(f"HTTP Exception [{request_id}]: {exception.status_code} - {exception.detail}")

        error_response = ErrorHandlerService.format_error_response(
            error_code=f"HTTP_{exception.status_code}",
            message=str(exception.detail),
            request_id=request_id
        )
        return ErrorHandlerService._json(exception.status_code, error_response, request_id, exception.headers)

    @staticmethod
    def handle_unexpected_error(exception: Exception, request: Optional[Request] = None) -> JSONResponse:
        """
        Handle unexpected errors. The message is only exposed in debug mode.
        """
        request_id = ErrorHandlerService.request_id_for(request)

        logger.error(
            f"Unexpected Error [{request_id}]: {type(exception).__name__} - {str(exception)}",
            exc_info=True
        )

        message = "An unexpected error occurred. Please try again later."
        if settings.debug:
            message = f"{type(exception).__name__}: {str(exception)}"

        error_response = ErrorHandlerService.format_error_response(
            error_code="INTERNAL_SERVER_ERROR",
            message=message,
            request_id=request_id
        )
        return ErrorHandlerService._json(500, error_response, request_id)

    @staticmethod
    def request_id_for(request: Optional[Request]) -> str:
        """Request id assigned by the logging middleware, or a fresh one."""
        if request is not None:
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                return request_id
        return ErrorHandlerService._generate_request_id()

    @staticmethod
    def _generate_request_id() -> str:
        return str(uuid.uuid4())[:8]

    @staticmethod
    def _extract_constraint_info(exception: IntegrityError) -> Optional[str]:
        error_msg = str(getattr(exception, "orig", exception)).lower()

        if "unique" in error_msg:
            return "Duplicate value for unique field"
        if "foreign key" in error_msg:
            return "Referenced record does not exist"
        if "not null" in error_msg:
            return "Required field cannot be empty"
        if "check constraint" in error_msg:
            return "Value does not meet validation requirements"
        return None
