"""
Common API utilities for consistent response formatting across all controllers.
"""

from typing import Any, Callable, Optional

from flask import jsonify

from clinic.domain.results import ErrorCategory, ServiceResult

STATUS_BY_CATEGORY = {
    ErrorCategory.SUCCESS: 200,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.INVARIANT_VIOLATION: 422,
    ErrorCategory.VALIDATION_ERROR: 400,
    ErrorCategory.INFRASTRUCTURE_ERROR: 503,
}


def api_response(
    success: bool,
    message: str,
    data: Optional[Any] = None,
    status_code: int = 200,
    code: Optional[str] = None,
    errors: Optional[list] = None,
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code
        code: Machine-readable outcome code
        errors: Field-level validation messages

    Returns:
        Tuple of (json_response, status_code)
    """
    response: dict = {"success": success, "message": message}

    if code is not None:
        response["code"] = code
    if data is not None:
        response["data"] = data
    if errors:
        response["errors"] = errors

    return jsonify(response), status_code


def result_response(
    result: ServiceResult,
    serialize: Optional[Callable[[Any], Any]] = None,
    success_status: int = 200,
) -> tuple:
    """Render a ``ServiceResult`` with the HTTP status of its outcome category."""
    if result.is_success:
        data = result.data
        if serialize is not None and data is not None:
            data = serialize(data)
        return api_response(
            True, result.message, data, success_status, code=result.code.value
        )
    return api_response(
        False,
        result.message,
        status_code=STATUS_BY_CATEGORY[result.category],
        code=result.code.value,
        errors=result.validation_errors,
    )


def bad_request(message: str) -> tuple:
    return api_response(False, message, status_code=400, code="ValidationError")
