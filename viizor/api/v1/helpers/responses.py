"""
Standardized response helpers, and the mapping from pipeline errors to
HTTP responses.
"""

from typing import Any
from fastapi import HTTPException, status
from pydantic import BaseModel

from viizor.core.errors import (
    ConversionError,
    ConversionInProgressError,
    NotFoundError,
    PermissionDeniedError,
    PipelineError,
    ValidationError,
)


class APIResponse(BaseModel):
    """Standard API response model"""

    success: bool
    message: str
    data: Any | None = None
    errors: list[str] | None = None


def success_response(
    message: str = "Success",
    data: Any = None,
) -> APIResponse:
    """Create a successful response"""
    return APIResponse(success=True, message=message, data=data)


def error_response(
    message: str = "An error occurred",
    errors: list[str] | None = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> HTTPException:
    """Create an error response"""
    response_data = APIResponse(success=False, message=message, errors=errors or [])

    raise HTTPException(status_code=status_code, detail=response_data.model_dump())


def forbidden_response(message: str = "Access forbidden") -> HTTPException:
    return error_response(message=message, status_code=status.HTTP_403_FORBIDDEN)


def unauthorized_response(message: str = "Authentication required") -> HTTPException:
    return error_response(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


_PIPELINE_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ConversionInProgressError: status.HTTP_409_CONFLICT,
    ConversionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def pipeline_error_response(exc: PipelineError) -> HTTPException:
    """
    Translate a pipeline failure into an HTTP error.

    Conversion failures carry the converter's stderr verbatim in ``errors``
    so the client can show it.
    """
    status_code = next(
        (code for cls, code in _PIPELINE_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    errors = None
    if isinstance(exc, ConversionError) and exc.diagnostics:
        errors = [exc.diagnostics]
    return error_response(message=str(exc), errors=errors, status_code=status_code)
