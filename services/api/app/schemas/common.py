"""Common schemas used across the API."""

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error detail (see app.errors for the code catalog)."""

    code: str
    message: str
    detail: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx response.

    Format: { "error": { "code": str, "message": str, "detail": object } }
    """

    error: ErrorDetail


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "VALIDATION_ERROR"},
    401: {"model": ErrorResponse, "description": "AUTH_REQUIRED"},
    404: {"model": ErrorResponse, "description": "NOT_FOUND"},
    500: {"model": ErrorResponse, "description": "STORE_ERROR / INTERNAL_ERROR"},
}
