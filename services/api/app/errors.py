"""Error taxonomy shared by stores, services and routes.

Every error carries a stable `code`, a human message and an optional detail
dict, and is rendered by the API as:

    { "error": { "code": str, "message": str, "detail": object } }

- ValidationError: bad input shape/bounds (400, never retried)
- AuthRequiredError: missing caller identity on a write (401)
- NotFoundError: referenced preset/package/tag absent (404)
- ConflictError: uniqueness violation under a race (handled by services)
- StoreError: relational store failure (500)
- CacheError: cache failure (logged and swallowed, never reaches a client)
- RegistryError: npm registry failure (downgraded to a partial result)
"""

from typing import Any


class PresetsError(Exception):
    """Base exception for the presets API."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured error body."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "detail": self.detail,
            }
        }


class ValidationError(PresetsError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthRequiredError(PresetsError):
    code = "AUTH_REQUIRED"
    status_code = 401

    def __init__(self, message: str = "Authentication required", detail: dict[str, Any] | None = None):
        super().__init__(message, detail)


class NotFoundError(PresetsError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(PresetsError):
    code = "CONFLICT"
    status_code = 409


class StoreError(PresetsError):
    code = "STORE_ERROR"
    status_code = 500


class CacheError(PresetsError):
    code = "CACHE_ERROR"
    status_code = 500


class RegistryError(PresetsError):
    code = "REGISTRY_ERROR"
    status_code = 502
