from __future__ import annotations

from typing import Dict, List, Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each exception class defines both an HTTP ``status_code`` and a stable
    ``error_code``:
    - validation_error (400)
    - unauthorized (401)
    - forbidden (403)
    - not_found (404)
    - conflict (409)
    - locked (423)
    - server_error (500)
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}
        self.errors = errors or []


class ValidationError(ServiceError):
    """Request validation failed (400).

    ``errors`` carries ``[{"field": ..., "message": ...}]`` entries.
    """
    status_code = 400
    error_code = "validation_error"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class AuthenticationError(ServiceError):
    """Authentication failed or missing (401)."""
    status_code = 401
    error_code = "unauthorized"


# Response message for every bearer-token failure
TOKEN_REJECTED_MESSAGE = "Access denied. Invalid or missing token."


class _TokenRejectedError(AuthenticationError):
    """Base for token failures; ``reason`` is logged, never returned."""

    reason = "invalid_token"

    def __init__(self, message: str = TOKEN_REJECTED_MESSAGE, **kwargs) -> None:
        detail = kwargs.pop("detail", None) or {}
        detail.setdefault("reason", self.reason)
        super().__init__(message, detail=detail, **kwargs)


class NoTokenError(_TokenRejectedError):
    """No bearer token was presented (401)."""

    reason = "no_token"


class InvalidTokenError(_TokenRejectedError):
    """Token structure, signature or claims are not acceptable (401)."""

    reason = "invalid_token"


class ExpiredTokenError(_TokenRejectedError):
    """Token expiry has passed (401)."""

    reason = "expired_token"


class UserNotFoundError(_TokenRejectedError):
    """Token subject no longer exists (401)."""

    reason = "user_not_found"


class ForbiddenError(ServiceError):
    """Access denied - insufficient permissions (403)."""
    status_code = 403
    error_code = "forbidden"


class AccountInactiveError(ForbiddenError):
    """Account status is not active (403)."""

    def __init__(self, message: str = "Account is not active.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class AccountLockedError(ServiceError):
    """Account is temporarily locked after repeated failures (423)."""
    status_code = 423
    error_code = "locked"

    def __init__(self, minutes_remaining: Optional[int] = None, **kwargs) -> None:
        if minutes_remaining is None:
            message = "Account is temporarily locked. Please try again later."
        else:
            message = (
                "Account is temporarily locked due to too many failed login attempts. "
                f"Try again in {minutes_remaining} minute(s)."
            )
        detail = kwargs.pop("detail", None) or {}
        if minutes_remaining is not None:
            detail.setdefault("minutes_remaining", minutes_remaining)
        super().__init__(message, detail=detail, **kwargs)
        self.minutes_remaining = minutes_remaining


class NotFoundError(ServiceError):
    """Requested resource not found (404)."""
    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """Resource conflict, e.g., duplicate creation (409)."""
    status_code = 409
    error_code = "conflict"


class ServerError(ServiceError):
    """Internal server error (500)."""
    status_code = 500
    error_code = "server_error"


__all__ = [
    "TOKEN_REJECTED_MESSAGE",
    "ServiceError",
    "ValidationError",
    "AuthenticationError",
    "NoTokenError",
    "InvalidTokenError",
    "ExpiredTokenError",
    "UserNotFoundError",
    "ForbiddenError",
    "AccountInactiveError",
    "AccountLockedError",
    "NotFoundError",
    "ConflictError",
    "ServerError",
]
