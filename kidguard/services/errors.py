"""
Domain errors raised by the service layer.

Every error carries a human-readable message, a stable machine-readable
code and the HTTP status the API surfaces it with. The app registers one
exception handler for the whole hierarchy.
"""

from typing import Any, Dict, Optional

import asyncpg


class PickupServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Response body for this error."""
        return {"detail": self.message, "error": self.error_code}


class UnauthenticatedError(PickupServiceError):
    """Raised when credentials are missing or wrong."""

    def __init__(self, message: str = "Invalid credentials."):
        super().__init__(message=message, error_code="UNAUTHENTICATED", status_code=401)


class ForbiddenError(PickupServiceError):
    """Raised when an authenticated actor lacks the role or standing for an action."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="FORBIDDEN", status_code=403)


class NotFoundError(PickupServiceError):
    """Raised when a student, identity or token does not exist."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="NOT_FOUND", status_code=404)


class IncompatibleRoleError(PickupServiceError):
    """Raised when a link target exists but cannot act as a guardian."""

    def __init__(self, role: str):
        super().__init__(
            message=f"Target user has role {role} and cannot be linked as a guardian.",
            error_code="INCOMPATIBLE_ROLE",
            status_code=404,
        )


class ConflictError(PickupServiceError):
    """Raised when a unique field is already taken."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(
            message=message or f"A record with this {field} already exists.",
            error_code="CONFLICT",
            status_code=409,
        )

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        return body


class TokenExpiredError(PickupServiceError):
    """Raised when a pickup token is redeemed after its deadline."""

    def __init__(self):
        super().__init__(
            message="Pickup token has expired. Ask the guardian to generate a new one.",
            error_code="TOKEN_EXPIRED",
            status_code=410,
        )


class TokenAlreadyUsedError(PickupServiceError):
    """Raised when a pickup token has already been redeemed."""

    def __init__(self, log_id: Optional[str] = None):
        self.log_id = log_id
        super().__init__(
            message="Pickup token was already verified for this pickup session.",
            error_code="TOKEN_ALREADY_USED",
            status_code=409,
        )

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["log_id"] = self.log_id
        return body


class TokenBusyError(PickupServiceError):
    """Raised when a redemption keeps losing its claim to scans that roll back."""

    def __init__(self):
        super().__init__(
            message="Pickup token is being verified at another gate. Try again.",
            error_code="TOKEN_BUSY",
            status_code=409,
        )


# Unique constraint name -> field reported to the caller
UNIQUE_CONSTRAINT_FIELDS = {
    "users_email_key": "email",
    "users_email_lower_key": "email",
    "users_phone_key": "phone",
    "students_school_id_tag_key": "school_id_tag",
}


def conflict_from_unique_violation(exc: asyncpg.UniqueViolationError) -> ConflictError:
    """Translate a store-level duplicate key error into a ConflictError."""
    field = UNIQUE_CONSTRAINT_FIELDS.get(getattr(exc, "constraint_name", None) or "", "value")
    return ConflictError(field)
