"""
Service layer: guardianship registry, pickup sessions, account administration.
"""

from . import accounts, registry, sessions
from .errors import (
    PickupServiceError,
    UnauthenticatedError,
    ForbiddenError,
    NotFoundError,
    IncompatibleRoleError,
    ConflictError,
    TokenExpiredError,
    TokenAlreadyUsedError,
    TokenBusyError
)

__all__ = [
    "accounts",
    "registry",
    "sessions",
    "PickupServiceError",
    "UnauthenticatedError",
    "ForbiddenError",
    "NotFoundError",
    "IncompatibleRoleError",
    "ConflictError",
    "TokenExpiredError",
    "TokenAlreadyUsedError",
    "TokenBusyError",
]
