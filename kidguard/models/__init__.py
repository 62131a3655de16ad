"""
Pydantic models for request/response validation.
"""

from .user import (
    Role,
    UserRegister,
    UserLogin,
    UserResponse,
    TokenResponse,
    ApproveUserResponse
)

from .student import (
    StudentCreate,
    StudentResponse
)

from .guardian import (
    LinkGuardianRequest,
    LinkResult,
    MyStudentResponse
)

from .pickup import (
    SessionStatus,
    PickupTokenRequest,
    PickupTokenResponse,
    RedeemRequest,
    RedeemResponse,
    PickupHistoryEntry
)

__all__ = [
    # User models
    "Role",
    "UserRegister",
    "UserLogin",
    "UserResponse",
    "TokenResponse",
    "ApproveUserResponse",

    # Student models
    "StudentCreate",
    "StudentResponse",

    # Guardian models
    "LinkGuardianRequest",
    "LinkResult",
    "MyStudentResponse",

    # Pickup models
    "SessionStatus",
    "PickupTokenRequest",
    "PickupTokenResponse",
    "RedeemRequest",
    "RedeemResponse",
    "PickupHistoryEntry"
]
