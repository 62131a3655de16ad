"""
Authentication module for KidGuard.

This module provides authentication and authorization functionality including:
- JWT token generation and validation
- Password hashing and verification
- The role/approval access policy
- FastAPI dependencies for route protection
"""

from .jwt import create_access_token, decode_token
from .password import hash_password, verify_password
from .policy import denial_reason, is_allowed, requires_approval
from .dependencies import get_current_user, require_roles

__all__ = [
    "create_access_token",
    "decode_token",
    "hash_password",
    "verify_password",
    "denial_reason",
    "is_allowed",
    "requires_approval",
    "get_current_user",
    "require_roles",
]
