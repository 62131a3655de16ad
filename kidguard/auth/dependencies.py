"""
FastAPI dependencies for authentication and authorization.

get_current_user turns a bearer token into the current user's row;
require_roles wraps it with the access policy for one operation.
"""

import logging
import uuid
from typing import Iterable

import asyncpg
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jwt.exceptions import InvalidTokenError

from kidguard.auth.jwt import decode_token
from kidguard.auth.policy import denial_reason, is_effectively_approved
from kidguard.db import get_db, repository
from kidguard.utils.audit_log import log_authorization_failure

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    conn: asyncpg.Connection = Depends(get_db)
) -> dict:
    """
    Get the current authenticated user (required).

    The token only proves who the caller is; role and approval are read
    from the users table so an approval takes effect without a new login.

    Args:
        credentials: HTTP Bearer token credentials
        conn: Database connection

    Returns:
        User dictionary

    Raises:
        HTTPException: 401 if not authenticated
    """
    if not credentials:
        raise _unauthenticated("Not authorized, no token provided.")

    try:
        payload = decode_token(credentials.credentials)
    except InvalidTokenError:
        raise _unauthenticated("Not authorized, token failed or expired.")

    if payload.get("type") != "access":
        raise _unauthenticated("Invalid token type")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthenticated("Invalid token payload")

    user = await repository.get_user_by_id(conn, user_id)
    if not user:
        raise _unauthenticated("User not found")

    return {
        "id": str(user["id"]),
        "email": user["email"],
        "role": user["role"],
        "first_name": user["first_name"],
        "last_name": user["last_name"],
        "phone": user["phone"],
        "photo_url": user["photo_url"],
        "is_approved": is_effectively_approved(user["role"], user["is_approved"]),
        "created_at": user["created_at"]
    }


def require_roles(*roles: Iterable):
    """
    Create a dependency that enforces the access policy for an operation.

    Args:
        roles: Roles allowed to perform the operation (none = any approved user)

    Returns:
        Dependency function returning the current user when allowed
    """
    async def role_checker(request: Request, current_user: dict = Depends(get_current_user)) -> dict:
        reason = denial_reason(roles, current_user["role"], current_user["is_approved"])
        if reason:
            log_authorization_failure(
                current_user, request.url.path, request.method, request=request, reason=reason
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=reason)
        return current_user

    return role_checker
