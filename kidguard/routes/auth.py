"""
Authentication routes.

Provides endpoints for:
- Account registration (PRIMARY, GUARDIAN, SECURITY)
- Email/password login
- The current user's profile
"""

import asyncpg
from fastapi import APIRouter, Depends, Request, status

from kidguard.auth import get_current_user
from kidguard.db import get_db
from kidguard.models.user import TokenResponse, UserLogin, UserRegister
from kidguard.services import accounts
from kidguard.services.errors import PickupServiceError
from kidguard.utils.audit_log import log_auth_event

router = APIRouter(prefix="/auth", tags=["Authentication"])
profile_router = APIRouter(tags=["Profile"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    registration: UserRegister,
    request: Request,
    conn: asyncpg.Connection = Depends(get_db)
):
    """
    Register a new account.

    Security officers are approved immediately; guardians must wait for an
    admin before they can act.
    """
    try:
        result = await accounts.register_user(conn, registration)
    except PickupServiceError as e:
        log_auth_event("register", registration.email, False, request=request, error=e.error_code)
        raise

    log_auth_event("register", result.user.email, True, request=request, user_id=result.user.id)
    return result


@router.post("/login", response_model=TokenResponse)
async def login(
    login_request: UserLogin,
    request: Request,
    conn: asyncpg.Connection = Depends(get_db)
):
    """Authenticate with email and password."""
    try:
        result = await accounts.authenticate(conn, login_request)
    except PickupServiceError as e:
        log_auth_event("login", login_request.email, False, request=request, error=e.error_code)
        raise

    log_auth_event("login", result.user.email, True, request=request, user_id=result.user.id)
    return result


@profile_router.get("/profile")
async def get_profile(current_user: dict = Depends(get_current_user)):
    """Echo the authenticated user, useful for checking a token."""
    return {
        "message": f"Welcome, {current_user['role']}! Your ID is {current_user['id']}.",
        "user": current_user
    }
