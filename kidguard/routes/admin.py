"""
Admin routes.

All endpoints require an ADMIN user.
"""

from typing import List
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Request, status

from kidguard.auth import require_roles
from kidguard.auth.policy import ADMIN_ROLES
from kidguard.db import get_db
from kidguard.models.student import StudentCreate, StudentResponse
from kidguard.models.user import ApproveUserResponse, UserResponse
from kidguard.services import accounts
from kidguard.utils.audit_log import log_admin_action

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_roles(*ADMIN_ROLES)


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    current_user: dict = Depends(require_admin),
    conn: asyncpg.Connection = Depends(get_db)
):
    """List every user, newest first."""
    return await accounts.list_users(conn)


@router.patch("/users/{user_id}/approve", response_model=ApproveUserResponse)
async def approve_user(
    user_id: UUID,
    request: Request,
    current_user: dict = Depends(require_admin),
    conn: asyncpg.Connection = Depends(get_db)
):
    """
    Approve a PRIMARY or GUARDIAN account.

    Returns 404 for unknown users and for roles that are approved implicitly.
    """
    result = await accounts.approve_user(conn, user_id)

    log_admin_action("approve_user", current_user, request=request, target=f"user:{user_id}")
    return result


@router.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    student: StudentCreate,
    request: Request,
    current_user: dict = Depends(require_admin),
    conn: asyncpg.Connection = Depends(get_db)
):
    """Create a student. The school_id_tag must be unique."""
    result = await accounts.create_student(conn, student)

    log_admin_action("create_student", current_user, request=request, target=f"student:{result.id}")
    return result


@router.get("/students", response_model=List[StudentResponse])
async def list_students(
    current_user: dict = Depends(require_admin),
    conn: asyncpg.Connection = Depends(get_db)
):
    """List every student ordered by surname."""
    return await accounts.list_students(conn)
