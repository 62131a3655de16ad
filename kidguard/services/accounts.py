"""
Account and student administration.

Registration, login, admin seeding, user approval and student records.
Duplicate unique keys surface as ConflictError naming the field.
"""

import logging
from typing import List
from uuid import UUID

import asyncpg

from kidguard.auth.jwt import create_access_token
from kidguard.auth.password import hash_password, verify_password
from kidguard.auth.policy import is_effectively_approved, requires_approval
from kidguard.db import repository
from kidguard.models.student import StudentCreate, StudentResponse, student_response_from_row
from kidguard.models.user import (
    ApproveUserResponse,
    Role,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
    user_response_from_row,
)
from kidguard.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    conflict_from_unique_violation,
)

logger = logging.getLogger(__name__)


def _issue_token(user) -> str:
    return create_access_token(
        str(user["id"]),
        user["role"],
        is_approved=is_effectively_approved(user["role"], user["is_approved"]),
        email=user["email"]
    )


async def register_user(conn: asyncpg.Connection, data: UserRegister) -> TokenResponse:
    """
    Register a PRIMARY, GUARDIAN or SECURITY account.

    Security accounts are approved immediately; guardians wait for an admin.

    Raises:
        ConflictError: email or phone already registered
    """
    if await repository.get_user_by_email(conn, data.email) is not None:
        raise ConflictError("email", "User with this email already exists.")

    is_approved = not requires_approval(data.role)

    try:
        user = await repository.create_user(
            conn,
            email=data.email,
            password_hash=hash_password(data.password),
            role=data.role,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            is_approved=is_approved
        )
    except asyncpg.UniqueViolationError as e:
        raise conflict_from_unique_violation(e) from e

    logger.info("Registered user %s (%s, approved=%s)", user["id"], user["role"], is_approved)

    return TokenResponse(
        access_token=_issue_token(user),
        user=user_response_from_row(user),
        message=(
            "Registration successful. Welcome!"
            if is_approved else "Registration successful. Awaiting Admin approval."
        )
    )


async def authenticate(conn: asyncpg.Connection, data: UserLogin) -> TokenResponse:
    """
    Log in with email and password.

    Raises:
        UnauthenticatedError: unknown email or wrong password
        ForbiddenError: guardian account not yet approved
    """
    user = await repository.get_credentials_by_email(conn, data.email)

    if user is None or not verify_password(data.password, user["password_hash"]):
        raise UnauthenticatedError("Invalid credentials.")

    if not is_effectively_approved(user["role"], user["is_approved"]):
        raise ForbiddenError("Account is awaiting Admin approval.")

    return TokenResponse(
        access_token=_issue_token(user),
        user=user_response_from_row(user),
        message=f"Login successful. Welcome {user['role']}!"
    )


async def seed_admin(
    conn: asyncpg.Connection,
    email: str,
    password: str,
    first_name: str = "System",
    last_name: str = "Admin"
) -> UserResponse:
    """
    Create the first ADMIN account.

    Raises:
        ConflictError: an admin already exists, or the email is taken
    """
    async with conn.transaction():
        if await repository.count_users_with_role(conn, Role.ADMIN.value) > 0:
            raise ConflictError("role", "Admin user already exists. Cannot seed again.")

        try:
            user = await repository.create_user(
                conn,
                email=email.strip().lower(),
                password_hash=hash_password(password),
                role=Role.ADMIN.value,
                first_name=first_name,
                last_name=last_name,
                phone=None,
                is_approved=True
            )
        except asyncpg.UniqueViolationError as e:
            raise conflict_from_unique_violation(e) from e

    logger.warning("Seeded initial admin %s (%s)", user["id"], email)
    return user_response_from_row(user)


async def list_users(conn: asyncpg.Connection) -> List[UserResponse]:
    rows = await repository.list_users(conn)
    return [user_response_from_row(row) for row in rows]


async def approve_user(conn: asyncpg.Connection, user_id: UUID) -> ApproveUserResponse:
    """
    Approve a PRIMARY or GUARDIAN account.

    Raises:
        NotFoundError: no such user, or the role does not take approval
    """
    user = await repository.approve_user(
        conn, user_id, [Role.PRIMARY.value, Role.GUARDIAN.value]
    )
    if user is None:
        raise NotFoundError("User not found or role cannot be approved.")

    logger.info("Approved user %s", user_id)
    return ApproveUserResponse(
        message=f"User ID {user_id} approved successfully.",
        user=user_response_from_row(user)
    )


async def create_student(conn: asyncpg.Connection, data: StudentCreate) -> StudentResponse:
    """
    Create a student record.

    Raises:
        ConflictError: school_id_tag already used
    """
    try:
        student = await repository.create_student(
            conn,
            school_id_tag=data.school_id_tag,
            first_name=data.first_name,
            last_name=data.last_name,
            grade=data.grade,
            photo_url=data.photo_url
        )
    except asyncpg.UniqueViolationError as e:
        raise conflict_from_unique_violation(e) from e

    logger.info("Created student %s (%s)", student["id"], student["school_id_tag"])
    return student_response_from_row(student)


async def list_students(conn: asyncpg.Connection) -> List[StudentResponse]:
    rows = await repository.list_students(conn)
    return [student_response_from_row(row) for row in rows]
