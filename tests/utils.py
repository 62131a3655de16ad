"""
Test utilities and helper functions.

Provides helper functions for creating test data and making authenticated requests.
"""

import uuid
from unittest.mock import MagicMock
from typing import Dict, Optional

import asyncpg

from kidguard.auth import create_access_token, hash_password


async def create_test_user(
    db_pool: asyncpg.Pool,
    role: str,
    email: str,
    first_name: str = "Test",
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    is_approved: bool = True
) -> Dict:
    """
    Create a test user in the database.

    Args:
        db_pool: Database connection pool
        role: 'ADMIN', 'PRIMARY', 'GUARDIAN' or 'SECURITY'
        email: Email address
        first_name: First name
        last_name: Last name (defaults to the role, title-cased)
        phone: Optional phone number (must be unique)
        is_approved: Stored approval flag

    Returns:
        Dictionary with user data including password
    """
    password = f"{role.lower()}_password_123"

    async with db_pool.acquire() as conn:
        user = await conn.fetchrow(
            """
            INSERT INTO users (id, email, password_hash, role, first_name, last_name, phone, is_approved)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING id, email, role, first_name, last_name, phone, is_approved
            """,
            uuid.uuid4(), email, hash_password(password), role,
            first_name, last_name or role.title(), phone, is_approved
        )

    return {
        "id": str(user["id"]),
        "email": user["email"],
        "role": user["role"],
        "first_name": user["first_name"],
        "last_name": user["last_name"],
        "phone": user["phone"],
        "is_approved": user["is_approved"],
        "password": password
    }


async def create_test_student(
    db_pool: asyncpg.Pool,
    school_id_tag: str,
    first_name: str,
    last_name: str,
    grade: str
) -> Dict:
    """Create a student directly in the database."""
    async with db_pool.acquire() as conn:
        student = await conn.fetchrow(
            """
            INSERT INTO students (school_id_tag, first_name, last_name, grade)
            VALUES ($1, $2, $3, $4)
            RETURNING id, school_id_tag, first_name, last_name, grade
            """,
            school_id_tag, first_name, last_name, grade
        )

    return {
        "id": str(student["id"]),
        "school_id_tag": student["school_id_tag"],
        "first_name": student["first_name"],
        "last_name": student["last_name"],
        "grade": student["grade"]
    }


async def link_guardian(
    db_pool: asyncpg.Pool,
    user_id: str,
    student_id: str,
    is_primary: bool,
    linked_by: Optional[str] = None
) -> Dict:
    """Insert a guardianship row directly."""
    async with db_pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO guardianships (user_id, student_id, is_primary, linked_by_user_id)
            VALUES ($1, $2, $3, $4)
            """,
            uuid.UUID(user_id), uuid.UUID(student_id), is_primary,
            uuid.UUID(linked_by) if linked_by else None
        )

    return {"user_id": user_id, "student_id": student_id, "is_primary": is_primary}


def token_for(user: Dict) -> str:
    """Access token for a test user dict."""
    return create_access_token(user["id"], user["role"], is_approved=user["is_approved"], email=user["email"])


def auth_headers(token: str) -> Dict[str, str]:
    """Authorization header for a bearer token."""
    return {"Authorization": f"Bearer {token}"}


class MockTransaction:
    """Stand-in for asyncpg's transaction context manager."""

    def __init__(self):
        self.entered = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def mock_connection():
    """A MagicMock connection whose transaction() works with `async with`."""
    conn = MagicMock()
    conn.transaction = MagicMock(return_value=MockTransaction())
    return conn
