"""
Repository functions for users, students, guardianships and pickups.

Only parameterized SQL lives here; business rules stay in the services.
Every function takes an open asyncpg connection so callers decide the
transaction boundaries.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

import asyncpg

USER_COLUMNS = """
    id, email, role, first_name, last_name, phone, photo_url, is_approved, created_at
"""

STUDENT_COLUMNS = """
    id, school_id_tag, first_name, last_name, grade, photo_url, created_at
"""

SESSION_COLUMNS = """
    id, guardian_id, student_id, qr_token, created_at, expires_at, status
"""


# ============================================
# Users
# ============================================


async def get_user_by_id(conn: asyncpg.Connection, user_id: UUID) -> Optional[asyncpg.Record]:
    return await conn.fetchrow(
        f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
        user_id
    )


async def get_user_by_email(conn: asyncpg.Connection, email: str) -> Optional[asyncpg.Record]:
    return await conn.fetchrow(
        f"SELECT {USER_COLUMNS} FROM users WHERE lower(email) = lower($1)",
        email
    )


async def get_credentials_by_email(conn: asyncpg.Connection, email: str) -> Optional[asyncpg.Record]:
    """User row including the password hash, for login only."""
    return await conn.fetchrow(
        f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE lower(email) = lower($1)",
        email
    )


async def create_user(
    conn: asyncpg.Connection,
    *,
    email: str,
    password_hash: str,
    role: str,
    first_name: str,
    last_name: str,
    phone: Optional[str],
    is_approved: bool
) -> asyncpg.Record:
    """Insert a user. Raises asyncpg.UniqueViolationError on duplicate email/phone."""
    return await conn.fetchrow(
        f"""
        INSERT INTO users (email, password_hash, role, first_name, last_name, phone, is_approved)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        RETURNING {USER_COLUMNS}
        """,
        email, password_hash, role, first_name, last_name, phone, is_approved
    )


async def list_users(conn: asyncpg.Connection) -> List[asyncpg.Record]:
    return await conn.fetch(
        f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC"
    )


async def approve_user(conn: asyncpg.Connection, user_id: UUID, roles: List[str]) -> Optional[asyncpg.Record]:
    """Set is_approved for a user whose role is in roles. None if nothing matched."""
    return await conn.fetchrow(
        f"""
        UPDATE users SET is_approved = true
        WHERE id = $1 AND role = ANY($2::text[])
        RETURNING {USER_COLUMNS}
        """,
        user_id, roles
    )


async def count_users_with_role(conn: asyncpg.Connection, role: str) -> int:
    return await conn.fetchval("SELECT COUNT(*) FROM users WHERE role = $1", role)


# ============================================
# Students
# ============================================


async def create_student(
    conn: asyncpg.Connection,
    *,
    school_id_tag: str,
    first_name: str,
    last_name: str,
    grade: str,
    photo_url: Optional[str]
) -> asyncpg.Record:
    """Insert a student. Raises asyncpg.UniqueViolationError on duplicate tag."""
    return await conn.fetchrow(
        f"""
        INSERT INTO students (school_id_tag, first_name, last_name, grade, photo_url)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING {STUDENT_COLUMNS}
        """,
        school_id_tag, first_name, last_name, grade, photo_url
    )


async def list_students(conn: asyncpg.Connection) -> List[asyncpg.Record]:
    return await conn.fetch(
        f"SELECT {STUDENT_COLUMNS} FROM students ORDER BY last_name, first_name"
    )


async def student_exists(conn: asyncpg.Connection, student_id: UUID) -> bool:
    return await conn.fetchval(
        "SELECT EXISTS(SELECT 1 FROM students WHERE id = $1)",
        student_id
    )


# ============================================
# Guardianships
# ============================================


async def get_guardianship(conn: asyncpg.Connection, user_id: UUID, student_id: UUID) -> Optional[asyncpg.Record]:
    return await conn.fetchrow(
        """
        SELECT user_id, student_id, is_primary, linked_by_user_id, created_at
        FROM guardianships
        WHERE user_id = $1 AND student_id = $2
        """,
        user_id, student_id
    )


async def upsert_guardianship(
    conn: asyncpg.Connection,
    user_id: UUID,
    student_id: UUID,
    is_primary: bool,
    linked_by: UUID
) -> asyncpg.Record:
    """
    Create the link, or overwrite only is_primary on an existing one.

    The returned row has an `inserted` column that is false for updates.
    """
    return await conn.fetchrow(
        """
        INSERT INTO guardianships (user_id, student_id, is_primary, linked_by_user_id)
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (user_id, student_id) DO UPDATE SET is_primary = EXCLUDED.is_primary
        RETURNING user_id, student_id, is_primary, linked_by_user_id, (xmax = 0) AS inserted
        """,
        user_id, student_id, is_primary, linked_by
    )


async def list_students_for_guardian(conn: asyncpg.Connection, user_id: UUID) -> List[asyncpg.Record]:
    return await conn.fetch(
        """
        SELECT
            s.id, s.school_id_tag, s.first_name, s.last_name, s.grade, s.photo_url,
            g.is_primary,
            linker.first_name AS linker_first_name,
            linker.last_name AS linker_last_name
        FROM guardianships g
        INNER JOIN students s ON g.student_id = s.id
        LEFT JOIN users linker ON g.linked_by_user_id = linker.id
        WHERE g.user_id = $1
        ORDER BY s.last_name, s.first_name
        """,
        user_id
    )


# ============================================
# Pickup sessions
# ============================================


async def lock_pickup_pair(conn: asyncpg.Connection, guardian_id: UUID, student_id: UUID):
    """Serialize token requests for one (guardian, student) pair until the transaction ends."""
    await conn.execute(
        "SELECT pg_advisory_xact_lock(hashtext($1))",
        f"pickup:{guardian_id}:{student_id}"
    )


async def get_active_session(
    conn: asyncpg.Connection,
    guardian_id: UUID,
    student_id: UUID,
    now: datetime
) -> Optional[asyncpg.Record]:
    """Newest GENERATED session for the pair whose deadline is still ahead."""
    return await conn.fetchrow(
        f"""
        SELECT {SESSION_COLUMNS}
        FROM pickup_sessions
        WHERE guardian_id = $1 AND student_id = $2
          AND status = 'GENERATED' AND expires_at > $3
        ORDER BY expires_at DESC
        LIMIT 1
        """,
        guardian_id, student_id, now
    )


async def create_session(
    conn: asyncpg.Connection,
    *,
    guardian_id: UUID,
    student_id: UUID,
    qr_token: str,
    created_at: datetime,
    expires_at: datetime
) -> asyncpg.Record:
    return await conn.fetchrow(
        f"""
        INSERT INTO pickup_sessions (guardian_id, student_id, qr_token, created_at, expires_at, status)
        VALUES ($1, $2, $3, $4, $5, 'GENERATED')
        RETURNING {SESSION_COLUMNS}
        """,
        guardian_id, student_id, qr_token, created_at, expires_at
    )


async def get_session_by_token(conn: asyncpg.Connection, qr_token: str) -> Optional[asyncpg.Record]:
    """Session plus the student and guardian fields shown at the gate."""
    return await conn.fetchrow(
        """
        SELECT
            ps.id, ps.guardian_id, ps.student_id, ps.qr_token,
            ps.created_at, ps.expires_at, ps.status,
            g.first_name AS guardian_first_name,
            g.last_name AS guardian_last_name,
            g.phone AS guardian_phone,
            s.first_name AS student_first_name,
            s.last_name AS student_last_name,
            s.grade
        FROM pickup_sessions ps
        INNER JOIN users g ON ps.guardian_id = g.id
        INNER JOIN students s ON ps.student_id = s.id
        WHERE ps.qr_token = $1
        """,
        qr_token
    )


async def mark_session_expired(conn: asyncpg.Connection, session_id: UUID) -> bool:
    """Flip a GENERATED session to EXPIRED. Terminal rows are left untouched."""
    result = await conn.execute(
        "UPDATE pickup_sessions SET status = 'EXPIRED' WHERE id = $1 AND status = 'GENERATED'",
        session_id
    )
    return result == "UPDATE 1"


async def claim_session(conn: asyncpg.Connection, session_id: UUID, now: datetime) -> bool:
    """
    Conditionally move a session to VERIFIED.

    Succeeds only while the row is still GENERATED and unexpired, so of two
    concurrent redemptions exactly one sees True.
    """
    result = await conn.execute(
        """
        UPDATE pickup_sessions SET status = 'VERIFIED'
        WHERE id = $1 AND status = 'GENERATED' AND expires_at > $2
        """,
        session_id, now
    )
    return result == "UPDATE 1"


# ============================================
# Pickup logs
# ============================================


async def create_pickup_log(
    conn: asyncpg.Connection,
    *,
    session_id: UUID,
    security_user_id: UUID,
    verified_at: datetime,
    notes: Optional[str]
) -> asyncpg.Record:
    return await conn.fetchrow(
        """
        INSERT INTO pickup_logs (session_id, security_user_id, verified_at, pickup_notes)
        VALUES ($1, $2, $3, $4)
        RETURNING id, session_id, security_user_id, verified_at, pickup_notes
        """,
        session_id, security_user_id, verified_at, notes
    )


async def get_log_for_session(conn: asyncpg.Connection, session_id: UUID) -> Optional[asyncpg.Record]:
    return await conn.fetchrow(
        """
        SELECT id, session_id, security_user_id, verified_at, pickup_notes
        FROM pickup_logs
        WHERE session_id = $1
        """,
        session_id
    )


async def list_pickup_history(conn: asyncpg.Connection) -> List[asyncpg.Record]:
    # TODO: add date/student filters and keyset pagination once log volume needs it
    return await conn.fetch(
        """
        SELECT
            pl.id AS log_id, pl.session_id, pl.verified_at, pl.pickup_notes,
            s.first_name AS student_first_name, s.last_name AS student_last_name, s.grade,
            g.first_name AS guardian_first_name, g.last_name AS guardian_last_name,
            sec.first_name AS security_first_name, sec.last_name AS security_last_name,
            sec.email AS security_email
        FROM pickup_logs pl
        INNER JOIN pickup_sessions ps ON pl.session_id = ps.id
        INNER JOIN students s ON ps.student_id = s.id
        INNER JOIN users g ON ps.guardian_id = g.id
        INNER JOIN users sec ON pl.security_user_id = sec.id
        ORDER BY pl.verified_at DESC
        """
    )
