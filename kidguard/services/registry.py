"""
Guardianship registry.

Decides who may act for which student. A guardian link ties one identity to
one student; a primary link additionally lets its holder add or promote
other guardians for that student.
"""

import logging
from typing import List, Optional
from uuid import UUID

import asyncpg

from kidguard.auth.policy import can_link_without_primary, is_guardian_eligible
from kidguard.db import repository
from kidguard.models.guardian import LinkResult, MyStudentResponse
from kidguard.services.errors import ForbiddenError, IncompatibleRoleError, NotFoundError

logger = logging.getLogger(__name__)


async def has_link(conn: asyncpg.Connection, guardian_id: UUID, student_id: UUID) -> bool:
    """Whether the identity is linked (primary or not) to the student."""
    return await repository.get_guardianship(conn, guardian_id, student_id) is not None


async def has_primary_link(conn: asyncpg.Connection, guardian_id: UUID, student_id: UUID) -> bool:
    link = await repository.get_guardianship(conn, guardian_id, student_id)
    return link is not None and link["is_primary"]


async def _resolve_target(
    conn: asyncpg.Connection,
    target_email: Optional[str],
    target_id: Optional[UUID]
):
    if target_id is not None:
        return await repository.get_user_by_id(conn, target_id)
    return await repository.get_user_by_email(conn, target_email)


async def link_guardian(
    conn: asyncpg.Connection,
    actor: dict,
    student_id: UUID,
    *,
    target_email: Optional[str] = None,
    target_id: Optional[UUID] = None,
    make_primary: bool = False
) -> LinkResult:
    """
    Link a guardian to a student, or update the primary flag of an existing link.

    Args:
        conn: Database connection
        actor: The authenticated user performing the link
        student_id: Student to link
        target_email: Email of the identity to link (used when target_id is None)
        target_id: Id of the identity to link
        make_primary: Primary flag for the link

    Returns:
        LinkResult describing the stored link

    Raises:
        ForbiddenError: actor holds no primary link for the student
        NotFoundError: student or target identity does not exist
        IncompatibleRoleError: target cannot be a guardian
    """
    actor_id = UUID(actor["id"])

    if can_link_without_primary(actor["role"]):
        if not await repository.student_exists(conn, student_id):
            raise NotFoundError("Student not found.")
    elif not await has_primary_link(conn, actor_id, student_id):
        raise ForbiddenError("Access denied. You are not the primary guardian for this student.")

    target = await _resolve_target(conn, target_email, target_id)
    if target is None:
        raise NotFoundError("Target user not found.")
    if not is_guardian_eligible(target["role"]):
        raise IncompatibleRoleError(target["role"])

    link = await repository.upsert_guardianship(
        conn, target["id"], student_id, make_primary, actor_id
    )

    logger.info(
        "Guardian %s %s for student %s by %s (primary=%s)",
        target["id"], "linked" if link["inserted"] else "updated",
        student_id, actor_id, link["is_primary"]
    )

    return LinkResult(
        message=f"Guardian {target['id']} successfully linked to student {student_id}.",
        guardian_id=str(link["user_id"]),
        student_id=str(link["student_id"]),
        is_primary=link["is_primary"],
        created=link["inserted"]
    )


def _linked_by_name(row) -> Optional[str]:
    if row["linker_first_name"] is None:
        return None
    return f"{row['linker_first_name']} {row['linker_last_name']}"


async def list_students_for(conn: asyncpg.Connection, identity_id: UUID) -> List[MyStudentResponse]:
    """Students linked to an identity, ordered by surname."""
    rows = await repository.list_students_for_guardian(conn, identity_id)

    return [
        MyStudentResponse(
            id=str(row["id"]),
            school_id_tag=row["school_id_tag"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            grade=row["grade"],
            photo_url=row["photo_url"],
            is_primary=row["is_primary"],
            linked_by_name=_linked_by_name(row)
        )
        for row in rows
    ]
