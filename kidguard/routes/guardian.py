"""
Guardianship routes.

Provides endpoints for:
- Primary guardians (and admins) linking other guardians to a student
- Guardians listing the students they may collect
"""

from typing import List
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Request

from kidguard.auth import require_roles
from kidguard.auth.policy import LINK_GUARDIAN_ROLES, LIST_MY_STUDENTS_ROLES
from kidguard.db import get_db
from kidguard.models.guardian import LinkGuardianRequest, LinkResult, MyStudentResponse
from kidguard.services import registry
from kidguard.services.errors import ForbiddenError
from kidguard.utils.audit_log import log_admin_action, log_authorization_failure

router = APIRouter(prefix="/guardian", tags=["Guardian"])


@router.post("/link-guardian", response_model=LinkResult)
async def link_guardian(
    link: LinkGuardianRequest,
    request: Request,
    current_user: dict = Depends(require_roles(*LINK_GUARDIAN_ROLES)),
    conn: asyncpg.Connection = Depends(get_db)
):
    """
    Link a guardian to a student.

    Only a primary guardian of the student may do this (admins too, while
    the admin bypass setting is on). Linking an already linked guardian
    updates the primary flag.
    """
    try:
        result = await registry.link_guardian(
            conn,
            current_user,
            link.student_id,
            target_email=link.guardian_email,
            target_id=link.guardian_id,
            make_primary=link.is_primary
        )
    except ForbiddenError as e:
        log_authorization_failure(
            current_user, f"student:{link.student_id}", "link_guardian", request=request, reason=e.message
        )
        raise

    log_admin_action(
        "link_guardian",
        current_user,
        request=request,
        target=f"guardian:{result.guardian_id} student:{result.student_id} primary:{result.is_primary}"
    )
    return result


@router.get("/my-students", response_model=List[MyStudentResponse])
async def get_my_students(
    current_user: dict = Depends(require_roles(*LIST_MY_STUDENTS_ROLES)),
    conn: asyncpg.Connection = Depends(get_db)
):
    """Students linked to the current user, ordered by surname."""
    return await registry.list_students_for(conn, UUID(current_user["id"]))
