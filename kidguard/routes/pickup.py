"""
Pickup routes.

Provides endpoints for:
- Guardians generating a pickup token (QR code payload) for a linked student
- Security officers verifying a scanned token
- Admins and security reviewing pickup history
"""

from typing import List
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Request, Response, status

from kidguard.auth import require_roles
from kidguard.auth.policy import HISTORY_ROLES, REDEEM_TOKEN_ROLES, REQUEST_TOKEN_ROLES
from kidguard.db import get_db
from kidguard.models.pickup import (
    PickupHistoryEntry,
    PickupTokenRequest,
    PickupTokenResponse,
    RedeemRequest,
    RedeemResponse,
)
from kidguard.services import sessions
from kidguard.services.errors import PickupServiceError
from kidguard.utils.audit_log import log_pickup_event

router = APIRouter(prefix="/pickup", tags=["Pickup"])


@router.post("/generate-qr", response_model=PickupTokenResponse)
async def generate_pickup_qr(
    body: PickupTokenRequest,
    request: Request,
    response: Response,
    current_user: dict = Depends(require_roles(*REQUEST_TOKEN_ROLES)),
    conn: asyncpg.Connection = Depends(get_db)
):
    """
    Get a pickup token for a linked student.

    Returns 201 with a new token, or 200 with the still-valid token from an
    earlier request.
    """
    try:
        result = await sessions.request_token(conn, UUID(current_user["id"]), body.student_id)
    except PickupServiceError as e:
        log_pickup_event(
            event_type="token_issued",
            user_id=current_user["id"],
            success=False,
            student_id=str(body.student_id),
            request=request,
            details=e.error_code
        )
        raise

    response.status_code = status.HTTP_200_OK if result.reused else status.HTTP_201_CREATED
    log_pickup_event(
        event_type="token_reused" if result.reused else "token_issued",
        user_id=current_user["id"],
        success=True,
        session_id=result.session_id,
        student_id=str(body.student_id),
        request=request
    )
    return result


@router.post("/verify-qr", response_model=RedeemResponse)
async def verify_pickup_qr(
    body: RedeemRequest,
    request: Request,
    current_user: dict = Depends(require_roles(*REDEEM_TOKEN_ROLES)),
    conn: asyncpg.Connection = Depends(get_db)
):
    """
    Redeem a scanned pickup token.

    Succeeds once per token. The response names the student and guardian so
    the officer can check the right person is collecting the right child.
    """
    try:
        result = await sessions.redeem_token(conn, current_user, body.qr_token, body.pickup_notes)
    except PickupServiceError as e:
        log_pickup_event(
            event_type="token_redeemed",
            user_id=current_user["id"],
            success=False,
            request=request,
            details=e.error_code
        )
        raise

    log_pickup_event(
        event_type="token_redeemed",
        user_id=current_user["id"],
        success=True,
        session_id=result.session_id,
        request=request,
        details=f"log_id={result.log_id}"
    )
    return result


@router.get("/history", response_model=List[PickupHistoryEntry])
async def get_pickup_history(
    current_user: dict = Depends(require_roles(*HISTORY_ROLES)),
    conn: asyncpg.Connection = Depends(get_db)
):
    """All verified pickups, newest first."""
    return await sessions.history(conn)
