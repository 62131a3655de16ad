"""
Pickup session state machine.

A guardian asks for a pickup token for a linked student; a security officer
redeems it once at the gate.

    GENERATED --(deadline passes, observed on read)--> EXPIRED
    GENERATED --(successful redemption)--------------> VERIFIED

EXPIRED and VERIFIED are terminal. Expiry is lazy: nothing runs in the
background, a GENERATED row past its deadline is written back to EXPIRED
the first time a redemption looks at it.

Security considerations:
- Tokens come from secrets.token_urlsafe (192 bits), never from sequences
- Unknown and mistyped tokens get the same NotFound answer
- Redemption flips the status with a conditional update and writes the log
  row in the same transaction, so two concurrent scans cannot both succeed
- Only a short token prefix is ever logged
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

import asyncpg

from kidguard.db import repository
from kidguard.models.pickup import (
    GuardianSummary,
    PickupHistoryEntry,
    PickupTokenResponse,
    RedeemResponse,
    SessionStatus,
    StudentSummary,
)
from kidguard.services import registry
from kidguard.services.errors import (
    ForbiddenError,
    NotFoundError,
    TokenAlreadyUsedError,
    TokenBusyError,
    TokenExpiredError,
)

logger = logging.getLogger(__name__)

# Constants
PICKUP_TOKEN_EXPIRE_MINUTES = 5
TOKEN_BYTES = 24  # 192 bits of entropy when using token_urlsafe
CLAIM_ATTEMPTS = 2


def generate_pickup_token() -> str:
    """Return a fresh unguessable pickup token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def token_prefix(token: str) -> str:
    """Loggable fragment of a token."""
    return f"{token[:6]}..."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _token_response(session, reused: bool) -> PickupTokenResponse:
    return PickupTokenResponse(
        message=(
            "Active pickup session found. Reusing token."
            if reused else "New pickup session generated."
        ),
        session_id=str(session["id"]),
        qr_token=session["qr_token"],
        expires_at=session["expires_at"],
        validity_minutes=PICKUP_TOKEN_EXPIRE_MINUTES,
        reused=reused
    )


async def request_token(
    conn: asyncpg.Connection,
    guardian_id: UUID,
    student_id: UUID,
    now: Optional[datetime] = None
) -> PickupTokenResponse:
    """
    Issue a pickup token for a guardian/student pair, reusing a live one.

    Args:
        conn: Database connection
        guardian_id: Requesting guardian
        student_id: Student to be collected
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        PickupTokenResponse with reused=True when an unexpired token already existed

    Raises:
        ForbiddenError: the guardian is not linked to the student
    """
    now = now or _utcnow()

    if not await registry.has_link(conn, guardian_id, student_id):
        raise ForbiddenError("You are not authorized to pick up this student.")

    async with conn.transaction():
        await repository.lock_pickup_pair(conn, guardian_id, student_id)

        active = await repository.get_active_session(conn, guardian_id, student_id, now)
        if active is not None:
            logger.debug("Reusing pickup session %s for guardian %s", active["id"], guardian_id)
            return _token_response(active, reused=True)

        session = await repository.create_session(
            conn,
            guardian_id=guardian_id,
            student_id=student_id,
            qr_token=generate_pickup_token(),
            created_at=now,
            expires_at=now + timedelta(minutes=PICKUP_TOKEN_EXPIRE_MINUTES)
        )

    logger.info(
        "Pickup session %s created for guardian %s / student %s (token %s)",
        session["id"], guardian_id, student_id, token_prefix(session["qr_token"])
    )
    return _token_response(session, reused=False)


async def _ensure_redeemable(conn: asyncpg.Connection, session, now: datetime):
    """Raise the terminal-state error for a session that cannot be redeemed."""
    status = session["status"]

    if status == SessionStatus.VERIFIED.value:
        log = await repository.get_log_for_session(conn, session["id"])
        raise TokenAlreadyUsedError(log_id=str(log["id"]) if log else None)

    if status == SessionStatus.EXPIRED.value or session["expires_at"] <= now:
        if status == SessionStatus.GENERATED.value:
            await repository.mark_session_expired(conn, session["id"])
            logger.info("Pickup session %s expired on redemption attempt", session["id"])
        raise TokenExpiredError()


async def redeem_token(
    conn: asyncpg.Connection,
    security_user: dict,
    token: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None
) -> RedeemResponse:
    """
    Redeem a pickup token exactly once.

    Args:
        conn: Database connection
        security_user: The authenticated security officer
        token: Scanned pickup token
        notes: Optional free-form notes stored on the log
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        RedeemResponse with the student and guardian to check at the gate

    Raises:
        NotFoundError: no session has this token
        TokenAlreadyUsedError: the session was already verified
        TokenExpiredError: the session's deadline has passed
        TokenBusyError: the claim kept losing to scans that did not complete
    """
    now = now or _utcnow()
    security_id = UUID(security_user["id"])

    session = await repository.get_session_by_token(conn, token)
    if session is None:
        raise NotFoundError("Invalid pickup token.")

    await _ensure_redeemable(conn, session, now)

    log = None
    for _ in range(CLAIM_ATTEMPTS):
        async with conn.transaction():
            if await repository.claim_session(conn, session["id"], now):
                log = await repository.create_pickup_log(
                    conn,
                    session_id=session["id"],
                    security_user_id=security_id,
                    verified_at=now,
                    notes=notes
                )
        if log is not None:
            break

        # Lost the claim. A finished scan or a passed deadline ends here;
        # a row still GENERATED means the other scan rolled back, so retry.
        current = await repository.get_session_by_token(conn, token)
        await _ensure_redeemable(conn, current, now)

    if log is None:
        logger.warning("Pickup session %s stayed contended after %d claims", session["id"], CLAIM_ATTEMPTS)
        raise TokenBusyError()

    logger.info(
        "Pickup session %s verified by %s (log %s)",
        session["id"], security_id, log["id"]
    )

    return RedeemResponse(
        message="Pickup authorized and logged successfully.",
        log_id=str(log["id"]),
        session_id=str(session["id"]),
        verified_at=log["verified_at"],
        student=StudentSummary(
            name=f"{session['student_first_name']} {session['student_last_name']}",
            grade=session["grade"]
        ),
        guardian=GuardianSummary(
            name=f"{session['guardian_first_name']} {session['guardian_last_name']}",
            phone=session["guardian_phone"]
        ),
        verified_by=security_user["email"]
    )


async def history(conn: asyncpg.Connection) -> List[PickupHistoryEntry]:
    """All verified pickups, newest first."""
    rows = await repository.list_pickup_history(conn)

    return [
        PickupHistoryEntry(
            log_id=str(row["log_id"]),
            session_id=str(row["session_id"]),
            verified_at=row["verified_at"],
            pickup_notes=row["pickup_notes"],
            student_name=f"{row['student_first_name']} {row['student_last_name']}",
            grade=row["grade"],
            guardian_name=f"{row['guardian_first_name']} {row['guardian_last_name']}",
            security_name=f"{row['security_first_name']} {row['security_last_name']}",
            security_email=row["security_email"]
        )
        for row in rows
    ]
