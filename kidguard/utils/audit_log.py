"""
Audit trail for KidGuard.

Every line goes to the "audit" logger as pipe-delimited key=value fields so
gate staff and admins can reconstruct who collected which child, who was
turned away, and which admin changed what. Pickup tokens are never written.
"""

import logging
from typing import Optional
from fastapi import Request

audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

if not audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - AUDIT - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False


def client_ip(request: Optional[Request]) -> str:
    """Caller address, preferring the first X-Forwarded-For hop."""
    if request is None:
        return "unknown"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    return request.client.host if request.client else "unknown"


def _emit(kind: str, fields: dict, request: Optional[Request], level: int = logging.INFO):
    parts = [kind]
    parts.extend(f"{key}={value}" for key, value in fields.items() if value is not None)
    parts.append(f"ip={client_ip(request)}")
    audit_logger.log(level, " | ".join(parts))


def log_auth_event(
    event_type: str,
    email: str,
    success: bool,
    request: Optional[Request] = None,
    user_id: Optional[str] = None,
    error: Optional[str] = None
):
    """
    Record a registration or login attempt.

    Failures carry the service error code (UNAUTHENTICATED, FORBIDDEN, CONFLICT).
    """
    _emit(
        f"AUTH | {event_type.upper()} | {'SUCCESS' if success else 'FAILURE'}",
        {"email": email, "user_id": user_id, "error": error},
        request,
        logging.INFO if success else logging.WARNING
    )


def log_authorization_failure(
    actor: dict,
    resource: str,
    action: str,
    request: Optional[Request] = None,
    reason: Optional[str] = None
):
    """Record a 403: an authenticated user tried something their role or standing forbids."""
    _emit(
        "AUTHZ_FAILURE",
        {
            "user_id": actor["id"],
            "role": actor["role"],
            "resource": resource,
            "action": action,
            "reason": reason,
        },
        request,
        logging.WARNING
    )


def log_admin_action(
    operation: str,
    actor: dict,
    request: Optional[Request] = None,
    target: Optional[str] = None
):
    """Record a change to accounts, students or guardian links."""
    _emit(
        f"ADMIN_ACTION | {operation.upper()}",
        {"user_id": actor["id"], "role": actor["role"], "target": target},
        request
    )


def log_pickup_event(
    event_type: str,
    user_id: str,
    success: bool,
    session_id: Optional[str] = None,
    student_id: Optional[str] = None,
    request: Optional[Request] = None,
    details: Optional[str] = None
):
    """
    Record pickup token activity.

    Args:
        event_type: token_issued, token_reused or token_redeemed
        user_id: Guardian requesting or security officer redeeming
        success: Whether the operation succeeded
        session_id: Pickup session, when known
        student_id: Student concerned, when known
        request: FastAPI request object
        details: Error code or log id; never the token itself
    """
    _emit(
        f"PICKUP | {event_type.upper()} | {'SUCCESS' if success else 'FAILURE'}",
        {
            "user_id": user_id,
            "session_id": session_id,
            "student_id": student_id,
            "details": details,
        },
        request,
        logging.INFO if success else logging.WARNING
    )
