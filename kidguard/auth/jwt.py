"""
JWT token utilities for authentication.

Access tokens carry the user id, role and approval flag so a client can
tell what it may do; the server still re-reads the user row on each request.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import jwt
from jwt.exceptions import InvalidTokenError

# Configuration from environment
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-kidguard-development-secret")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "720"))


def create_access_token(
    user_id: str,
    role: str,
    is_approved: bool = False,
    email: Optional[str] = None,
    additional_claims: Optional[Dict] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: The user's UUID as a string
        role: The user's role ('ADMIN', 'PRIMARY', 'GUARDIAN', 'SECURITY')
        is_approved: The approval flag at the time of issue
        email: The user's email, included for display purposes
        additional_claims: Optional additional claims to include in the token

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)

    payload = {
        "sub": user_id,
        "role": role,
        "approved": is_approved,
        "type": "access",
        "exp": now + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS),
        "iat": now
    }
    if email:
        payload["email"] = email

    if additional_claims:
        payload.update(additional_claims)

    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Dict:
    """
    Decode and validate a JWT token.

    Args:
        token: The JWT token string to decode

    Returns:
        Dictionary containing the token payload

    Raises:
        InvalidTokenError: If the token is invalid or expired
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError as e:
        raise InvalidTokenError(f"Invalid token: {str(e)}")
