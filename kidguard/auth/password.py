"""
Password hashing and verification utilities.

Uses bcrypt with a work factor of 12.
"""

import bcrypt

BCRYPT_WORK_FACTOR = 12


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: The plain-text password to hash

    Returns:
        The hashed password as a string
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_WORK_FACTOR)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        password: The plain-text password to verify
        password_hash: The hashed password to compare against

    Returns:
        True if the password matches, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False
