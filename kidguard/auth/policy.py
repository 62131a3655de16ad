"""
Access policy.

Pure functions deciding whether an actor may perform an operation. Nothing
here touches the database, so the rules can be tested in isolation and
shared by route dependencies and services.
"""

import os
from typing import Iterable, Optional

from kidguard.models.user import Role

# Whether each role needs an explicit admin approval before acting.
# ADMIN and SECURITY are approved implicitly.
APPROVAL_POLICY = {
    Role.ADMIN: False,
    Role.SECURITY: False,
    Role.PRIMARY: True,
    Role.GUARDIAN: True,
}

# Roles that may be linked to a student as a guardian
GUARDIAN_ELIGIBLE_ROLES = frozenset({Role.PRIMARY, Role.GUARDIAN, Role.ADMIN})

# Operation -> roles allowed to perform it
LINK_GUARDIAN_ROLES = (Role.PRIMARY, Role.ADMIN)
LIST_MY_STUDENTS_ROLES = (Role.PRIMARY, Role.GUARDIAN, Role.ADMIN)
REQUEST_TOKEN_ROLES = (Role.PRIMARY, Role.GUARDIAN)
REDEEM_TOKEN_ROLES = (Role.SECURITY,)
HISTORY_ROLES = (Role.ADMIN, Role.SECURITY)
ADMIN_ROLES = (Role.ADMIN,)

# Admins may link guardians to any student without holding a primary link.
# Kept as a setting until the product owners confirm the behaviour.
ADMIN_BYPASS_PRIMARY_CHECK = os.getenv("ADMIN_BYPASS_PRIMARY_CHECK", "true").lower() == "true"


def _as_role(role) -> Optional[Role]:
    try:
        return Role(role)
    except ValueError:
        return None


def requires_approval(role) -> bool:
    """Whether accounts with this role start unapproved. Unknown roles always do."""
    parsed = _as_role(role)
    if parsed is None:
        return True
    return APPROVAL_POLICY[parsed]


def is_effectively_approved(role, approved: bool) -> bool:
    """Apply the approval table to a stored approval flag."""
    return bool(approved) or not requires_approval(role)


def denial_reason(required_roles: Iterable, role, approved: bool) -> Optional[str]:
    """
    Check an actor against an operation's role set.

    Args:
        required_roles: Roles allowed to perform the operation (empty = any role)
        role: The actor's role
        approved: The actor's stored approval flag

    Returns:
        None when allowed, otherwise a human-readable reason
    """
    parsed = _as_role(role)
    if parsed is None:
        return "Access denied. Unknown role."

    if not is_effectively_approved(parsed, approved):
        return "Access denied. Account is awaiting Admin approval."

    allowed = [Role(r) for r in required_roles]
    if allowed and parsed not in allowed:
        return f"Access denied. Requires role: {' or '.join(r.value for r in allowed)}."

    return None


def is_allowed(required_roles: Iterable, role, approved: bool) -> bool:
    """Boolean form of denial_reason."""
    return denial_reason(required_roles, role, approved) is None


def can_link_without_primary(role, bypass_enabled: Optional[bool] = None) -> bool:
    """Whether this actor skips the primary-guardian standing check when linking."""
    if bypass_enabled is None:
        bypass_enabled = ADMIN_BYPASS_PRIMARY_CHECK
    return bypass_enabled and _as_role(role) == Role.ADMIN


def is_guardian_eligible(role) -> bool:
    """Whether an identity with this role may be linked to a student."""
    return _as_role(role) in GUARDIAN_ELIGIBLE_ROLES
