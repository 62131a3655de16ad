"""
Unit tests for the access policy.
"""

import pytest

from kidguard.auth.policy import (
    ADMIN_ROLES,
    HISTORY_ROLES,
    LINK_GUARDIAN_ROLES,
    LIST_MY_STUDENTS_ROLES,
    REDEEM_TOKEN_ROLES,
    REQUEST_TOKEN_ROLES,
    can_link_without_primary,
    denial_reason,
    is_allowed,
    is_effectively_approved,
    is_guardian_eligible,
    requires_approval,
)


@pytest.mark.unit
class TestApproval:

    @pytest.mark.parametrize("role,expected", [
        ("ADMIN", False),
        ("SECURITY", False),
        ("PRIMARY", True),
        ("GUARDIAN", True),
        ("JANITOR", True),
    ])
    def test_requires_approval(self, role, expected):
        assert requires_approval(role) is expected

    def test_security_is_approved_regardless_of_flag(self):
        assert is_effectively_approved("SECURITY", False) is True

    def test_guardian_follows_stored_flag(self):
        assert is_effectively_approved("GUARDIAN", False) is False
        assert is_effectively_approved("GUARDIAN", True) is True


@pytest.mark.unit
class TestDenialReason:

    def test_allowed_role(self):
        assert denial_reason(REQUEST_TOKEN_ROLES, "GUARDIAN", True) is None

    def test_wrong_role_names_required_roles(self):
        reason = denial_reason(HISTORY_ROLES, "GUARDIAN", True)

        assert reason == "Access denied. Requires role: ADMIN or SECURITY."

    def test_unapproved_checked_before_role(self):
        reason = denial_reason(REDEEM_TOKEN_ROLES, "PRIMARY", False)

        assert "awaiting Admin approval" in reason

    def test_unknown_role_always_denied(self):
        assert denial_reason((), "JANITOR", True) == "Access denied. Unknown role."

    def test_empty_role_set_allows_any_approved_role(self):
        assert denial_reason((), "SECURITY", False) is None

    def test_is_allowed(self):
        assert is_allowed(ADMIN_ROLES, "ADMIN", False) is True
        assert is_allowed(ADMIN_ROLES, "SECURITY", True) is False


@pytest.mark.unit
class TestOperationRoles:
    """The role table for each operation."""

    @pytest.mark.parametrize("roles,role,allowed", [
        (LINK_GUARDIAN_ROLES, "PRIMARY", True),
        (LINK_GUARDIAN_ROLES, "ADMIN", True),
        (LINK_GUARDIAN_ROLES, "GUARDIAN", False),
        (LINK_GUARDIAN_ROLES, "SECURITY", False),
        (LIST_MY_STUDENTS_ROLES, "GUARDIAN", True),
        (LIST_MY_STUDENTS_ROLES, "SECURITY", False),
        (REQUEST_TOKEN_ROLES, "PRIMARY", True),
        (REQUEST_TOKEN_ROLES, "ADMIN", False),
        (REDEEM_TOKEN_ROLES, "SECURITY", True),
        (REDEEM_TOKEN_ROLES, "ADMIN", False),
        (HISTORY_ROLES, "SECURITY", True),
        (HISTORY_ROLES, "PRIMARY", False),
    ])
    def test_role_table(self, roles, role, allowed):
        assert is_allowed(roles, role, True) is allowed


@pytest.mark.unit
class TestLinkingRules:

    def test_admin_bypass_enabled(self):
        assert can_link_without_primary("ADMIN", bypass_enabled=True) is True

    def test_admin_bypass_disabled(self):
        assert can_link_without_primary("ADMIN", bypass_enabled=False) is False

    def test_primary_never_bypasses(self):
        assert can_link_without_primary("PRIMARY", bypass_enabled=True) is False

    @pytest.mark.parametrize("role,eligible", [
        ("PRIMARY", True),
        ("GUARDIAN", True),
        ("ADMIN", True),
        ("SECURITY", False),
        ("JANITOR", False),
    ])
    def test_guardian_eligibility(self, role, eligible):
        assert is_guardian_eligible(role) is eligible
