"""
Tests for the pickup session service.

These tests verify the business logic for pickup tokens including:
- Issuing a token only for linked guardians
- Reusing a live token instead of issuing a second one
- Redeeming exactly once
- Lazy expiry on redemption
- Retrying a claim lost to a scan that rolled back
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from kidguard.services import sessions
from kidguard.services.errors import (
    ForbiddenError,
    NotFoundError,
    TokenAlreadyUsedError,
    TokenBusyError,
    TokenExpiredError,
)

from tests.utils import mock_connection

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)

# ============================================
# Fixtures
# ============================================


@pytest.fixture
def conn():
    return mock_connection()


@pytest.fixture
def guardian_id():
    return UUID("00000000-0000-0000-0000-0000000000a1")


@pytest.fixture
def student_id():
    return UUID("00000000-0000-0000-0000-0000000000b1")


@pytest.fixture
def security_user():
    return {"id": "00000000-0000-0000-0000-0000000000c1", "email": "gate@example.com", "role": "SECURITY"}


def make_session(status="GENERATED", expires_at=None, token="tok-abcdefgh"):
    return {
        "id": uuid4(),
        "guardian_id": uuid4(),
        "student_id": uuid4(),
        "qr_token": token,
        "created_at": NOW - timedelta(minutes=1),
        "expires_at": expires_at or NOW + timedelta(minutes=4),
        "status": status,
        "guardian_first_name": "Gail",
        "guardian_last_name": "Guardian",
        "guardian_phone": "555-0101",
        "student_first_name": "Billy",
        "student_last_name": "Bloggs",
        "grade": "3",
    }


# ============================================
# Token generation
# ============================================


@pytest.mark.unit
def test_generate_pickup_token_is_random_and_url_safe():
    tokens = {sessions.generate_pickup_token() for _ in range(50)}

    assert len(tokens) == 50
    for token in tokens:
        assert len(token) == 32
        assert all(c.isalnum() or c in "-_" for c in token)


@pytest.mark.unit
def test_token_prefix_hides_most_of_the_token():
    assert sessions.token_prefix("abcdefghijkl") == "abcdef..."


# ============================================
# Requesting tokens
# ============================================


@pytest.mark.unit
async def test_request_token_requires_link(conn, guardian_id, student_id):
    with patch("kidguard.services.sessions.registry") as mock_registry, \
            patch("kidguard.services.sessions.repository") as mock_repo:
        mock_registry.has_link = AsyncMock(return_value=False)
        mock_repo.create_session = AsyncMock()

        with pytest.raises(ForbiddenError):
            await sessions.request_token(conn, guardian_id, student_id, now=NOW)

        mock_repo.create_session.assert_not_called()


@pytest.mark.unit
async def test_request_token_creates_session(conn, guardian_id, student_id):
    created = make_session(expires_at=NOW + timedelta(minutes=5))

    with patch("kidguard.services.sessions.registry") as mock_registry, \
            patch("kidguard.services.sessions.repository") as mock_repo:
        mock_registry.has_link = AsyncMock(return_value=True)
        mock_repo.lock_pickup_pair = AsyncMock()
        mock_repo.get_active_session = AsyncMock(return_value=None)
        mock_repo.create_session = AsyncMock(return_value=created)

        result = await sessions.request_token(conn, guardian_id, student_id, now=NOW)

        assert result.reused is False
        assert result.qr_token == created["qr_token"]
        assert result.validity_minutes == 5
        mock_repo.lock_pickup_pair.assert_awaited_once_with(conn, guardian_id, student_id)

        kwargs = mock_repo.create_session.call_args.kwargs
        assert kwargs["created_at"] == NOW
        assert kwargs["expires_at"] == NOW + timedelta(minutes=5)
        assert len(kwargs["qr_token"]) == 32


@pytest.mark.unit
async def test_request_token_reuses_live_session(conn, guardian_id, student_id):
    active = make_session()

    with patch("kidguard.services.sessions.registry") as mock_registry, \
            patch("kidguard.services.sessions.repository") as mock_repo:
        mock_registry.has_link = AsyncMock(return_value=True)
        mock_repo.lock_pickup_pair = AsyncMock()
        mock_repo.get_active_session = AsyncMock(return_value=active)
        mock_repo.create_session = AsyncMock()

        result = await sessions.request_token(conn, guardian_id, student_id, now=NOW)

        assert result.reused is True
        assert result.session_id == str(active["id"])
        assert result.expires_at == active["expires_at"]
        mock_repo.create_session.assert_not_called()


# ============================================
# Redeeming tokens
# ============================================


@pytest.mark.unit
async def test_redeem_unknown_token(conn, security_user):
    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await sessions.redeem_token(conn, security_user, "nope", now=NOW)


@pytest.mark.unit
async def test_redeem_success(conn, security_user):
    session = make_session()
    log = {"id": uuid4(), "verified_at": NOW}

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(return_value=session)
        mock_repo.claim_session = AsyncMock(return_value=True)
        mock_repo.create_pickup_log = AsyncMock(return_value=log)

        result = await sessions.redeem_token(conn, security_user, session["qr_token"], "red car", now=NOW)

        assert result.log_id == str(log["id"])
        assert result.session_id == str(session["id"])
        assert result.student.name == "Billy Bloggs"
        assert result.student.grade == "3"
        assert result.guardian.name == "Gail Guardian"
        assert result.guardian.phone == "555-0101"
        assert result.verified_by == "gate@example.com"

        mock_repo.claim_session.assert_awaited_once_with(conn, session["id"], NOW)
        kwargs = mock_repo.create_pickup_log.call_args.kwargs
        assert kwargs["security_user_id"] == UUID(security_user["id"])
        assert kwargs["notes"] == "red car"


@pytest.mark.unit
async def test_redeem_verified_session_reports_log(conn, security_user):
    session = make_session(status="VERIFIED")
    log_id = uuid4()

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(return_value=session)
        mock_repo.get_log_for_session = AsyncMock(return_value={"id": log_id})
        mock_repo.claim_session = AsyncMock()

        with pytest.raises(TokenAlreadyUsedError) as exc_info:
            await sessions.redeem_token(conn, security_user, session["qr_token"], now=NOW)

        assert exc_info.value.log_id == str(log_id)
        mock_repo.claim_session.assert_not_called()


@pytest.mark.unit
async def test_redeem_past_deadline_marks_expired(conn, security_user):
    session = make_session(expires_at=NOW - timedelta(seconds=1))

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(return_value=session)
        mock_repo.mark_session_expired = AsyncMock(return_value=True)
        mock_repo.claim_session = AsyncMock()

        with pytest.raises(TokenExpiredError):
            await sessions.redeem_token(conn, security_user, session["qr_token"], now=NOW)

        mock_repo.mark_session_expired.assert_awaited_once_with(conn, session["id"])
        mock_repo.claim_session.assert_not_called()


@pytest.mark.unit
async def test_redeem_exactly_at_deadline_is_expired(conn, security_user):
    session = make_session(expires_at=NOW)

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(return_value=session)
        mock_repo.mark_session_expired = AsyncMock(return_value=True)

        with pytest.raises(TokenExpiredError):
            await sessions.redeem_token(conn, security_user, session["qr_token"], now=NOW)


@pytest.mark.unit
async def test_redeem_already_expired_session_not_rewritten(conn, security_user):
    session = make_session(status="EXPIRED", expires_at=NOW - timedelta(minutes=10))

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(return_value=session)
        mock_repo.mark_session_expired = AsyncMock()

        with pytest.raises(TokenExpiredError):
            await sessions.redeem_token(conn, security_user, session["qr_token"], now=NOW)

        mock_repo.mark_session_expired.assert_not_called()


@pytest.mark.unit
async def test_redeem_lost_race_reports_already_used(conn, security_user):
    session = make_session()
    verified = dict(session, status="VERIFIED")
    log_id = uuid4()

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(side_effect=[session, verified])
        mock_repo.claim_session = AsyncMock(return_value=False)
        mock_repo.create_pickup_log = AsyncMock()
        mock_repo.get_log_for_session = AsyncMock(return_value={"id": log_id})

        with pytest.raises(TokenAlreadyUsedError) as exc_info:
            await sessions.redeem_token(conn, security_user, session["qr_token"], now=NOW)

        assert exc_info.value.log_id == str(log_id)
        mock_repo.create_pickup_log.assert_not_called()


@pytest.mark.unit
async def test_redeem_retries_claim_while_session_still_generated(conn, security_user):
    session = make_session()
    log = {"id": uuid4(), "verified_at": NOW}

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(side_effect=[session, session])
        mock_repo.claim_session = AsyncMock(side_effect=[False, True])
        mock_repo.create_pickup_log = AsyncMock(return_value=log)

        result = await sessions.redeem_token(conn, security_user, session["qr_token"], now=NOW)

        assert result.log_id == str(log["id"])
        assert mock_repo.claim_session.await_count == 2
        mock_repo.create_pickup_log.assert_awaited_once()


@pytest.mark.unit
async def test_redeem_contended_claim_is_retryable_not_already_used(conn, security_user):
    session = make_session()

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.get_session_by_token = AsyncMock(return_value=session)
        mock_repo.claim_session = AsyncMock(return_value=False)
        mock_repo.create_pickup_log = AsyncMock()
        mock_repo.get_log_for_session = AsyncMock()

        with pytest.raises(TokenBusyError) as exc_info:
            await sessions.redeem_token(conn, security_user, session["qr_token"], now=NOW)

        assert exc_info.value.status_code == 409
        assert exc_info.value.to_dict()["error"] == "TOKEN_BUSY"
        assert mock_repo.claim_session.await_count == sessions.CLAIM_ATTEMPTS
        mock_repo.create_pickup_log.assert_not_called()
        mock_repo.get_log_for_session.assert_not_called()


# ============================================
# History
# ============================================


@pytest.mark.unit
async def test_history_formats_names(conn):
    row = {
        "log_id": uuid4(),
        "session_id": uuid4(),
        "verified_at": NOW,
        "pickup_notes": None,
        "student_first_name": "Billy",
        "student_last_name": "Bloggs",
        "grade": "3",
        "guardian_first_name": "Gail",
        "guardian_last_name": "Guardian",
        "security_first_name": "Sam",
        "security_last_name": "Gate",
        "security_email": "gate@example.com",
    }

    with patch("kidguard.services.sessions.repository") as mock_repo:
        mock_repo.list_pickup_history = AsyncMock(return_value=[row])

        entries = await sessions.history(conn)

    assert len(entries) == 1
    assert entries[0].student_name == "Billy Bloggs"
    assert entries[0].guardian_name == "Gail Guardian"
    assert entries[0].security_name == "Sam Gate"
    assert entries[0].log_id == str(row["log_id"])
