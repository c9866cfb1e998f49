"""
Tests for session token issuing and validation.

Run tests:
    pytest tests/services/test_session.py -v
"""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from taskdesk.core.config import settings
from taskdesk.core.enums import SessionFailure, TokenKind
from taskdesk.core.exceptions.types import (
    SessionForbiddenException,
    SessionTokenException,
)
from taskdesk.core.services.session import SessionTokenService
from taskdesk.core.utils import create_jwt_token, utc_now


def _decode(token: str) -> dict:
    return jwt.decode(
        token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
    )


async def _assert_rejected(session, token, reason: SessionFailure, **kwargs):
    with pytest.raises(SessionTokenException) as exc_info:
        await SessionTokenService.validate(session, token, **kwargs)
    assert exc_info.value.reason == reason
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Could not validate credentials."


class TestIssue:
    """Test suite for SessionTokenService.issue."""

    @pytest.mark.asyncio
    async def test_issue_claims(self):
        user_id = uuid4()

        token = await SessionTokenService.issue(user_id, TokenKind.LOGIN)
        payload = _decode(token)

        assert payload["sub"] == str(user_id)
        assert payload["epoch"] == 1
        assert payload["kind"] == "login"
        assert payload["exp"] - payload["iat"] == 7 * 24 * 3600

    @pytest.mark.asyncio
    async def test_otp_kind_lifetime(self):
        payload = _decode(await SessionTokenService.issue(uuid4(), TokenKind.OTP))

        assert payload["exp"] - payload["iat"] == 10 * 60

    @pytest.mark.asyncio
    async def test_each_issue_advances_epoch(self):
        user_id = uuid4()

        first = _decode(await SessionTokenService.issue(user_id))
        second = _decode(await SessionTokenService.issue(user_id))

        assert second["epoch"] == first["epoch"] + 1
        assert await SessionTokenService.get_registry().current_epoch(user_id) == 2


class TestValidate:
    """Test suite for SessionTokenService.validate."""

    @pytest.mark.asyncio
    async def test_valid_token_returns_user(self, db_session, test_user):
        token = await SessionTokenService.issue(test_user.id)

        user = await SessionTokenService.validate(db_session, token)

        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_earlier_token_is_revoked(self, db_session, test_user):
        first = await SessionTokenService.issue(test_user.id)
        second = await SessionTokenService.issue(test_user.id)

        await _assert_rejected(db_session, first, SessionFailure.REVOKED)
        assert (await SessionTokenService.validate(db_session, second)).id == test_user.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    async def test_malformed(self, db_session, token):
        await _assert_rejected(db_session, token, SessionFailure.MALFORMED)

    @pytest.mark.asyncio
    async def test_invalid_signature(self, db_session, test_user):
        epoch = await SessionTokenService.get_registry().advance_epoch(test_user.id)
        now = utc_now()
        token = jwt.encode(
            {
                "sub": str(test_user.id),
                "epoch": epoch,
                "kind": "login",
                "iat": now,
                "exp": now + timedelta(minutes=5),
            },
            "some-other-secret",
            algorithm="HS256",
        )

        await _assert_rejected(db_session, token, SessionFailure.INVALID_SIGNATURE)

    @pytest.mark.asyncio
    async def test_tampered_payload(self, db_session, test_user):
        token = await SessionTokenService.issue(test_user.id)
        header, payload, signature = token.split(".")
        other = await SessionTokenService.issue(uuid4())
        tampered = ".".join([header, other.split(".")[1], signature])

        await _assert_rejected(db_session, tampered, SessionFailure.INVALID_SIGNATURE)

    @pytest.mark.asyncio
    async def test_expired(self, db_session, test_user):
        epoch = await SessionTokenService.get_registry().advance_epoch(test_user.id)
        token = create_jwt_token(
            {"sub": str(test_user.id), "epoch": epoch, "kind": "login"},
            expires_delta=timedelta(seconds=-10),
        )

        await _assert_rejected(db_session, token, SessionFailure.EXPIRED)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "claims",
        [
            {"epoch": 1, "kind": "login"},
            {"sub": "not-a-uuid", "epoch": 1, "kind": "login"},
            {"sub": "SUB", "kind": "login"},
            {"sub": "SUB", "epoch": "1", "kind": "login"},
            {"sub": "SUB", "epoch": True, "kind": "login"},
            {"sub": "SUB", "epoch": -1, "kind": "login"},
            {"sub": "SUB", "epoch": 1},
        ],
    )
    async def test_payload_invalid(self, db_session, claims):
        claims = {
            k: (str(uuid4()) if v == "SUB" else v) for k, v in claims.items()
        }
        token = create_jwt_token(claims, expires_delta=timedelta(minutes=5))

        await _assert_rejected(db_session, token, SessionFailure.PAYLOAD_INVALID)

    @pytest.mark.asyncio
    async def test_wrong_kind(self, db_session, test_user):
        token = await SessionTokenService.issue(test_user.id, TokenKind.OTP)

        await _assert_rejected(db_session, token, SessionFailure.PAYLOAD_INVALID)

        # The same token is accepted where an OTP token is expected
        user = await SessionTokenService.validate(
            db_session, token, expected_kind=TokenKind.OTP
        )
        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_user_not_found(self, db_session):
        token = await SessionTokenService.issue(uuid4())

        await _assert_rejected(db_session, token, SessionFailure.USER_NOT_FOUND)

    @pytest.mark.asyncio
    async def test_unverified_user_is_forbidden(self, db_session, test_user_unverified):
        token = await SessionTokenService.issue(test_user_unverified.id)

        with pytest.raises(SessionForbiddenException) as exc_info:
            await SessionTokenService.validate(db_session, token)

        assert exc_info.value.status_code == 403
        assert exc_info.value.reason == SessionFailure.NOT_VERIFIED

    @pytest.mark.asyncio
    async def test_unseen_epoch_registry_rejects(self, db_session, test_user):
        from taskdesk.core.services.token_version import TokenVersionRegistry

        token = await SessionTokenService.issue(test_user.id)
        # A registry that lost its state reads every user as epoch 0
        SessionTokenService.init(registry=TokenVersionRegistry(backend="memory"))

        await _assert_rejected(db_session, token, SessionFailure.REVOKED)
