"""
Session Token Service for issuing and validating bearer tokens.

Session tokens are never stored. A token is a signed JWT with claims
``{sub, epoch, kind, iat, exp, jti}``; it is valid only while its ``epoch``
equals the current epoch of ``sub`` in the token version registry. Issuing a
token advances the epoch, so every earlier token of that user is revoked.

Validation checks, in order:
    1. Parseable                           -> MALFORMED
    2. Signature                           -> INVALID_SIGNATURE
    3. Expiry                              -> EXPIRED
    4. sub / epoch / kind well-formed      -> PAYLOAD_INVALID
    5. epoch is current                    -> REVOKED
    6. user exists                         -> USER_NOT_FOUND
    7. user verified                       -> NOT_VERIFIED (403)

Example usage:
    from taskdesk.core.services.session import SessionTokenService

    token = await SessionTokenService.issue(user.id, TokenKind.LOGIN)
    user = await SessionTokenService.validate(session, token)
"""

from datetime import timedelta
from typing import Any
from uuid import UUID

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.core.config import session_logger, settings
from taskdesk.core.db.crud import user_db
from taskdesk.core.db.models import User
from taskdesk.core.enums import SessionFailure, TokenKind
from taskdesk.core.exceptions.types import (
    SessionForbiddenException,
    SessionTokenException,
)
from taskdesk.core.services.token_version import TokenVersionRegistry
from taskdesk.core.utils import create_jwt_token


__all__ = ["SessionTokenService"]


class SessionTokenService:
    """
    Issues and validates epoch-bound session tokens.

    Attributes:
        _registry: Token version registry shared by issue and validate.
            Replaced by ``init``; tests install a fresh one per test.
    """

    _registry: TokenVersionRegistry | None = None

    # =========================================================================
    # Initialization
    # =========================================================================

    @classmethod
    def init(cls, registry: TokenVersionRegistry | None = None) -> None:
        """
        Install the token version registry.

        Args:
            registry: A ready registry. Defaults to one built from
                settings.TOKEN_VERSION_BACKEND.
        """
        cls._registry = registry or TokenVersionRegistry()
        session_logger.info("SessionTokenService initialized")

    @classmethod
    def get_registry(cls) -> TokenVersionRegistry:
        if cls._registry is None:
            cls._registry = TokenVersionRegistry()
        return cls._registry

    @classmethod
    def ttl_for(cls, kind: TokenKind) -> timedelta:
        if kind == TokenKind.OTP:
            return timedelta(minutes=settings.SESSION_TOKEN_TTL_OTP_MINUTES)
        return timedelta(days=settings.SESSION_TOKEN_TTL_LOGIN_DAYS)

    # =========================================================================
    # Issue
    # =========================================================================

    @classmethod
    async def issue(cls, user_id: UUID | str, kind: TokenKind = TokenKind.LOGIN) -> str:
        """
        Advance the user's epoch and sign a token bound to the new value.

        Args:
            user_id: The token subject.
            kind: Token kind; selects the lifetime.

        Returns:
            str: The encoded token.

        Raises:
            TokenVersionStoreException: If the epoch cannot be advanced.
        """
        epoch = await cls.get_registry().advance_epoch(user_id)
        token = create_jwt_token(
            data={"sub": str(user_id), "epoch": epoch, "kind": kind.value},
            expires_delta=cls.ttl_for(kind),
        )
        session_logger.info(
            f"Issued {kind.value} token: user={user_id}, epoch={epoch}"
        )
        return token

    # =========================================================================
    # Validate
    # =========================================================================

    @classmethod
    def _reject(cls, reason: SessionFailure, detail: str) -> SessionTokenException:
        session_logger.warning(f"Session token rejected ({reason.value}): {detail}")
        return SessionTokenException(reason=reason)

    @classmethod
    def _decode(cls, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise cls._reject(SessionFailure.EXPIRED, str(e)) from e
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise cls._reject(SessionFailure.INVALID_SIGNATURE, str(e)) from e
        except jwt.DecodeError as e:
            raise cls._reject(SessionFailure.MALFORMED, str(e)) from e
        except jwt.InvalidTokenError as e:
            raise cls._reject(SessionFailure.PAYLOAD_INVALID, str(e)) from e

    @classmethod
    def _parse_claims(
        cls, payload: dict[str, Any], expected_kind: TokenKind
    ) -> tuple[UUID, int]:
        sub = payload.get("sub")
        epoch = payload.get("epoch")
        kind = payload.get("kind")

        if not isinstance(sub, str):
            raise cls._reject(SessionFailure.PAYLOAD_INVALID, "missing sub")
        try:
            user_id = UUID(sub)
        except ValueError:
            raise cls._reject(SessionFailure.PAYLOAD_INVALID, f"bad sub {sub!r}")

        # bool is an int subclass
        if not isinstance(epoch, int) or isinstance(epoch, bool) or epoch < 0:
            raise cls._reject(SessionFailure.PAYLOAD_INVALID, f"bad epoch {epoch!r}")

        if kind != expected_kind.value:
            raise cls._reject(
                SessionFailure.PAYLOAD_INVALID,
                f"kind {kind!r}, expected {expected_kind.value}",
            )

        return user_id, epoch

    @classmethod
    async def validate(
        cls,
        session: AsyncSession,
        token: str | None,
        expected_kind: TokenKind = TokenKind.LOGIN,
    ) -> User:
        """
        Validate a bearer token and load its user.

        Args:
            session: The database session.
            token: The encoded token.
            expected_kind: The kind the caller accepts.

        Returns:
            User: The verified owner of the token.

        Raises:
            SessionTokenException: 401, carrying the failed check as ``reason``.
            SessionForbiddenException: 403 if the user is not verified.
            DatabaseException: If the user lookup fails.
        """
        if not token:
            raise cls._reject(SessionFailure.MALFORMED, "empty token")

        payload = cls._decode(token)
        user_id, epoch = cls._parse_claims(payload, expected_kind)

        current = await cls.get_registry().current_epoch(user_id)
        if current != epoch:
            raise cls._reject(
                SessionFailure.REVOKED,
                f"user={user_id}, token epoch={epoch}, current={current}",
            )

        user = await user_db.get_by_id(session, user_id)
        if user is None:
            raise cls._reject(SessionFailure.USER_NOT_FOUND, f"user={user_id}")

        if not user.verified:
            session_logger.warning(f"Session token for unverified user {user_id}")
            raise SessionForbiddenException()

        return user
