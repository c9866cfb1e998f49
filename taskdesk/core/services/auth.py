"""
Authentication Service for account and login flows.

This module provides a centralized authentication service that handles:
- Email signup with password hashing and an emailed signup OTP
- Email/password authentication with uniform failure messages
- Login returning an epoch-bound session token
- SSO login (Google, Facebook) with account linking or provisioning

Example usage:
    from taskdesk.core.services.auth import AuthService

    # Email signup
    user = await AuthService.signup(
        session=db_session,
        email="user@example.com",
        password="secret1",
        first_name="Ada",
        last_name="Lovelace",
    )

    # Login
    token, user = await AuthService.login(
        session=db_session,
        email="user@example.com",
        password="secret1",
    )

    # SSO login
    token, user = await AuthService.sso_login(
        session=db_session,
        provider=SSOProvider.GOOGLE,
        assertion=id_token,
    )
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.core.config import auth_logger
from taskdesk.core.db.crud import user_db
from taskdesk.core.db.models import User
from taskdesk.core.enums import OTPPurpose, SSOProvider, TokenKind
from taskdesk.core.exceptions.types import (
    DatabaseException,
    InvalidCredentialsException,
    SSOValidationException,
    UnverifiedAccountException,
    UserAlreadyExistsException,
)
from taskdesk.core.services.otp import OTPService
from taskdesk.core.services.session import SessionTokenService
from taskdesk.core.services.sso import SSOVerifier, VerifiedIdentity
from taskdesk.core.utils import (
    generate_random_password,
    hash_password,
    verify_password,
)


__all__ = ["AuthService"]


class AuthService:
    """
    Centralized authentication service.

    Attributes:
        _dummy_hash: bcrypt hash checked for unknown emails so that a missing
            account costs the same as a wrong password. Computed on first use.

    Example:
        >>> token, user = await AuthService.login(
        ...     session=db_session,
        ...     email="user@example.com",
        ...     password="password123",
        ... )
    """

    _dummy_hash: str | None = None

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _get_dummy_hash(cls) -> str:
        if cls._dummy_hash is None:
            cls._dummy_hash = hash_password(generate_random_password())
        return cls._dummy_hash

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    # =========================================================================
    # Email Authentication
    # =========================================================================

    @classmethod
    async def signup(
        cls,
        session: AsyncSession,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        commit_self: bool = False,
    ) -> User:
        """
        Register an unverified user and email a signup OTP.

        The user row and the OTP record are written in the caller's
        transaction; if the email cannot be delivered both are rolled back.

        Args:
            session: The database session.
            email: The user's email address.
            password: The user's password (will be hashed).
            first_name: First name.
            last_name: Last name.
            commit_self: If True, commits the transaction. Default False.

        Returns:
            User: The created user.

        Raises:
            UserAlreadyExistsException: If the email is already registered.
            EmailDeliveryException: If the OTP email could not be delivered.

        Example:
            >>> user = await AuthService.signup(
            ...     session=db_session,
            ...     email="newuser@example.com",
            ...     password="secret1",
            ...     first_name="New",
            ...     last_name="User",
            ... )
        """
        email = cls._normalize_email(email)

        if await user_db.get_by_email(session, email) is not None:
            auth_logger.warning(f"Signup failed: email already exists {email}")
            raise UserAlreadyExistsException()

        try:
            user = await user_db.create(
                session=session,
                data={
                    "email": email,
                    "password_hash": hash_password(password),
                    "first_name": first_name,
                    "last_name": last_name,
                    "verified": False,
                },
                commit_self=False,
            )
        except DatabaseException as e:
            # Lost a race with a concurrent signup for the same email
            if isinstance(e.__cause__, IntegrityError):
                auth_logger.warning(f"Signup failed: email already exists {email}")
                raise UserAlreadyExistsException() from e
            raise

        await OTPService.issue(session, user, OTPPurpose.SIGNUP, commit_self=False)

        if commit_self:
            await session.commit()

        auth_logger.info(f"User signup: user={user.id}, email={email}")
        return user

    @classmethod
    async def authenticate(
        cls,
        session: AsyncSession,
        email: str,
        password: str,
    ) -> User:
        """
        Check an email/password pair.

        Unknown emails and wrong passwords fail identically, and both run one
        bcrypt check.

        Args:
            session: The database session.
            email: The user's email address.
            password: The user's password.

        Returns:
            User: The authenticated, verified user.

        Raises:
            InvalidCredentialsException: If email or password is incorrect.
            UnverifiedAccountException: If the password is right but the
                account is not verified yet.
        """
        email = cls._normalize_email(email)
        user = await user_db.get_by_email(session, email)

        if user is None:
            verify_password(password, cls._get_dummy_hash())
            auth_logger.warning(f"Login failed: user not found {email}")
            raise InvalidCredentialsException()

        if not verify_password(password, user.password_hash):
            auth_logger.warning(f"Login failed: wrong password {email}")
            raise InvalidCredentialsException()

        if not user.verified:
            auth_logger.warning(f"Login failed: user not verified {email}")
            raise UnverifiedAccountException()

        return user

    @classmethod
    async def login(
        cls,
        session: AsyncSession,
        email: str,
        password: str,
    ) -> tuple[str, User]:
        """
        Authenticate and issue a login token.

        Issuing the token advances the user's epoch, which revokes every
        session token issued to the user before.

        Returns:
            tuple[str, User]: The session token and the user.

        Raises:
            InvalidCredentialsException: If email or password is incorrect.
            UnverifiedAccountException: If the account is not verified.
            TokenVersionStoreException: If the epoch cannot be advanced.
        """
        user = await cls.authenticate(session, email, password)
        token = await SessionTokenService.issue(user.id, TokenKind.LOGIN)
        auth_logger.info(f"User login: user={user.id}")
        return token, user

    # =========================================================================
    # SSO Authentication
    # =========================================================================

    @classmethod
    async def _link_sso_user(
        cls, session: AsyncSession, user: User, identity: VerifiedIdentity
    ) -> User:
        if user.verified:
            return user

        # The unverified password may belong to someone who never owned the email
        user = await user_db.update(
            session,
            user.id,
            {
                "verified": True,
                "password_hash": hash_password(generate_random_password()),
            },
            commit_self=False,
        )
        auth_logger.info(
            f"SSO verified existing account: provider={identity.provider.value}, user={user.id}"
        )
        return user

    @classmethod
    async def _get_or_create_sso_user(
        cls,
        session: AsyncSession,
        identity: VerifiedIdentity,
        first_name: str | None,
        last_name: str | None,
    ) -> User:
        user = await user_db.get_by_email(session, identity.email)

        if user is not None:
            return await cls._link_sso_user(session, user, identity)

        # Identity claims win over client-supplied names
        resolved_first = (
            identity.given_name or first_name or identity.email.split("@", 1)[0]
        )
        resolved_last = identity.family_name or last_name or ""

        try:
            async with session.begin_nested():
                user = await user_db.create(
                    session=session,
                    data={
                        "email": identity.email,
                        # Never disclosed; the account can only log in through SSO
                        # until a password is set.
                        "password_hash": hash_password(generate_random_password()),
                        "first_name": resolved_first,
                        "last_name": resolved_last,
                        "verified": True,
                    },
                    commit_self=False,
                )
        except DatabaseException as e:
            if not isinstance(e.__cause__, IntegrityError):
                raise
            # Lost a race with a concurrent first login for the same email
            winner = await user_db.get_by_email(session, identity.email)
            if winner is None:
                raise
            auth_logger.warning(
                f"SSO signup raced for {identity.email}, linking user={winner.id}"
            )
            return await cls._link_sso_user(session, winner, identity)

        auth_logger.info(
            f"SSO signup: provider={identity.provider.value}, user={user.id}"
        )
        return user

    @classmethod
    async def sso_login(
        cls,
        session: AsyncSession,
        provider: SSOProvider,
        assertion: str,
        first_name: str | None = None,
        last_name: str | None = None,
        commit_self: bool = False,
    ) -> tuple[str, User]:
        """
        Log in with an SSO identity assertion.

        The account is matched on the email inside the verified assertion,
        never on anything the client sent alongside it. An existing unverified
        account is marked verified and its password replaced with a random one;
        otherwise a verified account is created.

        Args:
            session: The database session.
            provider: The identity provider.
            assertion: The provider-issued ID token.
            first_name: Client-supplied first name, used only when creating an
                account and the assertion carries none.
            last_name: Client-supplied last name, same rule.
            commit_self: If True, commits the transaction. Default False.

        Returns:
            tuple[str, User]: The session token and the user.

        Raises:
            SSOValidationException: If the assertion does not verify.
        """
        identity = await SSOVerifier.verify(provider, assertion)
        if identity is None:
            auth_logger.warning(f"SSO login rejected: provider={provider}")
            raise SSOValidationException()

        user = await cls._get_or_create_sso_user(
            session, identity, first_name, last_name
        )

        if commit_self:
            await session.commit()

        token = await SessionTokenService.issue(user.id, TokenKind.LOGIN)
        auth_logger.info(
            f"SSO login: provider={identity.provider.value}, user={user.id}"
        )
        return token, user
