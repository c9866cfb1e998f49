"""
Base SSO provider and JWKS key cache.

An SSO provider turns an identity assertion (an RS256-signed OpenID Connect
ID token issued to the client app) into a ``VerifiedIdentity``. Verification
checks the signature against the issuer's published JWKS, the ``iss`` claim
against the provider's allow-list and the ``aud`` claim against the
configured client id. Any failure yields ``None``.

Example usage:
    from taskdesk.core.services.sso.base import BaseSSOProvider, VerifiedIdentity

    class MyProvider(BaseSSOProvider):
        provider = SSOProvider.GOOGLE
        jwks_url = "https://issuer.example.com/jwks"
        issuers = ("https://issuer.example.com",)

        @classmethod
        def audience(cls) -> str:
            return settings.MY_CLIENT_ID

        @classmethod
        def _build_identity(cls, claims: dict) -> VerifiedIdentity | None:
            ...
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import time
from typing import Any, Callable

import httpx
import jwt

from taskdesk.core.config import settings, sso_logger
from taskdesk.core.enums import SSOProvider


__all__ = ["BaseSSOProvider", "JWKSCache", "VerifiedIdentity"]


@dataclass(frozen=True)
class VerifiedIdentity:
    """
    Identity asserted by an SSO provider after successful verification.

    Attributes:
        provider: The provider that vouched for the identity.
        subject: The provider's stable user id (``sub``).
        email: Email address taken from the assertion, lower-cased.
        given_name: Optional first name.
        family_name: Optional last name.
    """

    provider: SSOProvider
    subject: str
    email: str
    given_name: str | None = None
    family_name: str | None = None


class JWKSCache:
    """
    In-memory cache of an issuer's signing keys, keyed by ``kid``.

    Keys are fetched lazily on first use and again once the cache is older
    than ``SSO_JWKS_CACHE_SECONDS``. A ``kid`` that is not in a warm cache
    triggers an extra refresh, which picks up rotated keys. Such forced
    refreshes happen at most once per ``SSO_JWKS_MIN_REFRESH_SECONDS``.
    """

    def __init__(self, url: str, clock: Callable[[], float] = time.monotonic):
        self.url = url
        self._clock = clock
        self._lock = asyncio.Lock()
        self._keys: dict[str, Any] | None = None
        self._fetched_at: float = 0.0

    def _is_stale(self) -> bool:
        return (
            self._keys is None
            or self._clock() - self._fetched_at > settings.SSO_JWKS_CACHE_SECONDS
        )

    def _can_force_refresh(self) -> bool:
        return self._clock() - self._fetched_at >= settings.SSO_JWKS_MIN_REFRESH_SECONDS

    async def get_signing_key(self, kid: str, client: httpx.AsyncClient) -> Any:
        """
        Return the public key for ``kid``.

        Raises:
            httpx.HTTPError: If the JWKS cannot be fetched.
            jwt.InvalidTokenError: If no key carries that ``kid``.
        """
        async with self._lock:
            refreshed = False
            if self._is_stale():
                await self._refresh(client)
                refreshed = True

            if kid not in self._keys and not refreshed:
                if self._can_force_refresh():
                    # Possibly rotated keys
                    await self._refresh(client)
                else:
                    sso_logger.warning(
                        f"Unknown kid {kid}, JWKS refresh throttled for {self.url}"
                    )

            key = self._keys.get(kid)

        if key is None:
            raise jwt.InvalidTokenError(f"Signing key not found for kid: {kid}")
        return key

    async def _refresh(self, client: httpx.AsyncClient) -> None:
        sso_logger.info(f"Fetching JWKS from {self.url}")
        resp = await client.get(self.url)
        resp.raise_for_status()

        keys: dict[str, Any] = {}
        for key_data in resp.json().get("keys", []):
            kid = key_data.get("kid")
            if not kid:
                continue
            try:
                keys[kid] = jwt.PyJWK(key_data).key
            except jwt.PyJWKError as e:
                sso_logger.warning(f"Skipping unusable JWK kid={kid}: {e}")

        self._keys = keys
        self._fetched_at = self._clock()
        sso_logger.info(f"Cached {len(keys)} signing keys from {self.url}")


class BaseSSOProvider(ABC):
    """
    Abstract base class for SSO identity verifiers.

    Subclasses must define:
        - provider: The ``SSOProvider`` value they handle
        - jwks_url: Where the issuer publishes its signing keys
        - issuers: Accepted values of the ``iss`` claim
        - audience(): The client id the assertion must be issued to
        - _build_identity(): Map verified claims to a ``VerifiedIdentity``

    Each subclass gets its own JWKS cache on first use.
    """

    provider: SSOProvider
    jwks_url: str
    issuers: tuple[str, ...]

    # Tolerated clock skew when checking exp/iat
    LEEWAY_SECONDS: int = 60

    _client: httpx.AsyncClient | None = None
    _jwks_cache: JWKSCache | None = None

    @classmethod
    async def init(cls, client: httpx.AsyncClient | None = None) -> None:
        """
        Set up the HTTP client used to fetch the JWKS.

        Args:
            client: A ready client (tests pass one with a mock transport).
                Defaults to a new client with ``SSO_HTTP_TIMEOUT_SECONDS``.
        """
        await cls.aclose()
        cls._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.SSO_HTTP_TIMEOUT_SECONDS)
        )
        cls._jwks_cache = JWKSCache(cls.jwks_url)
        sso_logger.info(f"{cls.__name__} initialized")

    @classmethod
    async def aclose(cls) -> None:
        """Close the HTTP client if this provider owns one."""
        client = cls.__dict__.get("_client")
        if client is not None:
            try:
                await client.aclose()
            finally:
                cls._client = None
                sso_logger.info(f"{cls.__name__} HTTP client closed")

    @classmethod
    def _get_client(cls) -> httpx.AsyncClient:
        if cls.__dict__.get("_client") is None:
            cls._client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.SSO_HTTP_TIMEOUT_SECONDS)
            )
        return cls._client  # type: ignore[return-value]

    @classmethod
    def _get_jwks_cache(cls) -> JWKSCache:
        if cls.__dict__.get("_jwks_cache") is None:
            cls._jwks_cache = JWKSCache(cls.jwks_url)
        return cls._jwks_cache  # type: ignore[return-value]

    @classmethod
    @abstractmethod
    def audience(cls) -> str:
        """Return the client id assertions must be issued to."""

    @classmethod
    @abstractmethod
    def _build_identity(cls, claims: dict[str, Any]) -> VerifiedIdentity | None:
        """
        Map verified claims to an identity.

        Args:
            claims: Claims whose signature, issuer, audience and expiry are verified.

        Returns:
            VerifiedIdentity | None: None when a provider-specific check fails.
        """

    @classmethod
    async def _decode(cls, assertion: str) -> dict[str, Any]:
        audience = cls.audience()
        if not audience:
            raise jwt.InvalidAudienceError(f"{cls.provider.value} client id not configured")

        header = jwt.get_unverified_header(assertion)
        kid = header.get("kid")
        if not kid:
            raise jwt.InvalidTokenError("Token header missing 'kid'")

        signing_key = await cls._get_jwks_cache().get_signing_key(kid, cls._get_client())

        claims = jwt.decode(
            assertion,
            signing_key,
            algorithms=["RS256"],
            audience=audience,
            leeway=cls.LEEWAY_SECONDS,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
        if claims["iss"] not in cls.issuers:
            raise jwt.InvalidIssuerError(f"Untrusted issuer: {claims['iss']}")
        return claims

    @classmethod
    async def verify(cls, assertion: str) -> VerifiedIdentity | None:
        """
        Verify an identity assertion.

        Args:
            assertion: The ID token received from the client.

        Returns:
            VerifiedIdentity | None: The identity, or None if the assertion is
            invalid for any reason (bad signature, wrong issuer or audience,
            expired, key fetch failure, missing email).
        """
        if not assertion:
            return None

        try:
            claims = await cls._decode(assertion)
        except jwt.InvalidTokenError as e:
            sso_logger.warning(
                f"{cls.provider.value} assertion rejected: {type(e).__name__} - {e}"
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            sso_logger.error(
                f"{cls.provider.value} JWKS unavailable: {type(e).__name__} - {e}"
            )
            return None

        identity = cls._build_identity(claims)
        if identity is None:
            sso_logger.warning(f"{cls.provider.value} assertion missing required identity claims")
            return None

        sso_logger.info(f"{cls.provider.value} identity verified: sub={identity.subject}")
        return identity
