"""
SSO identity verification.

``SSOVerifier`` maps each ``SSOProvider`` to the class that verifies its
assertions. Supporting a new provider means writing a ``BaseSSOProvider``
subclass and registering it.

Example usage:
    from taskdesk.core.services.sso import SSOVerifier

    identity = await SSOVerifier.verify(SSOProvider.GOOGLE, id_token)
    if identity is None:
        raise SSOValidationException()
"""

from taskdesk.core.config import sso_logger
from taskdesk.core.enums import SSOProvider
from taskdesk.core.services.sso.base import (
    BaseSSOProvider,
    JWKSCache,
    VerifiedIdentity,
)
from taskdesk.core.services.sso.facebook import FacebookSSOProvider
from taskdesk.core.services.sso.google import GoogleSSOProvider


class SSOVerifier:
    """Registry of SSO providers."""

    _providers: dict[SSOProvider, type[BaseSSOProvider]] = {
        SSOProvider.GOOGLE: GoogleSSOProvider,
        SSOProvider.FACEBOOK: FacebookSSOProvider,
    }

    @classmethod
    def register(
        cls, provider: SSOProvider, provider_cls: type[BaseSSOProvider]
    ) -> None:
        cls._providers[provider] = provider_cls

    @classmethod
    def get_provider(cls, provider: SSOProvider | str) -> type[BaseSSOProvider] | None:
        try:
            provider = SSOProvider(provider)
        except ValueError:
            return None
        return cls._providers.get(provider)

    @classmethod
    async def verify(
        cls, provider: SSOProvider | str, assertion: str
    ) -> VerifiedIdentity | None:
        """
        Verify an assertion with the matching provider.

        Returns:
            VerifiedIdentity | None: None for an unknown provider or an
            invalid assertion.
        """
        provider_cls = cls.get_provider(provider)
        if provider_cls is None:
            sso_logger.warning(f"Unsupported SSO provider: {provider}")
            return None
        return await provider_cls.verify(assertion)

    @classmethod
    async def init_all(cls) -> None:
        for provider_cls in cls._providers.values():
            await provider_cls.init()

    @classmethod
    async def aclose_all(cls) -> None:
        for provider_cls in cls._providers.values():
            await provider_cls.aclose()


__all__ = [
    "BaseSSOProvider",
    "FacebookSSOProvider",
    "GoogleSSOProvider",
    "JWKSCache",
    "SSOVerifier",
    "VerifiedIdentity",
]
