"""
Facebook Limited Login ID token verification.

Limited Login issues standard OIDC ID tokens signed with keys from the
``limited.facebook.com`` JWKS endpoint. Facebook only includes ``email`` when
the user granted the email permission; tokens without one are rejected.
"""

from typing import Any

from taskdesk.core.config import settings
from taskdesk.core.enums import SSOProvider
from taskdesk.core.services.sso.base import BaseSSOProvider, VerifiedIdentity


class FacebookSSOProvider(BaseSSOProvider):
    provider = SSOProvider.FACEBOOK
    jwks_url = "https://limited.facebook.com/.well-known/oauth/openid/jwks/"
    issuers = ("https://www.facebook.com",)

    @classmethod
    def audience(cls) -> str:
        return settings.FACEBOOK_APP_ID

    @classmethod
    def _build_identity(cls, claims: dict[str, Any]) -> VerifiedIdentity | None:
        email = claims.get("email")
        if not email or not isinstance(email, str):
            return None

        given_name = claims.get("given_name")
        family_name = claims.get("family_name")
        if not given_name and claims.get("name"):
            first, _, rest = str(claims["name"]).partition(" ")
            given_name = first
            family_name = family_name or rest

        return VerifiedIdentity(
            provider=cls.provider,
            subject=str(claims["sub"]),
            email=email.strip().lower(),
            given_name=given_name or None,
            family_name=family_name or None,
        )


__all__ = ["FacebookSSOProvider"]
