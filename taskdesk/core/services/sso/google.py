"""
Google Sign-In ID token verification.

Google signs ID tokens with rotating RSA keys published at its OAuth2 certs
endpoint. A token is only accepted for an address Google itself has verified.
"""

from typing import Any

from taskdesk.core.config import settings
from taskdesk.core.enums import SSOProvider
from taskdesk.core.services.sso.base import BaseSSOProvider, VerifiedIdentity


class GoogleSSOProvider(BaseSSOProvider):
    provider = SSOProvider.GOOGLE
    jwks_url = "https://www.googleapis.com/oauth2/v3/certs"
    issuers = ("accounts.google.com", "https://accounts.google.com")

    @classmethod
    def audience(cls) -> str:
        return settings.GOOGLE_CLIENT_ID

    @classmethod
    def _build_identity(cls, claims: dict[str, Any]) -> VerifiedIdentity | None:
        email = claims.get("email")
        email_verified = claims.get("email_verified")
        # Google sometimes serialises the flag as a string
        if email_verified is not True and str(email_verified).lower() != "true":
            return None
        if not email or not isinstance(email, str):
            return None

        return VerifiedIdentity(
            provider=cls.provider,
            subject=str(claims["sub"]),
            email=email.strip().lower(),
            given_name=claims.get("given_name"),
            family_name=claims.get("family_name"),
        )


__all__ = ["GoogleSSOProvider"]
