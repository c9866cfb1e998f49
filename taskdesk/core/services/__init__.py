from taskdesk.core.services.auth import AuthService
from taskdesk.core.services.brevo import BrevoService
from taskdesk.core.services.email_manager import EmailManagerService
from taskdesk.core.services.otp import OTPService
from taskdesk.core.services.rate_limit import (
    MemoryBackend,
    RateLimitBackend,
    RateLimiter,
    RateLimitResult,
    RedisBackend,
    format_rate_limit_key,
)
from taskdesk.core.services.redis_service import RedisService
from taskdesk.core.services.session import SessionTokenService
from taskdesk.core.services.template import Renderer
from taskdesk.core.services.token_version import (
    MemoryTokenVersionBackend,
    RedisTokenVersionBackend,
    TokenVersionBackend,
    TokenVersionRegistry,
)

# SSO providers
from taskdesk.core.services.sso import (
    BaseSSOProvider,
    FacebookSSOProvider,
    GoogleSSOProvider,
    SSOVerifier,
    VerifiedIdentity,
)

__all__ = [
    # Core services
    "AuthService",
    "BrevoService",
    "EmailManagerService",
    "OTPService",
    "RedisService",
    "Renderer",
    "SessionTokenService",
    # Rate limiting
    "MemoryBackend",
    "RateLimitBackend",
    "RateLimiter",
    "RateLimitResult",
    "RedisBackend",
    "format_rate_limit_key",
    # Token versions
    "MemoryTokenVersionBackend",
    "RedisTokenVersionBackend",
    "TokenVersionBackend",
    "TokenVersionRegistry",
    # SSO
    "BaseSSOProvider",
    "FacebookSSOProvider",
    "GoogleSSOProvider",
    "SSOVerifier",
    "VerifiedIdentity",
]
