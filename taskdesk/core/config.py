from functools import lru_cache
import logging
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskdesk.core.logger import init_sentry, setup_logger


_PACKAGE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, test, production
    API_DOMAIN: str = "http://localhost:8000"
    APP_NAME: str = "TaskDesk"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
TaskDesk is a task-management service. This API exposes its authentication core:

| Area | Description |
|------|-------------|
| **Signup** | Email/password signup with a 6-digit OTP sent by email. |
| **Login** | Email/password login and SSO login (Google, Facebook) returning a bearer token. |
| **Sessions** | Stateless JWT sessions revoked through a per-user token epoch. |

Protected endpoints require `Authorization: Bearer <token>`.
"""
    DEBUG: bool = False
    LOG_DIR: str = "logs"

    # CORS settings
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # JWT / session token settings
    JWT_SECRET_KEY: str = "another_supersecret_key"
    JWT_ALGORITHM: str = "HS256"
    SESSION_TOKEN_TTL_OTP_MINUTES: int = 10
    SESSION_TOKEN_TTL_LOGIN_DAYS: int = 7

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./taskdesk.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    AUTO_CREATE_TABLES: bool = True

    # Redis settings (empty disables Redis)
    REDIS_URL: str = ""

    # Token version registry
    TOKEN_VERSION_BACKEND: Literal["memory", "redis"] = "memory"

    # Rate limiting settings
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = "memory"

    # OTP settings
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 10
    OTP_HMAC_SECRET: str = "otp_hmac_secret_key_change_in_production"
    OTP_RATE_LIMIT_REQUESTS: int = 30
    OTP_RATE_LIMIT_WINDOW_SECONDS: float = 1.0

    # Password hashing
    BCRYPT_ROUNDS: int = 12

    # SSO settings
    GOOGLE_CLIENT_ID: str = ""
    FACEBOOK_APP_ID: str = ""
    SSO_JWKS_CACHE_SECONDS: int = 3600
    SSO_JWKS_MIN_REFRESH_SECONDS: float = 30.0
    SSO_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Brevo settings
    BREVO_API_KEY: str = "your_brevo_api_key"
    BREVO_BASE_URL: str = "https://api.brevo.com/v3"
    BREVO_SENDER_EMAIL: str = "noreply@example.com"
    BREVO_SENDER_NAME: str = "No Reply"

    # Email templates
    TEMPLATES_DIR: str = str(_PACKAGE_DIR / "templates")

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        """Ensure insecure default secrets are overridden in production."""
        if self.ENVIRONMENT != "production":
            return self

        insecure_defaults: dict[str, str] = {
            "JWT_SECRET_KEY": "another_supersecret_key",
            "OTP_HMAC_SECRET": "otp_hmac_secret_key_change_in_production",
            "BREVO_API_KEY": "your_brevo_api_key",
        }

        still_default = [
            name
            for name, default_val in insecure_defaults.items()
            if getattr(self, name) == default_val
        ]

        if still_default:
            raise ValueError(
                f"ENVIRONMENT is 'production' but the following secrets still "
                f"have their insecure default values: {', '.join(still_default)}. "
                f"Set them via environment variables or .env file."
            )

        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )


def _component_logger(name: str, sentry_tag: str) -> logging.Logger:
    return setup_logger(
        name=f"{name}_logger",
        log_file=f"{name}.log",
        level=logging.INFO,
        sentry_tag=sentry_tag,
        log_dir=settings.LOG_DIR,
    )


app_logger = _component_logger("app", "app")
database_logger = _component_logger("database", "database")
request_logger = _component_logger("requests", "request")
auth_logger = _component_logger("auth", "auth")
otp_logger = _component_logger("otp", "otp")
session_logger = _component_logger("session", "session")
sso_logger = _component_logger("sso", "sso")
redis_logger = _component_logger("redis", "redis")
rate_limit_logger = _component_logger("rate_limit", "rate_limit")
brevo_logger = _component_logger("brevo", "email")
email_manager_logger = _component_logger("email_manager", "email_manager")
utils_logger = _component_logger("utils", "utils")

__all__ = [
    "settings",
    "get_settings",
    "app_logger",
    "database_logger",
    "request_logger",
    "auth_logger",
    "otp_logger",
    "session_logger",
    "sso_logger",
    "redis_logger",
    "rate_limit_logger",
    "brevo_logger",
    "email_manager_logger",
    "utils_logger",
]
