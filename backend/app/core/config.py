"""Application configuration loaded from environment variables.

Settings for database, API, session cookies, one-time codes, rate limits,
and mail delivery. Uses pydantic-settings for validation and .env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Development-only database password; rejected in production
_INSECURE_DEFAULT_PASSWORD = "helpinghand_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Bounds for the numeric one-time code width
_MIN_CODE_LENGTH = 4
_MAX_CODE_LENGTH = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "helpinghand"
    database_user: str = "helpinghand_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    database_echo: bool = False

    # CORS. The browser client sends the session cookie, so no wildcard.
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session credential (signed cookie wrapping an opaque server-side session)
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "helpinghand-auth"
    auth_cookie_name: str = "helpinghand.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    session_ttl_hours: int = 24

    # One-time codes
    # otp_hash_secret keys the code hash; falls back to auth_secret when empty
    otp_hash_secret: SecretStr = SecretStr("")
    otp_code_length: int = 6
    otp_code_ttl_minutes: int = 10
    otp_max_verify_attempts: int = 5
    otp_issue_limit: int = 3
    otp_issue_window_minutes: int = 15
    otp_verify_limit: int = 10
    otp_verify_window_minutes: int = 15
    otp_retention_days: int = 30
    # Admin accounts sign in through /auth/admin/login unless this is enabled
    otp_admin_login_enabled: bool = False

    # Mail delivery
    mail_provider: Literal["resend", "mock"] = "resend"
    email_from: str = "Helping Hand Foundation <noreply@helpinghand.org>"
    resend_api_key: SecretStr = SecretStr("")
    mail_timeout_seconds: float = 10.0

    # Rate Limiting (per client address, on top of the per-email counters)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_send_code: str = "10/minute"
    rate_limit_verify_code: str = "20/minute"
    rate_limit_admin_login: str = "5/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def code_hash_key(self) -> bytes:
        """Key used to hash one-time codes before storage."""
        secret = (
            self.otp_hash_secret.get_secret_value()
            or self.auth_secret.get_secret_value()
        )
        return secret.encode()

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Reject unsafe or nonsensical settings at startup.

        - SameSite=None requires Secure flag (browser requirement)
        - One-time code parameters are within sane bounds (all environments)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if not _MIN_CODE_LENGTH <= self.otp_code_length <= _MAX_CODE_LENGTH:
            msg = (
                f"OTP_CODE_LENGTH must be between {_MIN_CODE_LENGTH} and "
                f"{_MAX_CODE_LENGTH}. Got: {self.otp_code_length}"
            )
            raise ValueError(msg)

        positive_fields = {
            "OTP_CODE_TTL_MINUTES": self.otp_code_ttl_minutes,
            "OTP_MAX_VERIFY_ATTEMPTS": self.otp_max_verify_attempts,
            "OTP_ISSUE_LIMIT": self.otp_issue_limit,
            "OTP_ISSUE_WINDOW_MINUTES": self.otp_issue_window_minutes,
            "OTP_VERIFY_LIMIT": self.otp_verify_limit,
            "OTP_VERIFY_WINDOW_MINUTES": self.otp_verify_window_minutes,
            "SESSION_TTL_HOURS": self.session_ttl_hours,
        }
        for name, value in positive_fields.items():
            if value < 1:
                msg = f"{name} must be at least 1. Got: {value}"
                raise ValueError(msg)

        if self.mail_timeout_seconds <= 0:
            msg = (
                "MAIL_TIMEOUT_SECONDS must be positive. "
                f"Got: {self.mail_timeout_seconds}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if not secret_value:
                msg = (
                    "AUTH_SECRET must be set in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

            if self.mail_provider == "mock":
                msg = "MAIL_PROVIDER=mock cannot be used in production."
                raise ValueError(msg)

        return self


settings = Settings()
