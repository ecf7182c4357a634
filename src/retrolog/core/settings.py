"""Application settings and configuration.

This module defines all configuration options for the RetroLog feed core.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="RetroLog", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Bearer token validation for authenticated principals
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Exact-match allow-list of verified emails that carry the admin role
    admin_emails: list[str] = Field(default_factory=list, alias="ADMIN_EMAILS")

    # Document store configuration
    database_url: str = Field(default="sqlite:///./retrolog.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    snapshot_poll_interval_seconds: float = Field(
        default=1.0,
        alias="SNAPSHOT_POLL_INTERVAL_SECONDS",
    )
    # How long writes wait for the authoritative snapshot to reflect them
    snapshot_settle_seconds: float = Field(default=2.0, alias="SNAPSHOT_SETTLE_SECONDS")
    messages_collection: str = Field(default="messages", alias="MESSAGES_COLLECTION")
    bans_collection: str = Field(default="banned_users", alias="BANS_COLLECTION")
    users_collection: str = Field(default="users", alias="USERS_COLLECTION")

    # Client write throttling
    send_cooldown_seconds: float = Field(default=15.0, alias="SEND_COOLDOWN_SECONDS")

    # Anonymous identity cookie
    anon_cookie_max_age_days: int = Field(default=365, alias="ANON_COOKIE_MAX_AGE_DAYS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("admin_emails")
    @classmethod
    def _strip_admin_emails(cls, value: list[str]) -> list[str]:
        # Comparison stays exact; only surrounding whitespace is dropped.
        return [email.strip() for email in value if email.strip()]

    @property
    def anon_cookie_max_age_seconds(self) -> int:
        """Return the anonymous identity cookie lifetime in seconds."""
        return self.anon_cookie_max_age_days * 24 * 60 * 60


settings = Settings()
