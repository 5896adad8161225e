"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Docket Notify")
    app_env: str = Field(default="development")
    debug: bool = Field(default=False)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/docket_notify",
        description="PostgreSQL connection URL with asyncpg driver",
    )

    # For testing with SQLite
    test_database_url: str = Field(
        default="sqlite+aiosqlite:///./test.db",
        description="Test database URL",
    )

    # Engine
    scheduler_enabled: bool = Field(
        default=True,
        description="Start the polling loop and briefing timers on startup",
    )
    tick_interval_seconds: float = Field(default=60.0, gt=0)
    timezone: str = Field(
        default="Europe/Berlin",
        description="Local wall clock used for quiet hours and briefings",
    )
    dedup_window_hours: int = Field(default=24, ge=1)
    retry_base_backoff_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    snapshot_max_entries: int = Field(
        default=4000,
        description="Cap on persisted dedup keys per map",
    )

    # Inbound case data
    case_service_url: str = Field(
        default="",
        description="Base URL of the case service exposing GET /snapshot",
    )
    case_service_timeout_seconds: float = Field(default=10.0, gt=0)

    # Channels
    chat_webhook_url: str = Field(
        default="",
        description="Workflow webhook receiving chat (messenger) dispatches",
    )
    push_webhook_url: str = Field(default="", description="Push gateway webhook")
    sms_webhook_url: str = Field(default="", description="SMS gateway webhook")
    webhook_timeout_seconds: float = Field(default=10.0, gt=0)
    sendgrid_api_key: str = Field(
        default="",
        description="SendGrid API key for transactional email (keep secret)",
    )
    email_sender_address: str = Field(default="notifications@example.com")
    email_sender_name: str = Field(default="Docket Notify")
    email_subject_prefix: str = Field(default="[Docket]")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses the asyncpg driver scheme.

        Hosting providers supply a standard ``postgresql://`` URL.
        SQLAlchemy's async engine requires ``postgresql+asyncpg://``.
        """
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable/disable rate limiting (disable for tests)",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed origins",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
