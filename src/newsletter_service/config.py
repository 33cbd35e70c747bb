# ABOUTME: Centralized configuration using Pydantic Settings.
# ABOUTME: Loads all settings from environment variables and .env file.

from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Email / SMTP (optional - only required when confirmation emails are sent)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: SecretStr | None = None
    smtp_password: SecretStr | None = None
    sender_email: str = "newsletter@example.com"
    sender_name: str = "Newsletter Service"
    bounce_email: str = "bounces@example.com"
    confirmation_email_subject: str = "Confirm your newsletter subscription"
    welcome_email_subject: str = "Subscription Confirmed & Unsubscribe Link"
    templates_dir: Path = PACKAGE_DIR / "email" / "templates"

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "newsletter"
    db_user: str = "newsletter"
    db_password: SecretStr | None = None
    db_pool_size: int = 5
    db_pool_max_overflow: int = 10
    database_url_override: str | None = None  # e.g. sqlite+aiosqlite:///./dev.db

    @property
    def database_url(self) -> str:
        """Build async PostgreSQL connection URL."""
        if self.database_url_override:
            return self.database_url_override
        password = self.db_password.get_secret_value() if self.db_password else ""
        return f"postgresql+asyncpg://{self.db_user}:{password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def database_url_sync(self) -> str:
        """Build sync connection URL (for Alembic)."""
        return make_sync_url(self.database_url)

    # Tokens
    confirm_token_ttl_hours: int = 24
    unsubscribe_token_ttl_days: int = 90

    # Subscriber listing
    default_page_limit: int = 10
    max_page_limit: int = 100

    # Deadline applied to every service operation
    operation_timeout_seconds: float = 10.0

    # Editor authentication (Firebase ID tokens)
    firebase_project_id: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"

    # Web / API
    app_base_url: str = "http://localhost:8080"  # Base URL for email links
    host: str = "0.0.0.0"
    port: int = 8080


def make_sync_url(url: str) -> str:
    """Strip the async driver from a SQLAlchemy URL."""
    return url.replace("+asyncpg", "").replace("+aiosqlite", "")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables and .env file.
    SMTP credentials are optional - only required for email sending.
    """
    return Settings()
