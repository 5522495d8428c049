"""
Application settings using Pydantic Settings.

Loads configuration from environment variables and .env file.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation and defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    environment: str = Field(default="development", alias="ENV", description="Runtime environment")
    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="", description="Optional log file path")

    # Security
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated CORS origins",
    )
    jwt_secret: str = Field(
        default="INSECURE_DEFAULT_CHANGE_ME",
        min_length=16,
        description="Shared secret used to verify platform-issued access tokens",
    )
    jwt_access_ttl_seconds: int = Field(
        default=3600, ge=60, description="Access token TTL in seconds"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./data/garage.db", description="Database connection URL"
    )

    # AI admission
    ai_rate_limit_window_seconds: float = Field(
        default=60, gt=0, description="Length of the per-garage AI rate limit window"
    )
    ai_rate_limit_max_requests: int = Field(
        default=10, ge=1, description="AI requests allowed per garage per window"
    )
    ai_quota_fail_open: bool = Field(
        default=False,
        description="Admit AI requests when the monthly quota cannot be read",
    )

    # AI provider
    ai_timeout_seconds: float = Field(
        default=30, gt=0, le=300, description="Timeout for a single AI provider call"
    )
    ai_max_retries: int = Field(
        default=1, ge=0, le=5, description="Retries after a failed AI provider call"
    )
    openai_compat_base_url: str = Field(
        default="", description="OpenAI-compatible API base URL"
    )
    openai_compat_api_key: str = Field(
        default="", description="OpenAI-compatible API key"
    )
    openai_compat_model: str = Field(
        default="gpt-4o-mini", description="Model used for AI features"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        insecure = {"INSECURE_DEFAULT_CHANGE_ME", "CHANGE_ME_IN_PRODUCTION"}
        return not self.debug and self.jwt_secret not in insecure

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
