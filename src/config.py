"""Application configuration using pydantic-settings."""

from datetime import timedelta
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Settings loaded from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Environment = Environment.DEVELOPMENT
    debug: bool = True
    log_level: str = "INFO"

    # Claude: direct API, or AWS Bedrock when BEDROCK_ENABLED
    anthropic_api_key: str | None = None
    claude_model: str | None = None  # overrides the default model id
    claude_timeout: float = Field(default=120.0, gt=0)  # seconds, large pages are slow
    claude_max_retries: int = Field(default=2, ge=0)
    bedrock_enabled: bool = False
    bedrock_region: str = "us-east-1"
    bedrock_model_id: str = "anthropic.claude-3-5-sonnet-20241022-v2:0"

    # Langfuse tracing, off unless both keys are set
    langfuse_secret_key: str | None = None
    langfuse_public_key: str | None = None
    langfuse_base_url: str = "https://cloud.langfuse.com"

    # CORS origin outside development
    frontend_url: str = "http://localhost:3000"

    # Browser
    playwright_headless: bool = True
    playwright_slow_mo: int = Field(default=0, ge=0, le=1000)  # ms between actions
    browser_timeout: int = Field(default=30000, ge=5000, le=120000)  # ms

    # Form template cache
    template_cache_path: str = "./data/form_template_cache.json"
    template_cache_ttl_days: int = Field(default=30, ge=1)
    template_cache_max_fail_count: int = Field(default=3, ge=1)

    # Autofill
    max_autofill_attempts: int = Field(default=3, ge=1, le=10)  # retries per session
    analysis_html_max_length: int = Field(default=80000, ge=1000)  # chars sent to Claude

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.app_env == Environment.DEVELOPMENT

    @property
    def langfuse_configured(self) -> bool:
        return bool(self.langfuse_secret_key and self.langfuse_public_key)

    @property
    def template_cache_ttl(self) -> timedelta:
        return timedelta(days=self.template_cache_ttl_days)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience access
settings = get_settings()
