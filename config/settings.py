"""
Configuration settings for the E-Manager AI backend.
All sensitive values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "E-Manager AI"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False)
    environment: str = Field(default="production")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database (PostgreSQL)
    database_url: str = Field(default="")
    database_echo: bool = Field(default=False)
    db_pool_size: int = Field(default=10)
    db_max_overflow: int = Field(default=20)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    # DeepSeek AI (OpenAI-compatible API)
    deepseek_api_key: str = Field(default="")
    deepseek_base_url: str = Field(default="https://api.deepseek.com/v1")
    deepseek_model: str = Field(default="deepseek-chat")
    llm_timeout_seconds: float = Field(default=60.0)

    # Google Calendar / Meet
    google_credentials_json: str = Field(default="")
    google_calendar_id: str = Field(default="primary")

    # Fallback timezone when a request does not carry a valid one
    timezone: str = Field(default="UTC")

    # AI assistant behaviour
    insight_staleness_minutes: int = Field(default=60)
    max_insights: int = Field(default=5)
    attendance_history_days: int = Field(default=30)
    meeting_duration_minutes: int = Field(default=60)
    meeting_link_placeholder: str = Field(default="Link will be shared soon")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
