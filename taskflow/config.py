"""Application configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Optional: callers may supply their own key per request.
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    anthropic_base_url: str = Field(default="https://api.anthropic.com", alias="ANTHROPIC_BASE_URL")
    database_path: Path = Field(default=Path("taskflow.db"), alias="DATABASE_PATH")
    request_timeout_seconds: float = Field(default=60.0, alias="REQUEST_TIMEOUT_SECONDS")
    max_tool_rounds: int = Field(default=10, alias="MAX_TOOL_ROUNDS")
    client_cache_size: int = Field(default=8, alias="CLIENT_CACHE_SIZE")
    chat_max_tokens: int = Field(default=1024, alias="CHAT_MAX_TOKENS")
    parser_max_tokens: int = Field(default=500, alias="PARSER_MAX_TOKENS")
    default_timezone: str = Field(default="UTC", alias="DEFAULT_TIMEZONE")


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()
