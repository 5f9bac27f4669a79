"""Application settings using Pydantic Settings for configuration management."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Email HTML Fetcher API"
    app_version: str = "3.2.0"
    log_level: str = "INFO"

    # API Server
    host: str = "0.0.0.0"
    port: int = 3000
    max_body_bytes: int = 10 * 1024 * 1024
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Deadlines (seconds). The session deadline closes the connection;
    # the request deadline answers the caller.
    request_timeout_seconds: float = 90.0
    session_timeout_seconds: float = 85.0

    # IMAP socket timeouts (seconds)
    auth_timeout_seconds: float = 15.0
    connection_timeout_seconds: float = 15.0

    @model_validator(mode="after")
    def _check_deadlines(self) -> "Settings":
        if self.session_timeout_seconds >= self.request_timeout_seconds:
            raise ValueError("session_timeout_seconds must be smaller than request_timeout_seconds")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
