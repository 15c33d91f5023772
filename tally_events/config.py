"""Configuration management using Pydantic Settings."""

import os

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Only load .env file in development (not Lambda/production)
        env_file=".env" if os.getenv("AWS_EXECUTION_ENV") is None else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Tinybird (analytics warehouse)
    tinybird_api_url: str | None = None
    tinybird_events_token: str | None = None
    tinybird_events_datasource: str = "events"
    tinybird_wait: bool = True
    tinybird_max_attempts: int = 3
    tinybird_base_delay_ms: int = 200
    tinybird_timeout_seconds: float = 10.0

    # Project activity cache
    project_cache_ttl_ms: int = 30_000

    # AWS Configuration
    aws_region: str = "us-east-2"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None

    @field_validator(
        "tinybird_api_url",
        "tinybird_events_token",
        "aws_access_key_id",
        "aws_secret_access_key",
        "aws_session_token",
        mode="before",
    )
    @classmethod
    def convert_empty_string_to_none(cls, v):
        """Treat blank values as unset."""
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    # DynamoDB Configuration
    dynamodb_endpoint_url: str | None = None
    dynamodb_table_projects: str = "tally-projects"

    # Application Configuration
    log_level: str = "INFO"
    api_title: str = "Tally Events API"
    api_version: str = "1.0.0"

    # API Limits
    max_request_size_bytes: int = 64 * 1024  # 64KB, ten events with headroom


# Global settings instance
settings = Settings()
