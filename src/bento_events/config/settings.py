"""
Module: settings.py
Description: Pipeline configuration using pydantic-settings.

Configures queues, tables, retry policy, gateway guard and transport
settings from environment variables with validation and defaults.
Supports .env files for local development.

Configuration is hot-reloadable: components hold a settings provider
(normally get_settings) and read it on every operation, so a call to
reload_settings() takes effect on the next tick.
"""

import re
from typing import Callable

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="Bento Events", description="Application name")
    app_version: str = Field(default="0.3.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level")

    # AWS settings
    aws_region: str = Field(default="us-east-1", description="AWS region")
    stage: str = Field(default="dev", description="Deployment stage")

    # SQS settings
    event_queue_url: str = Field(
        default="",
        description="URL of the SQS work queue holding pending events"
    )
    dead_letter_queue_url: str = Field(
        default="",
        description="URL of the SQS queue holding permanently failed events"
    )
    queue_visibility_timeout: int = Field(
        default=60,
        ge=0,
        le=43200,
        description="Seconds a claimed item stays hidden from other workers"
    )

    # DynamoDB settings
    cache_table_name: str = Field(
        default="bento-events-cache",
        description="DynamoDB table backing rate limit and circuit breaker state"
    )
    scheduled_retries_table_name: str = Field(
        default="bento-events-scheduled-retries",
        description="DynamoDB table holding scheduled retry records"
    )

    # Retry settings
    max_attempts: int = Field(default=3, ge=1, description="Delivery attempts before dead-lettering")
    base_delay: int = Field(default=60, ge=0, description="Backoff base delay in seconds")
    max_delay: int = Field(default=300, ge=0, description="Backoff ceiling in seconds")
    dead_letter_retention: int = Field(
        default=2592000,
        ge=0,
        description="Seconds dead-lettered events are kept (0 keeps them forever)"
    )

    # Gateway guard settings
    enable_rate_limiting: bool = Field(default=True)
    max_requests_per_minute: int = Field(default=60, ge=1)
    max_requests_per_hour: int = Field(default=1000, ge=1)
    enable_circuit_breaker: bool = Field(default=True)
    circuit_breaker_failure_threshold: int = Field(default=5, ge=1)
    circuit_breaker_timeout: int = Field(
        default=300,
        ge=1,
        description="Seconds the breaker stays open before calls are let through"
    )

    # Delivery settings
    bento_api_base_url: str = Field(
        default="https://app.bentonow.com/api/v1/",
        description="Base URL of the Bento API"
    )
    bento_site_uuid: str = Field(default="", description="Bento site UUID")
    bento_publishable_key: str = Field(default="", description="Bento publishable key")
    bento_secret_key: str = Field(default="", description="Bento secret key")
    request_timeout: int = Field(default=30, ge=1, le=120)
    connection_timeout: int = Field(default=10, ge=1, le=60)
    direct_send_timeout: int = Field(
        default=10,
        ge=1,
        le=60,
        description="Request timeout for the synchronous fallback send"
    )

    # Worker settings
    worker_batch_size: int = Field(default=50, ge=1, description="Items drained per tick")
    worker_time_limit: int = Field(default=60, ge=1, description="Seconds a drain may run")

    @field_validator('cache_table_name', 'scheduled_retries_table_name')
    @classmethod
    def validate_table_names(cls, v: str) -> str:
        """Validate DynamoDB table names."""
        if not v or not isinstance(v, str):
            raise ValueError("Table name must be a non-empty string")

        if not re.match(r'^[a-zA-Z0-9_.-]+$', v):
            raise ValueError(
                "Table name must contain only letters, numbers, dots, hyphens, and underscores"
            )

        return v

    @field_validator('bento_api_base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an HTTP(S) base URL, normalized to end with a slash."""
        if not v or not v.startswith(('http://', 'https://')):
            raise ValueError("bento_api_base_url must be a valid HTTP/HTTPS URL")
        return v.rstrip('/') + '/'

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()


SettingsProvider = Callable[[], Settings]

# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the currently active settings."""
    return settings


def reload_settings() -> Settings:
    """Rebuild settings from the environment and make them active."""
    global settings
    settings = Settings()
    return settings
