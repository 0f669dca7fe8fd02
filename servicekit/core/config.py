"""
Configuration

Library settings and environment configuration for servicekit.
"""

from typing import Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from servicekit.core.error_codes import ConfigurationErrorCode
from servicekit.core.exceptions import ConfigurationException

# Twitter epoch, 2010-11-04T01:42:54.657Z
DEFAULT_EPOCH_MILLIS = 1288834974657


class Settings(BaseSettings):
    """
    Library configuration settings.

    Supports both environment variables and .env file loading.
    Environment variables take precedence over .env file values, and every
    variable is prefixed with ``SERVICEKIT_`` (e.g. ``SERVICEKIT_SNOWFLAKE__WORKER_ID``).
    """

    # Library logging
    log_level: str = Field(
        default="warning", description="Log level (debug, info, warning, error)"
    )
    log__console: bool = Field(
        default=False,
        description="Attach a console handler to the servicekit logger",
    )
    log__dir: str = Field(
        default="logs", description="Base directory for service log files"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level."""
        allowed_levels = {"debug", "info", "warning", "error"}
        normalized = v.lower().strip()
        if normalized not in allowed_levels:
            raise ValueError(
                f"log_level must be one of {sorted(allowed_levels)}, got '{v}'"
            )
        return normalized

    # Default Snowflake generator
    snowflake__worker_id: int = Field(
        default=1, description="Worker id of the process-wide default generator"
    )
    snowflake__epoch: Optional[int] = Field(
        default=None,
        description="Custom epoch in milliseconds; unset uses the Twitter epoch",
    )

    # JWT defaults
    jwt__secret: SecretStr = Field(
        default=SecretStr("default_jwt_secret"), description="HMAC signing secret"
    )
    jwt__expire_days: int = Field(
        default=7, ge=0, description="Token lifetime in days"
    )

    model_config = SettingsConfigDict(
        env_prefix="SERVICEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        env_nested_delimiter="__",
    )


def create_settings() -> Settings:
    """
    Create and validate settings instance.

    Returns:
        Settings: Configured settings instance

    Raises:
        ConfigurationException: If configuration validation fails
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationException.wrap(
            e,
            f"servicekit settings are invalid: {e.error_count()} error(s)",
            ConfigurationErrorCode.INVALID_CONFIG,
            errors=[err["loc"] for err in e.errors()],
        ) from e


# Global configuration instance
settings = create_settings()
