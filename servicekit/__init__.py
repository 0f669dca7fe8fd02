"""
servicekit Package

Backend service conveniences: layered configuration loading, JWT tokens,
Snowflake IDs and service logging bootstrap.
"""

__version__ = "0.1.0"

# ruff: noqa: F401  # All imports are re-exported via __all__

from .core.exceptions import ApplicationException
from .core.logger import LogConfig, LoggingHandles, start_service_logging
from .utils.config_loader import (
    ConfigBuilder,
    ConfigFormat,
    ConfigManager,
    auto_load_config,
    get_config_paths,
    load_config,
    load_config_with_env,
)
from .utils.jwt_token import (
    JwtConfig,
    JwtManager,
    generate_token,
    is_valid_token,
    verify_token,
)
from .utils.snowflake_generator import (
    SnowflakeConfig,
    SnowflakeGenerator,
    SnowflakeIdInfo,
    generate_id,
    generate_ids,
    generate_string_id,
    parse_id,
    parse_string_id,
)

__all__ = [
    "__version__",
    # Errors
    "ApplicationException",
    # Logging
    "LogConfig",
    "LoggingHandles",
    "start_service_logging",
    # Configuration
    "ConfigBuilder",
    "ConfigFormat",
    "ConfigManager",
    "auto_load_config",
    "get_config_paths",
    "load_config",
    "load_config_with_env",
    # Tokens
    "JwtConfig",
    "JwtManager",
    "generate_token",
    "verify_token",
    "is_valid_token",
    # Snowflake
    "SnowflakeConfig",
    "SnowflakeGenerator",
    "SnowflakeIdInfo",
    "generate_id",
    "generate_ids",
    "parse_id",
    "generate_string_id",
    "parse_string_id",
]
