"""
Utils Package

Snowflake IDs, JWT tokens and layered configuration loading.
"""

from .config_loader import (
    ConfigBuilder,
    ConfigFormat,
    ConfigManager,
    auto_load_config,
    get_config_paths,
    load_config,
    load_config_with_env,
)
from .jwt_token import (
    JwtConfig,
    JwtManager,
    generate_token,
    is_valid_token,
    verify_token,
)
from .snowflake_generator import (
    SnowflakeConfig,
    SnowflakeGenerator,
    SnowflakeIdInfo,
    decode_id,
    generate_id,
    generate_ids,
    generate_string_id,
    get_snowflake_generator,
    parse_id,
    parse_string_id,
    reset_snowflake_generator,
)

# Utils package exports - only utilities from this package
__all__ = [
    "ConfigBuilder",
    "ConfigFormat",
    "ConfigManager",
    "auto_load_config",
    "get_config_paths",
    "load_config",
    "load_config_with_env",
    "JwtConfig",
    "JwtManager",
    "generate_token",
    "verify_token",
    "is_valid_token",
    "SnowflakeConfig",
    "SnowflakeGenerator",
    "SnowflakeIdInfo",
    "decode_id",
    "get_snowflake_generator",
    "reset_snowflake_generator",
    "generate_id",
    "generate_ids",
    "parse_id",
    "generate_string_id",
    "parse_string_id",
]
