"""
Error Codes

Standardized error codes for servicekit.
"""

from enum import StrEnum
from types import MappingProxyType
from typing import Any, Dict, Mapping


class ErrorCode(StrEnum):
    """Base error code enum (string-based)."""


class ConfigurationErrorCode(ErrorCode):
    """Configuration-related error codes."""

    INVALID_CONFIG = "CONFIGURATION_INVALID_CONFIG"
    CONFIG_LOAD_FAILED = "CONFIGURATION_LOAD_FAILED"
    FILE_NOT_FOUND = "CONFIGURATION_FILE_NOT_FOUND"
    PARSE_FAILED = "CONFIGURATION_PARSE_FAILED"
    VALIDATION_FAILED = "CONFIGURATION_VALIDATION_FAILED"


class SnowflakeErrorCode(ErrorCode):
    """Snowflake ID generator error codes."""

    INVALID_WORKER_ID = "SNOWFLAKE_INVALID_WORKER_ID"
    INIT_FAILED = "SNOWFLAKE_INIT_FAILED"
    CLOCK_ROLLBACK = "SNOWFLAKE_CLOCK_ROLLBACK"
    TIMESTAMP_OVERFLOW = "SNOWFLAKE_TIMESTAMP_OVERFLOW"
    LOCK_ACQUISITION_FAILED = "SNOWFLAKE_LOCK_ACQUISITION_FAILED"
    INVALID_BATCH_SIZE = "SNOWFLAKE_INVALID_BATCH_SIZE"
    INVALID_LOCK_TIMEOUT = "SNOWFLAKE_INVALID_LOCK_TIMEOUT"
    ID_PARSE_FAILED = "SNOWFLAKE_ID_PARSE_FAILED"


class TokenErrorCode(ErrorCode):
    """JWT token error codes."""

    INVALID_KEY = "TOKEN_INVALID_KEY"
    SIGN_FAILED = "TOKEN_SIGN_FAILED"
    VERIFY_FAILED = "TOKEN_VERIFY_FAILED"
    EXPIRED = "TOKEN_EXPIRED"
    MISSING_FIELD = "TOKEN_MISSING_FIELD"
    PAYLOAD_INVALID = "TOKEN_PAYLOAD_INVALID"


class LoggingErrorCode(ErrorCode):
    """Logging bootstrap error codes."""

    DIRECTORY_CREATION_FAILED = "LOGGING_DIRECTORY_CREATION_FAILED"
    SETUP_FAILED = "LOGGING_SETUP_FAILED"


# Error code to category mapping
#
# CONVENTIONS FOR ADDING NEW ERROR CODES:
# 1. Error code names should be descriptive and use UPPER_SNAKE_CASE
# 2. Error code values MUST include domain prefixes for global uniqueness:
#    - CONFIGURATION_*, SNOWFLAKE_*, TOKEN_*, LOGGING_*
# 3. Always add the corresponding category in this dictionary
# 4. Category guidelines:
#    - "caller": the input or configuration supplied by the caller is invalid
#    - "environment": the host (clock, filesystem) misbehaved; retry may help
#    - "security": signature, key or expiry problems
#    - "internal": unexpected library failure
#
ERROR_CATEGORY_MAP: Mapping[ErrorCode, str] = MappingProxyType(
    {
        # Configuration errors
        ConfigurationErrorCode.INVALID_CONFIG: "caller",
        ConfigurationErrorCode.CONFIG_LOAD_FAILED: "caller",
        ConfigurationErrorCode.FILE_NOT_FOUND: "environment",
        ConfigurationErrorCode.PARSE_FAILED: "caller",
        ConfigurationErrorCode.VALIDATION_FAILED: "caller",
        # Snowflake errors
        SnowflakeErrorCode.INVALID_WORKER_ID: "caller",
        SnowflakeErrorCode.INIT_FAILED: "internal",
        SnowflakeErrorCode.CLOCK_ROLLBACK: "environment",
        SnowflakeErrorCode.TIMESTAMP_OVERFLOW: "caller",
        SnowflakeErrorCode.LOCK_ACQUISITION_FAILED: "environment",
        SnowflakeErrorCode.INVALID_BATCH_SIZE: "caller",
        SnowflakeErrorCode.INVALID_LOCK_TIMEOUT: "caller",
        SnowflakeErrorCode.ID_PARSE_FAILED: "caller",
        # Token errors
        TokenErrorCode.INVALID_KEY: "security",
        TokenErrorCode.SIGN_FAILED: "internal",
        TokenErrorCode.VERIFY_FAILED: "security",
        TokenErrorCode.EXPIRED: "security",
        TokenErrorCode.MISSING_FIELD: "security",
        TokenErrorCode.PAYLOAD_INVALID: "caller",
        # Logging errors
        LoggingErrorCode.DIRECTORY_CREATION_FAILED: "environment",
        LoggingErrorCode.SETUP_FAILED: "internal",
    }
)


def _get_category_for_string(error_code_str: str) -> str:
    """Helper function to get category for string error code."""
    for code in ERROR_CATEGORY_MAP:
        if code.value == error_code_str:
            return ERROR_CATEGORY_MAP[code]
    return "internal"


def get_error_category(error_code: ErrorCode | str) -> str:
    """
    Get the category for an error code.

    Args:
        error_code: Error code enum or string

    Returns:
        Category name (defaults to "internal" if not found)
    """
    if isinstance(error_code, ErrorCode):
        return ERROR_CATEGORY_MAP.get(error_code, "internal")
    return _get_category_for_string(error_code)


def get_error_info(error_code: ErrorCode | str) -> Dict[str, Any]:
    """
    Get error information including its category.

    Args:
        error_code: Error code enum or string

    Returns:
        Dictionary with error information
    """
    code_value = error_code.value if isinstance(error_code, ErrorCode) else error_code
    return {"error_code": code_value, "category": get_error_category(error_code)}
