"""
Core Package

Configuration, error handling and logging shared by every servicekit module.
"""

# ruff: noqa: F401  # All imports are re-exported via __all__

from .config import DEFAULT_EPOCH_MILLIS, Settings, settings  # noqa: F401
from .error_codes import (  # noqa: F401
    ERROR_CATEGORY_MAP,
    ConfigurationErrorCode,
    ErrorCode,
    LoggingErrorCode,
    SnowflakeErrorCode,
    TokenErrorCode,
    get_error_category,
    get_error_info,
)
from .exceptions import (  # noqa: F401
    ApplicationException,
    ClockRollbackError,
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigParseError,
    ConfigurationException,
    ConfigValidationError,
    GeneratorInitError,
    IdParseError,
    InvalidBatchSizeError,
    InvalidWorkerIdError,
    InvalidLockTimeoutError,
    LockAcquisitionError,
    LogDirectoryError,
    LoggingException,
    SnowflakeException,
    TimestampOverflowError,
    TokenException,
    TokenExpiredError,
    TokenKeyError,
    TokenMissingFieldError,
    TokenPayloadError,
    TokenSignError,
    TokenVerifyError,
)
from .logger import (  # noqa: F401
    LogConfig,
    LoggingHandles,
    get_logger,
    setup_logging,
    start_service_logging,
)

__all__ = [
    # Configuration
    "DEFAULT_EPOCH_MILLIS",
    "Settings",
    "settings",
    # Error codes
    "ErrorCode",
    "ConfigurationErrorCode",
    "SnowflakeErrorCode",
    "TokenErrorCode",
    "LoggingErrorCode",
    "ERROR_CATEGORY_MAP",
    "get_error_category",
    "get_error_info",
    # Exceptions
    "ApplicationException",
    "ConfigurationException",
    "ConfigLoadError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    "SnowflakeException",
    "InvalidWorkerIdError",
    "ClockRollbackError",
    "TimestampOverflowError",
    "LockAcquisitionError",
    "InvalidBatchSizeError",
    "InvalidLockTimeoutError",
    "IdParseError",
    "GeneratorInitError",
    "TokenException",
    "TokenKeyError",
    "TokenSignError",
    "TokenVerifyError",
    "TokenExpiredError",
    "TokenMissingFieldError",
    "TokenPayloadError",
    "LoggingException",
    "LogDirectoryError",
    # Logger
    "get_logger",
    "setup_logging",
    "LogConfig",
    "LoggingHandles",
    "start_service_logging",
]
