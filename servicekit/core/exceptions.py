"""
Custom Exceptions

Library-specific exception classes.

USAGE GUIDELINES:
- Always use ErrorCode enum members, not string literals
- Each concrete exception carries its own default error code
- Concrete exceptions also derive from the closest builtin exception, so
  callers may catch either ``SnowflakeException`` or ``ValueError``
- Use the wrap() class method to preserve exception chains when wrapping lower-level exceptions
"""

import json
from typing import Any, Dict, Optional

from servicekit.core.error_codes import (
    ConfigurationErrorCode,
    ErrorCode,
    LoggingErrorCode,
    SnowflakeErrorCode,
    TokenErrorCode,
    get_error_category,
)


def _safe_serialize(obj: Any) -> Any:
    """Safely serialize an object for JSON, using repr() for non-serializable objects."""
    try:
        json.dumps(obj)
        return obj
    except (TypeError, ValueError):
        return repr(obj)


class ApplicationException(Exception):
    """Base exception for servicekit errors."""

    default_error_code: Optional[ErrorCode] = None

    def __init__(
        self,
        message: str,
        error_code: Optional["ErrorCode | str"] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization with safe handling."""
        safe_details = {k: _safe_serialize(v) for k, v in self.details.items()}

        result = {
            "message": self.message,
            "code": (
                self.error_code.value
                if self.error_code is not None and hasattr(self.error_code, "value")
                else self.error_code
            ),
            "details": safe_details,
        }

        # Priority: custom cause > __cause__ > __context__
        cause = (
            self.cause
            or getattr(self, "__cause__", None)
            or getattr(self, "__context__", None)
        )
        if cause:
            result["cause"] = {"type": cause.__class__.__name__, "message": str(cause)}

        return result

    @classmethod
    def wrap(
        cls,
        exc: Exception,
        message: str,
        error_code: Optional["ErrorCode"] = None,
        **context: Any,
    ) -> "ApplicationException":
        """
        Wrap a lower-level exception into a library exception while preserving the exception chain.

        Args:
            exc: The original exception to wrap
            message: Library-level error message
            error_code: ErrorCode enum member (falls back to the class default)
            **context: Additional context to include in details

        Returns:
            New exception instance with preserved exception chain

        Example:
            try:
                path.read_text()
            except OSError as e:
                raise ConfigLoadError.wrap(e, "Failed to read config", path=str(path)) from e
        """
        return cls(message=message, error_code=error_code, details=context, cause=exc)

    def with_context(self, **kwargs: Any) -> "ApplicationException":
        """Add context details to the exception."""
        self.details.update(kwargs)
        return self

    def __str__(self) -> str:
        """String representation with error code and details."""
        parts = [self.message]
        if self.error_code:
            code_str = (
                self.error_code.value
                if hasattr(self.error_code, "value")
                else self.error_code
            )
            parts.append(f"[{code_str}]")
        if self.details:
            parts.append(f"Details: {self.details}")
        return " ".join(parts)

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r}, "
            f"cause={self.cause!r})"
        )

    @property
    def category(self) -> str:
        """Get the error category for this exception."""
        if self.error_code:
            return get_error_category(self.error_code)
        return "internal"


class ConfigurationException(ApplicationException):
    """Exception raised for configuration-related errors."""

    default_error_code = ConfigurationErrorCode.INVALID_CONFIG


class SnowflakeException(ApplicationException):
    """Exception raised by the Snowflake ID generator."""


class TokenException(ApplicationException):
    """Exception raised for JWT token errors."""


class LoggingException(ApplicationException):
    """Exception raised while bootstrapping service logging."""

    default_error_code = LoggingErrorCode.SETUP_FAILED


# Configuration loading


class ConfigLoadError(ConfigurationException):
    """Sources could not be assembled (unknown format, unreadable file)."""

    default_error_code = ConfigurationErrorCode.CONFIG_LOAD_FAILED


class ConfigFileNotFoundError(ConfigurationException, FileNotFoundError):
    """A required configuration file does not exist."""

    default_error_code = ConfigurationErrorCode.FILE_NOT_FOUND


class ConfigParseError(ConfigurationException, ValueError):
    """A configuration file has invalid syntax."""

    default_error_code = ConfigurationErrorCode.PARSE_FAILED


class ConfigValidationError(ConfigurationException, ValueError):
    """Merged configuration does not match the target model."""

    default_error_code = ConfigurationErrorCode.VALIDATION_FAILED


# Snowflake


class InvalidWorkerIdError(SnowflakeException, ValueError):
    """Worker id is outside [0, 1023]."""

    default_error_code = SnowflakeErrorCode.INVALID_WORKER_ID


class ClockRollbackError(SnowflakeException, RuntimeError):
    """The clock returned a time earlier than the last issued timestamp."""

    default_error_code = SnowflakeErrorCode.CLOCK_ROLLBACK


class TimestampOverflowError(SnowflakeException, OverflowError):
    """Elapsed time since the epoch does not fit in the timestamp field."""

    default_error_code = SnowflakeErrorCode.TIMESTAMP_OVERFLOW


class LockAcquisitionError(SnowflakeException, RuntimeError):
    """The generator lock could not be acquired."""

    default_error_code = SnowflakeErrorCode.LOCK_ACQUISITION_FAILED


class InvalidBatchSizeError(SnowflakeException, ValueError):
    """Batch size is not a non-negative integer."""

    default_error_code = SnowflakeErrorCode.INVALID_BATCH_SIZE


class InvalidLockTimeoutError(SnowflakeException, ValueError):
    """Lock timeout is not a finite, non-negative number of seconds."""

    default_error_code = SnowflakeErrorCode.INVALID_LOCK_TIMEOUT


class IdParseError(SnowflakeException, ValueError):
    """Text is not a decimal 64-bit unsigned identifier."""

    default_error_code = SnowflakeErrorCode.ID_PARSE_FAILED


class GeneratorInitError(SnowflakeException, RuntimeError):
    """The default generator could not be initialized."""

    default_error_code = SnowflakeErrorCode.INIT_FAILED


# Tokens


class TokenKeyError(TokenException, ValueError):
    """The signing secret is unusable."""

    default_error_code = TokenErrorCode.INVALID_KEY


class TokenSignError(TokenException):
    """The token could not be signed."""

    default_error_code = TokenErrorCode.SIGN_FAILED


class TokenVerifyError(TokenException):
    """Signature check failed or the token is malformed."""

    default_error_code = TokenErrorCode.VERIFY_FAILED


class TokenExpiredError(TokenException):
    """The token's ``exp`` claim is in the past."""

    default_error_code = TokenErrorCode.EXPIRED


class TokenMissingFieldError(TokenException):
    """A required claim is absent."""

    default_error_code = TokenErrorCode.MISSING_FIELD


class TokenPayloadError(TokenException, ValueError):
    """The payload claim could not be encoded or decoded."""

    default_error_code = TokenErrorCode.PAYLOAD_INVALID


# Logging


class LogDirectoryError(LoggingException, OSError):
    """The log directory could not be created."""

    default_error_code = LoggingErrorCode.DIRECTORY_CREATION_FAILED
