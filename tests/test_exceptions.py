import pytest

from servicekit.core.error_codes import (
    ConfigurationErrorCode,
    SnowflakeErrorCode,
    TokenErrorCode,
    get_error_category,
    get_error_info,
)
from servicekit.core.exceptions import (
    ApplicationException,
    ClockRollbackError,
    ConfigParseError,
    ConfigurationException,
    TokenVerifyError,
)


def test_concrete_exceptions_carry_default_codes() -> None:
    error = ClockRollbackError("clock moved backwards", details={"last_timestamp": 10})

    assert error.error_code is SnowflakeErrorCode.CLOCK_ROLLBACK
    assert error.category == "environment"
    assert isinstance(error, RuntimeError)
    assert str(error) == (
        "clock moved backwards [SNOWFLAKE_CLOCK_ROLLBACK] Details: {'last_timestamp': 10}"
    )


def test_wrap_preserves_cause_and_context() -> None:
    original = ValueError("bad yaml")
    try:
        try:
            raise original
        except ValueError as e:
            raise ConfigParseError.wrap(e, "Failed to parse", path="app.yaml") from e
    except ConfigParseError as wrapped:
        error = wrapped

    assert error.cause is original
    assert error.__cause__ is original
    assert error.details == {"path": "app.yaml"}

    data = error.to_dict()
    assert data["code"] == "CONFIGURATION_PARSE_FAILED"
    assert data["cause"] == {"type": "ValueError", "message": "bad yaml"}


def test_to_dict_falls_back_to_repr_for_unserializable_details() -> None:
    error = TokenVerifyError("nope").with_context(token=object(), attempt=2)

    data = error.to_dict()

    assert data["details"]["attempt"] == 2
    assert data["details"]["token"].startswith("<object object")
    assert "cause" not in data


def test_explicit_error_code_overrides_default() -> None:
    error = ConfigurationException("broken", error_code=ConfigurationErrorCode.FILE_NOT_FOUND)

    assert error.error_code is ConfigurationErrorCode.FILE_NOT_FOUND
    assert error.category == "environment"


def test_exception_without_code_is_internal() -> None:
    error = ApplicationException("unexpected")

    assert error.error_code is None
    assert error.category == "internal"
    assert str(error) == "unexpected"


@pytest.mark.parametrize(
    ("code", "category"),
    [
        (SnowflakeErrorCode.INVALID_WORKER_ID, "caller"),
        (TokenErrorCode.EXPIRED, "security"),
        ("TOKEN_SIGN_FAILED", "internal"),
        ("SNOWFLAKE_LOCK_ACQUISITION_FAILED", "environment"),
        ("UNKNOWN_CODE", "internal"),
    ],
)
def test_error_categories(code, category: str) -> None:
    assert get_error_category(code) == category


def test_error_info() -> None:
    assert get_error_info(TokenErrorCode.MISSING_FIELD) == {
        "error_code": "TOKEN_MISSING_FIELD",
        "category": "security",
    }
