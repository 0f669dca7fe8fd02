"""
JWT Token Utility

HMAC-SHA256 signed tokens built on PyJWT. The caller's payload is stored as a
JSON string in the ``payload`` claim next to ``exp`` and ``createAt``
(both in epoch seconds).
"""

import json
import time
from typing import Any, Optional, Type, TypeVar

import jwt
from pydantic import BaseModel, Field, SecretStr, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from servicekit.core.config import settings
from servicekit.core.exceptions import (
    TokenExpiredError,
    TokenKeyError,
    TokenMissingFieldError,
    TokenPayloadError,
    TokenSignError,
    TokenVerifyError,
)
from servicekit.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ALGORITHM = "HS256"
SECONDS_PER_DAY = 24 * 60 * 60
REQUIRED_CLAIMS = ("exp", "payload")


class JwtConfig(BaseModel):
    """Signing secret and token lifetime."""

    secret: SecretStr = Field(..., description="HMAC signing secret")
    expire_days: int = Field(default=7, ge=0, description="Token lifetime in days")

    @classmethod
    def from_settings(cls) -> "JwtConfig":
        """Build the default config from ``settings`` (``SERVICEKIT_JWT__*``)."""
        return cls(secret=settings.jwt__secret, expire_days=settings.jwt__expire_days)


class JwtManager:
    """Issues and verifies tokens for one ``JwtConfig``."""

    def __init__(self, config: Optional[JwtConfig] = None) -> None:
        self.config = config or JwtConfig.from_settings()

    def _key(self) -> str:
        secret = self.config.secret.get_secret_value()
        if not secret:
            raise TokenKeyError("JWT secret must not be empty")
        return secret

    def generate_token(self, payload: Any) -> str:
        """
        Sign ``payload`` into a token.

        Args:
            payload: A pydantic model or any JSON-serializable value

        Returns:
            str: Encoded JWT

        Raises:
            TokenKeyError: If the secret is empty
            TokenPayloadError: If ``payload`` cannot be serialized
            TokenSignError: If signing fails
        """
        key = self._key()
        try:
            payload_json = to_json(payload).decode("utf-8")
        except PydanticSerializationError as e:
            raise TokenPayloadError.wrap(e, f"Failed to serialize token payload: {e}") from e

        now = int(time.time())
        claims = {
            "payload": payload_json,
            "exp": now + self.config.expire_days * SECONDS_PER_DAY,
            "createAt": now,
        }
        try:
            return jwt.encode(claims, key, algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error("Failed to sign JWT: %s", e)
            raise TokenSignError.wrap(e, f"Failed to sign token: {e}") from e

    def _decode_claims(self, token: str) -> dict:
        try:
            return jwt.decode(
                token,
                self._key(),
                algorithms=[ALGORITHM],
                options={"require": list(REQUIRED_CLAIMS)},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError.wrap(e, "Token has expired") from e
        except jwt.MissingRequiredClaimError as e:
            raise TokenMissingFieldError.wrap(
                e, f"Token is missing claim: {e.claim}", field=e.claim
            ) from e
        except jwt.PyJWTError as e:
            raise TokenVerifyError.wrap(e, f"Token verification failed: {e}") from e

    def verify_token(self, token: str, model: Optional[Type[T]] = None) -> Any:
        """
        Verify ``token`` and return its payload.

        Args:
            token: Encoded JWT
            model: Optional type to validate the payload into

        Returns:
            The decoded payload, validated into ``model`` when given

        Raises:
            TokenVerifyError: If the signature is wrong or the token is malformed
            TokenExpiredError: If ``exp`` is not in the future
            TokenMissingFieldError: If ``exp`` or ``payload`` is absent
            TokenPayloadError: If the payload does not decode (into ``model``)
        """
        claims = self._decode_claims(token)
        payload_json = claims["payload"]
        if not isinstance(payload_json, str):
            raise TokenPayloadError(
                "Token payload claim must be a JSON string",
                details={"type": type(payload_json).__name__},
            )
        try:
            if model is None:
                return json.loads(payload_json)
            return TypeAdapter(model).validate_json(payload_json)
        except (ValueError, ValidationError) as e:
            raise TokenPayloadError.wrap(e, f"Failed to decode token payload: {e}") from e

    def is_valid_token(self, token: str) -> bool:
        """Check signature and expiry without decoding the payload."""
        try:
            self._decode_claims(token)
        except (TokenVerifyError, TokenExpiredError, TokenMissingFieldError, TokenKeyError):
            return False
        return True


def generate_token(payload: Any, config: Optional[JwtConfig] = None) -> str:
    """Convenience function to sign ``payload`` (defaults to the settings config)."""
    return JwtManager(config).generate_token(payload)


def verify_token(
    token: str, model: Optional[Type[T]] = None, config: Optional[JwtConfig] = None
) -> Any:
    """Convenience function to verify ``token`` and decode its payload."""
    return JwtManager(config).verify_token(token, model)


def is_valid_token(token: str, config: Optional[JwtConfig] = None) -> bool:
    """Convenience function to check a token's signature and expiry."""
    return JwtManager(config).is_valid_token(token)
