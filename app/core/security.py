"""Password hashing and the token service: issue and verify access/refresh JWTs."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, NamedTuple

import bcrypt
import jwt
from pydantic import SecretStr

from app.core.config import settings

# Bcrypt cost factor.
BCRYPT_ROUNDS = 12

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

TokenType = Literal["access", "refresh"]


class TokenError(Exception):
    """Base class for token verification failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TokenExpiredError(TokenError):
    """Token signature is valid but exp is in the past."""


class TokenInvalidError(TokenError):
    """Token is malformed, has a bad signature, or a bad payload."""


class TokenWrongTypeError(TokenError):
    """Token carries a type other than the one expected (access vs refresh)."""


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def _secret_for(token_type: TokenType) -> SecretStr:
    if token_type == TOKEN_TYPE_REFRESH:
        return settings.refresh_secret
    return settings.JWT_SECRET


def _lifetime_for(token_type: TokenType) -> timedelta:
    if token_type == TOKEN_TYPE_REFRESH:
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def create_token(sub: str | int, token_type: TokenType, now: datetime | None = None) -> str:
    """Create a signed JWT with sub, type, iat, exp and a unique jti."""
    issued_at = now or datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(sub),
        "type": token_type,
        "iat": issued_at,
        "exp": issued_at + _lifetime_for(token_type),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(
        payload,
        _secret_for(token_type).get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def issue_token_pair(user_id: int) -> TokenPair:
    """Mint a fresh access token (short-lived) and refresh token (long-lived) for a user."""
    now = datetime.now(UTC)
    return TokenPair(
        access_token=create_token(user_id, TOKEN_TYPE_ACCESS, now=now),
        refresh_token=create_token(user_id, TOKEN_TYPE_REFRESH, now=now),
    )


def _verify(token: str, expected_type: TokenType) -> int:
    """
    Verify a token of the expected type and return its user id.

    The type claim is read before the signature check so that a token of the
    other kind fails with TokenWrongTypeError even when the secrets differ.
    """
    try:
        unverified = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise TokenInvalidError("Invalid token") from e
    if unverified.get("type") != expected_type:
        raise TokenWrongTypeError("Invalid token type")

    try:
        payload = jwt.decode(
            token,
            _secret_for(expected_type).get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError("Token expired") from e
    except jwt.PyJWTError as e:
        raise TokenInvalidError("Invalid token") from e

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenInvalidError("Invalid token payload") from e


def verify_access_token(token: str) -> int:
    """Return the user id of a valid access token. Raises TokenError subclasses."""
    return _verify(token, TOKEN_TYPE_ACCESS)


def verify_refresh_token(token: str) -> int:
    """Return the user id of a valid refresh token. Raises TokenError subclasses."""
    return _verify(token, TOKEN_TYPE_REFRESH)
