"""Request/response schemas for auth and user profile endpoints."""

import re
from datetime import datetime

from pydantic import Field, field_validator

from app.schemas.common import CamelModel, ensure_utc

NAME_MIN_LEN = 2
NAME_MAX_LEN = 50
EMAIL_MAX_LEN = 100
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_SPECIALS = "@$!%*?&"


def _validate_name(v: str) -> str:
    v = v.strip()
    if not (NAME_MIN_LEN <= len(v) <= NAME_MAX_LEN):
        raise ValueError(f"Name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters")
    if not NAME_PATTERN.match(v):
        raise ValueError("Name can only contain letters and spaces")
    return v


def _validate_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Please enter a valid email address")
    if len(v) > EMAIL_MAX_LEN:
        raise ValueError(f"Email cannot exceed {EMAIL_MAX_LEN} characters")
    return v


class SignupRequest(CamelModel):
    """Payload for creating an account."""

    name: str = Field(..., description="Display name (letters and spaces)")
    email: str = Field(..., description="Email address, unique per account")
    password: str = Field(..., description="Password")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validate_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not (PASSWORD_MIN_LEN <= len(v) <= PASSWORD_MAX_LEN):
            raise ValueError(
                f"Password must be between {PASSWORD_MIN_LEN} and {PASSWORD_MAX_LEN} characters"
            )
        if not (
            any(c.islower() for c in v)
            and any(c.isupper() for c in v)
            and any(c.isdigit() for c in v)
            and any(c in PASSWORD_SPECIALS for c in v)
        ):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, "
                "one number, and one special character"
            )
        return v


class LoginRequest(CamelModel):
    """Credentials for login."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Password")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validate_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class RefreshRequest(CamelModel):
    """Body for POST /auth/refresh. A missing token is reported as 401, not 400."""

    refresh_token: str | None = None


class LogoutRequest(CamelModel):
    refresh_token: str | None = None


class ProfileUpdateRequest(CamelModel):
    """Partial profile update; unknown keys are ignored."""

    name: str | None = None
    email: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _validate_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return None if v is None else _validate_email(v)


class UserOut(CamelModel):
    """User as exposed by the API (no password hash)."""

    id: int
    name: str
    email: str
    role: str = "user"
    is_email_verified: bool = False
    last_login: datetime | None = None
    created_at: datetime | None = None

    @field_validator("last_login", "created_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class CurrentUser(CamelModel):
    """Authenticated user (id, name, email, role) for dependency injection."""

    id: int
    name: str
    email: str
    role: str


class TokenPairData(CamelModel):
    """Fresh access/refresh pair returned by POST /auth/refresh."""

    access_token: str = Field(..., description="JWT access token (short-lived)")
    refresh_token: str = Field(..., description="JWT refresh token (long-lived)")


class AuthData(TokenPairData):
    """Token pair plus the authenticated user, returned by signup and login."""

    user: UserOut


class UserData(CamelModel):
    user: UserOut


class UsersListData(CamelModel):
    """Response data for GET /users (admin only)."""

    users: list[UserOut]
