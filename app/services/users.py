"""User accounts: registration, credential checks and profile updates."""

import logging
import secrets
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models.user import ROLE_USER, User
from app.schemas.auth import SignupRequest

logger = logging.getLogger(__name__)


@lru_cache
def _dummy_password_hash() -> str:
    """Hash checked when the email is unknown so failed logins cost the same either way."""
    return hash_password(secrets.token_urlsafe(16))


class UserServiceError(Exception):
    """Base class for user service failures; message is safe to return to clients."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EmailAlreadyRegisteredError(UserServiceError):
    """Raised when signup or a profile update would duplicate an email."""

    def __init__(self, message: str = "User already exists with this email address") -> None:
        super().__init__(message)


class InvalidCredentialsError(UserServiceError):
    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class UserNotFoundError(UserServiceError):
    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user(db: Session, user_id: int) -> User:
    """Return the user with this id or raise UserNotFoundError."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFoundError()
    return user


def register_user(db: Session, body: SignupRequest, role: str = ROLE_USER) -> User:
    """Create a user from a validated signup payload. Raises EmailAlreadyRegisteredError."""
    email = normalize_email(body.email)
    logger.info("Signup attempt for email=%s", email)
    if get_user_by_email(db, email) is not None:
        logger.warning("Signup rejected, email already registered: %s", email)
        raise EmailAlreadyRegisteredError()

    user = User(
        name=body.name.strip(),
        email=email,
        password_hash=hash_password(body.password),
        role=role,
        is_email_verified=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent signup for the same email.
        db.rollback()
        raise EmailAlreadyRegisteredError() from e
    db.refresh(user)
    logger.info("User created: id=%s", user.id)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User:
    """
    Check credentials and stamp last_login.

    Unknown email and wrong password raise the same InvalidCredentialsError
    so callers cannot tell which one failed.
    """
    email = normalize_email(email)
    user = get_user_by_email(db, email)
    if user is None:
        verify_password(password, _dummy_password_hash())
        logger.warning("Login failed, unknown email: %s", email)
        raise InvalidCredentialsError()
    if not verify_password(password, user.password_hash):
        logger.warning("Login failed, bad password for user id=%s", user.id)
        raise InvalidCredentialsError()

    user.last_login = datetime.now(UTC)
    db.commit()
    db.refresh(user)
    logger.info("Login successful: user id=%s", user.id)
    return user


def update_profile(db: Session, user_id: int, changes: dict[str, Any]) -> User:
    """Apply name/email changes to the user. Raises UserNotFoundError or EmailAlreadyRegisteredError."""
    user = get_user(db, user_id)
    if "name" in changes and changes["name"] is not None:
        user.name = changes["name"].strip()
    if "email" in changes and changes["email"] is not None:
        email = normalize_email(changes["email"])
        if email != user.email:
            existing = get_user_by_email(db, email)
            if existing is not None and existing.id != user.id:
                raise EmailAlreadyRegisteredError()
            user.email = email
            user.is_email_verified = False
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise EmailAlreadyRegisteredError() from e
    db.refresh(user)
    logger.info("Profile updated: user id=%s", user.id)
    return user


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.id).all()
