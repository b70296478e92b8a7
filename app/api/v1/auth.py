"""Signup, login, token refresh and logout, plus the auth dependencies (get_current_user, require_admin)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import (
    TokenError,
    TokenWrongTypeError,
    issue_token_pair,
    verify_access_token,
    verify_refresh_token,
)
from app.models.user import ROLE_ADMIN
from app.schemas.auth import (
    AuthData,
    CurrentUser,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    SignupRequest,
    TokenPairData,
    UserOut,
)
from app.schemas.common import ApiResponse
from app.services.users import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    UserNotFoundError,
    authenticate_user,
    get_user,
    register_user,
)

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

_BEARER = {"WWW-Authenticate": "Bearer"}


@router.post("/signup", response_model=ApiResponse[AuthData], status_code=status.HTTP_201_CREATED)
def signup(
    body: SignupRequest,
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[AuthData]:
    """Create an account and return an access/refresh token pair with the new user."""
    try:
        user = register_user(db, body)
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    tokens = issue_token_pair(user.id)
    return ApiResponse[AuthData](
        message="Account created successfully",
        data=AuthData(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=UserOut.model_validate(user),
        ),
    )


@router.post("/login", response_model=ApiResponse[AuthData])
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[AuthData]:
    """
    Authenticate with email and password; returns a JWT token pair.
    Include the access token in the Authorization header as: Bearer <accessToken>
    """
    try:
        user = authenticate_user(db, body.email, body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    tokens = issue_token_pair(user.id)
    return ApiResponse[AuthData](
        message="Login successful",
        data=AuthData(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=UserOut.model_validate(user),
        ),
    )


@router.post("/refresh", response_model=ApiResponse[TokenPairData])
def refresh(
    db: Annotated[Session, Depends(get_db)],
    body: Annotated[RefreshRequest | None, Body()] = None,
) -> ApiResponse[TokenPairData]:
    """
    Exchange a valid refresh token for a brand-new access/refresh pair.

    Refresh tokens are stateless: any unexpired refresh token for an existing
    user is accepted, including one that was already exchanged.
    """
    if body is None or not body.refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token required",
        )
    try:
        user_id = verify_refresh_token(body.refresh_token)
    except TokenWrongTypeError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        ) from e
    except TokenError as e:
        logger.info("Token refresh rejected: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        ) from e
    try:
        user = get_user(db, user_id)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        ) from e
    tokens = issue_token_pair(user.id)
    return ApiResponse[TokenPairData](
        data=TokenPairData(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        ),
    )


@router.post("/logout", response_model=ApiResponse[None])
def logout(
    _body: Annotated[LogoutRequest | None, Body()] = None,
) -> ApiResponse[None]:
    """Acknowledge logout. Tokens are stateless, so there is nothing to revoke server-side."""
    return ApiResponse[None](message="Logged out successfully")


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Dependency: require valid Bearer access token and return the current user. Raises 401 otherwise."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers=_BEARER,
        )
    try:
        user_id = verify_access_token(credentials.credentials)
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers=_BEARER,
        ) from e
    try:
        user = get_user(db, user_id)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers=_BEARER,
        ) from e
    return CurrentUser(id=user.id, name=user.name, email=user.email, role=user.role)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
