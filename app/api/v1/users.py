"""Profile endpoints for the authenticated user, and the admin-only user list."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, require_admin
from app.core.database import get_db
from app.schemas.auth import (
    CurrentUser,
    ProfileUpdateRequest,
    UserData,
    UserOut,
    UsersListData,
)
from app.schemas.common import ApiResponse
from app.services.users import (
    EmailAlreadyRegisteredError,
    UserNotFoundError,
    get_user,
    list_users,
    update_profile,
)

router = APIRouter()


@router.get("/profile", response_model=ApiResponse[UserData])
def read_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[UserData]:
    """Return the caller's user record. Also used by clients to validate a stored access token."""
    try:
        user = get_user(db, current_user.id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    return ApiResponse[UserData](data=UserData(user=UserOut.model_validate(user)))


@router.patch("/profile", response_model=ApiResponse[UserData])
def patch_profile(
    body: ProfileUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[UserData]:
    """Partially update the caller's name and/or email. Email changes must stay unique."""
    try:
        user = update_profile(db, current_user.id, body.model_dump(exclude_unset=True))
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    return ApiResponse[UserData](
        message="Profile updated successfully",
        data=UserData(user=UserOut.model_validate(user)),
    )


@router.get("", response_model=ApiResponse[UsersListData])
def read_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[UsersListData]:
    """List all users (admin only)."""
    users = list_users(db)
    return ApiResponse[UsersListData](
        data=UsersListData(users=[UserOut.model_validate(u) for u in users])
    )
