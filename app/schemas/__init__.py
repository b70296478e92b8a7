"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AuthData,
    CurrentUser,
    LoginRequest,
    ProfileUpdateRequest,
    RefreshRequest,
    SignupRequest,
    TokenPairData,
    UserData,
    UserOut,
    UsersListData,
)
from app.schemas.common import ApiResponse, ErrorDetail, ErrorResponse
from app.schemas.health import HealthResponse
from app.schemas.task import (
    Pagination,
    TaskCreate,
    TaskData,
    TaskFilters,
    TaskListData,
    TaskOut,
    TaskOverview,
    TaskUpdate,
)

__all__ = [
    "ApiResponse",
    "AuthData",
    "CurrentUser",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "LoginRequest",
    "Pagination",
    "ProfileUpdateRequest",
    "RefreshRequest",
    "SignupRequest",
    "TaskCreate",
    "TaskData",
    "TaskFilters",
    "TaskListData",
    "TaskOut",
    "TaskOverview",
    "TaskUpdate",
    "TokenPairData",
    "UserData",
    "UserOut",
    "UsersListData",
]
