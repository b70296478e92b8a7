"""Python client for the Taskify API: session handling and an optimistic task list."""

from app.client.api import ApiClient, ApiError, SessionExpiredError
from app.client.auth import AuthStatus, SessionClient
from app.client.config import ClientSettings, get_client_settings
from app.client.session import (
    FileTokenStore,
    MemoryTokenStore,
    SessionState,
    StoredTokens,
    default_token_store,
)
from app.client.tasks import EntryState, TaskEntry, TaskItem, TaskReconciler

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthStatus",
    "ClientSettings",
    "EntryState",
    "FileTokenStore",
    "MemoryTokenStore",
    "SessionClient",
    "SessionExpiredError",
    "SessionState",
    "StoredTokens",
    "TaskEntry",
    "TaskItem",
    "TaskReconciler",
    "default_token_store",
    "get_client_settings",
]
