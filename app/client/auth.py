"""Session lifecycle: boot from stored tokens, login/signup, logout, and profile edits."""

from __future__ import annotations

import logging
from enum import Enum

from app.client.api import ApiClient, ApiError
from app.schemas.auth import ProfileUpdateRequest, UserOut

logger = logging.getLogger(__name__)


class AuthStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionClient:
    """
    Drives AuthStatus over an ApiClient.

    Errors from login/signup propagate to the caller after the status has been
    reset to UNAUTHENTICATED. A refresh failure inside any API call also drops
    the status back to UNAUTHENTICATED.
    """

    def __init__(self, api: ApiClient) -> None:
        self.api = api
        self.session = api.session
        self.status = AuthStatus.UNAUTHENTICATED
        api.session_expired_handlers.append(self._on_session_expired)

    @property
    def user(self) -> UserOut | None:
        return self.session.user

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED

    def _on_session_expired(self) -> None:
        logger.info("Session expired; returning to unauthenticated state")
        self.status = AuthStatus.UNAUTHENTICATED

    async def boot(self) -> AuthStatus:
        """Validate a stored access token by fetching the profile; discard tokens on any failure."""
        if not self.session.access_token:
            self.status = AuthStatus.UNAUTHENTICATED
            return self.status
        self.status = AuthStatus.AUTHENTICATING
        try:
            user = await self.api.get_profile()
        except ApiError as e:
            logger.info("Stored session rejected: %s", e.message)
            self.session.clear()
            self.status = AuthStatus.UNAUTHENTICATED
            return self.status
        self.session.user = user
        self.status = AuthStatus.AUTHENTICATED
        return self.status

    async def login(self, email: str, password: str) -> UserOut:
        self.status = AuthStatus.AUTHENTICATING
        try:
            data = await self.api.login(email, password)
        except ApiError:
            self.session.user = None
            self.status = AuthStatus.UNAUTHENTICATED
            raise
        self.session.set_tokens(data.access_token, data.refresh_token)
        self.session.user = data.user
        self.status = AuthStatus.AUTHENTICATED
        logger.info("Logged in as user id=%s", data.user.id)
        return data.user

    async def signup(self, name: str, email: str, password: str) -> UserOut:
        self.status = AuthStatus.AUTHENTICATING
        try:
            data = await self.api.signup(name, email, password)
        except ApiError:
            self.session.user = None
            self.status = AuthStatus.UNAUTHENTICATED
            raise
        self.session.set_tokens(data.access_token, data.refresh_token)
        self.session.user = data.user
        self.status = AuthStatus.AUTHENTICATED
        logger.info("Signed up as user id=%s", data.user.id)
        return data.user

    async def logout(self) -> None:
        """Tell the server (best effort) and always clear local tokens."""
        try:
            await self.api.logout()
        except ApiError as e:
            logger.warning("Logout notification failed: %s", e.message)
        finally:
            self.session.clear()
            self.status = AuthStatus.UNAUTHENTICATED

    async def update_profile(self, **changes: str) -> UserOut:
        user = await self.api.update_profile(ProfileUpdateRequest.model_validate(changes))
        self.session.user = user
        return user
