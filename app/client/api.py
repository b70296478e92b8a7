"""
Async HTTP client for the Taskify API.

Attaches the session's access token to every authenticated call. On a 401 it
refreshes the token pair once and retries the original request once. Refresh
attempts are coalesced: concurrent 401s await the same in-flight refresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.client.config import ClientSettings, get_client_settings
from app.client.session import SessionState
from app.schemas.auth import AuthData, ProfileUpdateRequest, TokenPairData, UserData, UserOut
from app.schemas.common import ApiResponse, ErrorDetail
from app.schemas.task import (
    TaskCreate,
    TaskData,
    TaskFilters,
    TaskListData,
    TaskOut,
    TaskOverview,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."


class ApiError(Exception):
    """Raised for non-2xx responses, transport failures and malformed bodies."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[ErrorDetail] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(message)


class SessionExpiredError(ApiError):
    """Raised when the token pair could not be refreshed; tokens have been cleared."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE) -> None:
        super().__init__(message, status_code=401)


class ApiClient:
    """
    Thin typed wrapper over httpx.AsyncClient.

    session is the explicit token holder; session_expired_handlers are called
    (synchronously) after an irrecoverable refresh failure, e.g. to route the
    user back to the login screen.
    """

    def __init__(
        self,
        session: SessionState,
        base_url: str | None = None,
        *,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_session_expired: Callable[[], None] | None = None,
    ) -> None:
        settings = settings or get_client_settings()
        self.session = session
        self.session_expired_handlers: list[Callable[[], None]] = []
        if on_session_expired is not None:
            self.session_expired_handlers.append(on_session_expired)
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.API_URL,
            timeout=settings.REQUEST_TIMEOUT_SEC,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._refresh_task: asyncio.Task[str] | None = None

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- transport -----------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        token: str | None,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            return await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error("API request failed: %s %s: %s", method, path, e)
            raise ApiError(f"Network error: {e}") from e

    @staticmethod
    def _parse(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.is_success:
            if not isinstance(body, dict):
                raise ApiError("Malformed response body", status_code=response.status_code)
            return body
        message = f"HTTP error! status: {response.status_code}"
        errors: list[ErrorDetail] = []
        if isinstance(body, dict):
            message = body.get("message") or message
            for err in body.get("errors") or []:
                try:
                    errors.append(ErrorDetail.model_validate(err))
                except ValidationError:
                    continue
        raise ApiError(message, status_code=response.status_code, errors=errors)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        With authenticated=True a 401 triggers at most one refresh and exactly
        one retry; if the refresh fails the session is cleared and
        SessionExpiredError is raised.
        """
        token = self.session.access_token if authenticated else None
        response = await self._send(method, path, token, json=json, params=params)
        if response.status_code == 401 and authenticated and self.session.refresh_token:
            logger.info("Access token rejected for %s %s; refreshing", method, path)
            new_token = await self._fresh_access_token(stale=token)
            response = await self._send(method, path, new_token, json=json, params=params)
        return self._parse(response)

    # -- token refresh -------------------------------------------------------

    async def _fresh_access_token(self, stale: str | None) -> str:
        """Return an access token newer than `stale`, refreshing only if nobody has yet."""
        current = self.session.access_token
        if current and current != stale:
            return current
        if self.session.refresh_token is None:
            raise SessionExpiredError()
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh())
        return await self._refresh_task

    async def _refresh(self) -> str:
        try:
            refresh_token = self.session.refresh_token
            try:
                response = await self._http.post(
                    "/auth/refresh", json={"refreshToken": refresh_token}
                )
                pair = self._data(self._parse(response), TokenPairData)
            except ApiError as e:
                logger.warning("Token refresh failed: %s", e.message)
                self._expire_session()
                raise SessionExpiredError() from e
            except httpx.HTTPError as e:
                logger.warning("Token refresh failed: %s", e)
                self._expire_session()
                raise SessionExpiredError() from e
            self.session.set_tokens(pair.access_token, pair.refresh_token)
            logger.info("Token pair refreshed")
            return pair.access_token
        finally:
            self._refresh_task = None

    def _expire_session(self) -> None:
        self.session.clear()
        for handler in list(self.session_expired_handlers):
            handler()

    # -- response parsing ----------------------------------------------------

    @staticmethod
    def _data(body: dict[str, Any], model: type[M]) -> M:
        """Validate the envelope and return its data payload as `model`."""
        try:
            envelope = ApiResponse[model].model_validate(body)  # type: ignore[valid-type]
        except ValidationError as e:
            raise ApiError(f"Unexpected response shape: {e.error_count()} error(s)") from e
        if not envelope.success or envelope.data is None:
            raise ApiError(envelope.message or "Response carried no data")
        return envelope.data

    # -- auth ----------------------------------------------------------------

    async def signup(self, name: str, email: str, password: str) -> AuthData:
        body = await self.request(
            "POST",
            "/auth/signup",
            json={"name": name, "email": email, "password": password},
            authenticated=False,
        )
        return self._data(body, AuthData)

    async def login(self, email: str, password: str) -> AuthData:
        body = await self.request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
            authenticated=False,
        )
        return self._data(body, AuthData)

    async def logout(self) -> None:
        await self.request(
            "POST",
            "/auth/logout",
            json={"refreshToken": self.session.refresh_token},
            authenticated=False,
        )

    # -- users ---------------------------------------------------------------

    async def get_profile(self) -> UserOut:
        body = await self.request("GET", "/users/profile")
        return self._data(body, UserData).user

    async def update_profile(self, changes: ProfileUpdateRequest) -> UserOut:
        body = await self.request(
            "PATCH",
            "/users/profile",
            json=changes.model_dump(mode="json", by_alias=True, exclude_unset=True),
        )
        return self._data(body, UserData).user

    # -- tasks ---------------------------------------------------------------

    async def create_task(self, task: TaskCreate) -> TaskOut:
        body = await self.request(
            "POST",
            "/tasks",
            json=task.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return self._data(body, TaskData).task

    async def list_tasks(self, filters: TaskFilters | None = None) -> TaskListData:
        params = (filters or TaskFilters()).to_query_params()
        body = await self.request("GET", "/tasks", params=params)
        return self._data(body, TaskListData)

    async def get_task(self, task_id: int) -> TaskOut:
        body = await self.request("GET", f"/tasks/{task_id}")
        return self._data(body, TaskData).task

    async def update_task(self, task_id: int, changes: TaskUpdate) -> TaskOut:
        body = await self.request(
            "PATCH",
            f"/tasks/{task_id}",
            json=changes.model_dump(mode="json", by_alias=True, exclude_unset=True),
        )
        return self._data(body, TaskData).task

    async def delete_task(self, task_id: int) -> TaskOut:
        body = await self.request("DELETE", f"/tasks/{task_id}")
        return self._data(body, TaskData).task

    async def task_overview(self) -> TaskOverview:
        body = await self.request("GET", "/tasks/stats/overview")
        return self._data(body, TaskOverview)
