"""
Optimistic task list kept in step with the server.

Mutations change the in-memory list before the request resolves, then
reconcile with the server's record. Every mutation takes a logical sequence
number for its task; a response is applied only while its number is still the
latest for that task, so the last mutation *issued* wins regardless of the
order responses arrive in.

Failure policy:
  * create: the provisional task stays in the list as local-only;
  * update/delete: the optimistic change stays and the list is refetched;
  * fetch: the error propagates.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from app.client.api import ApiClient, ApiError
from app.schemas.task import (
    Pagination,
    TaskCreate,
    TaskFilters,
    TaskOut,
    TaskOverview,
    TaskPriority,
    TaskStatus,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local-"


class EntryState(str, Enum):
    PENDING = "pending"  # optimistic change awaiting the server
    COMMITTED = "committed"  # mirrors the server's last answer
    LOCAL_ONLY = "local-only"  # create failed; exists only on this client


class TaskItem(TaskOut):
    """A task as held by the client: server ids as strings, provisional ids as local-<hex>."""

    id: str  # type: ignore[assignment]
    user_id: int | None = None  # type: ignore[assignment]

    @classmethod
    def from_server(cls, task: TaskOut) -> TaskItem:
        return cls.model_validate({**task.model_dump(), "id": str(task.id)})

    @property
    def is_provisional(self) -> bool:
        return self.id.startswith(LOCAL_ID_PREFIX)


@dataclass
class TaskEntry:
    task: TaskItem
    state: EntryState

    @property
    def id(self) -> str:
        return self.task.id


def _now() -> datetime:
    return datetime.now(UTC)


class TaskReconciler:
    """In-memory task list plus aggregates, mutated optimistically through an ApiClient."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api
        self.entries: list[TaskEntry] = []
        self.stats: dict[str, int] = {}
        self.overdue_count = 0
        self.pagination: Pagination | None = None
        self.overview: TaskOverview | None = None
        self.filters = TaskFilters()
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._aliases: dict[str, str] = {}
        self._creates: dict[str, asyncio.Task[str | None]] = {}

    # -- views ---------------------------------------------------------------

    @property
    def tasks(self) -> list[TaskItem]:
        return [e.task for e in self.entries]

    @property
    def active_tasks(self) -> list[TaskItem]:
        """Pending tab: everything not completed."""
        return [e.task for e in self.entries if e.task.status != "completed"]

    @property
    def completed_tasks(self) -> list[TaskItem]:
        return [e.task for e in self.entries if e.task.status == "completed"]

    def entry(self, task_id: str) -> TaskEntry | None:
        index = self._index(task_id)
        return self.entries[index] if index is not None else None

    # -- bookkeeping ---------------------------------------------------------

    def _key(self, task_id: str) -> str:
        """Canonical id: provisional ids map to their server id once the create lands."""
        return self._aliases.get(task_id, task_id)

    def _index(self, task_id: str) -> int | None:
        key = self._key(task_id)
        for i, entry in enumerate(self.entries):
            if self._key(entry.id) == key:
                return i
        return None

    def _stamp(self, task_id: str) -> int:
        seq = next(self._counter)
        self._latest[self._key(task_id)] = seq
        return seq

    def _is_latest(self, task_id: str, seq: int) -> bool:
        return self._latest.get(self._key(task_id)) == seq

    def _prune(self, live: set[str]) -> None:
        """Forget aliases and sequence slots for tasks no longer listed, unless a create is pending."""
        self._aliases = {local: server for local, server in self._aliases.items() if server in live}
        self._latest = {
            key: seq for key, seq in self._latest.items() if key in live or key in self._creates
        }

    def _forget(self, task_id: str, seq: int) -> None:
        """Drop bookkeeping for a deleted task unless a newer mutation has claimed it."""
        key = self._key(task_id)
        if self._latest.get(key) != seq:
            return
        del self._latest[key]
        self._aliases = {local: server for local, server in self._aliases.items() if server != key}

    async def _server_id(self, task_id: str) -> str | None:
        """Server id for a task, waiting for its pending create if needed; None if local-only."""
        key = self._key(task_id)
        create = self._creates.get(key)
        if create is not None:
            return await create
        if key.startswith(LOCAL_ID_PREFIX):
            return None
        return key

    # -- fetch ---------------------------------------------------------------

    async def fetch_tasks(self, filters: TaskFilters | None = None) -> None:
        """Replace the list and aggregates with the server's snapshot. Errors propagate."""
        if filters is not None:
            self.filters = filters
        data = await self.api.list_tasks(self.filters)
        self.entries = [
            TaskEntry(task=TaskItem.from_server(t), state=EntryState.COMMITTED) for t in data.tasks
        ]
        self.stats = dict(data.stats)
        self.overdue_count = data.overdue_count
        self.pagination = data.pagination
        self._prune({e.id for e in self.entries})
        logger.debug("Fetched %s tasks", len(self.entries))

    async def fetch_stats(self) -> None:
        """Refresh counts from the overview endpoint; failures are logged, not raised."""
        try:
            overview = await self.api.task_overview()
        except ApiError as e:
            logger.warning("Failed to fetch task stats: %s", e.message)
            return
        self.overview = overview
        self.stats = dict(overview.task_stats)
        self.overdue_count = overview.overdue_count

    async def _refetch(self) -> None:
        try:
            await self.fetch_tasks()
        except ApiError as e:
            logger.warning("Refetch after failed mutation also failed: %s", e.message)

    # -- create --------------------------------------------------------------

    async def add_task(
        self,
        name: str,
        description: str = "",
        priority: TaskPriority = "medium",
        due_date: datetime | None = None,
        tags: list[str] | None = None,
        estimated_hours: float | None = None,
    ) -> TaskItem:
        """
        Prepend a provisional task, then create it on the server.

        Returns the entry as it stands afterwards: the server's record on
        success, the local-only copy on failure.
        """
        body = TaskCreate(
            name=name,
            description=description,
            priority=priority,
            due_date=due_date,
            tags=tags or [],
            estimated_hours=estimated_hours,
        )
        now = _now()
        user = self.api.session.user
        provisional = TaskItem(
            id=f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}",
            user_id=user.id if user else None,
            name=body.name,
            description=body.description,
            status="pending",
            priority=body.priority,
            due_date=body.due_date,
            tags=body.tags,
            estimated_hours=body.estimated_hours,
            created_at=now,
            updated_at=now,
        )
        self.entries.insert(0, TaskEntry(task=provisional, state=EntryState.PENDING))
        seq = self._stamp(provisional.id)
        create = asyncio.create_task(self._commit_create(provisional.id, body, seq))
        self._creates[provisional.id] = create
        await create
        current = self.entry(provisional.id)
        return current.task if current is not None else provisional

    async def _commit_create(self, local_id: str, body: TaskCreate, seq: int) -> str | None:
        try:
            return await self._create_on_server(local_id, body, seq)
        finally:
            # From here on the alias (or its absence) answers _server_id.
            self._creates.pop(local_id, None)

    async def _create_on_server(self, local_id: str, body: TaskCreate, seq: int) -> str | None:
        try:
            created = await self.api.create_task(body)
        except ApiError as e:
            logger.warning("Task create failed, keeping local copy %s: %s", local_id, e.message)
            current = self.entry(local_id)
            if current is not None:
                current.state = EntryState.LOCAL_ONLY
            return None

        server_id = str(created.id)
        self._aliases[local_id] = server_id
        if local_id in self._latest:
            self._latest[server_id] = self._latest.pop(local_id)
        index = self._index(local_id)
        if self._is_latest(server_id, seq):
            entry = TaskEntry(task=TaskItem.from_server(created), state=EntryState.COMMITTED)
            if index is not None:
                self.entries[index] = entry
            else:
                # A fetch replaced the list while the create was in flight.
                self.entries.insert(0, entry)
        elif index is not None:
            # A later mutation owns the visible fields; adopt only the server identity.
            current = self.entries[index]
            current.task = current.task.model_copy(
                update={
                    "id": server_id,
                    "user_id": created.user_id,
                    "created_at": created.created_at,
                }
            )
        await self.fetch_stats()
        return server_id

    # -- update --------------------------------------------------------------

    def _apply_local(self, task_id: str, changes: dict[str, Any]) -> None:
        index = self._index(task_id)
        if index is None:
            return
        entry = self.entries[index]
        now = _now()
        update = dict(changes, updated_at=now)
        if "status" in changes:
            if changes["status"] == "completed":
                if entry.task.status != "completed" or entry.task.completed_at is None:
                    update["completed_at"] = now
            else:
                update["completed_at"] = None
        entry.task = entry.task.model_copy(update=update)
        if entry.state is EntryState.COMMITTED:
            entry.state = EntryState.PENDING

    async def update_task(self, task_id: str, **changes: Any) -> None:
        """
        Apply a partial update locally, then on the server.

        Invalid field values raise pydantic.ValidationError before anything
        changes. Server failures are logged and followed by a refetch.
        """
        update = TaskUpdate.model_validate(changes)
        delta = update.changes()
        seq = self._stamp(task_id)
        self._apply_local(task_id, delta)

        server_id = await self._server_id(task_id)
        if server_id is None:
            return
        try:
            saved = await self.api.update_task(int(server_id), update)
        except ApiError as e:
            logger.warning("Task update failed for %s: %s; refetching", server_id, e.message)
            await self._refetch()
            return

        if self._is_latest(server_id, seq):
            index = self._index(server_id)
            if index is not None:
                self.entries[index] = TaskEntry(
                    task=TaskItem.from_server(saved), state=EntryState.COMMITTED
                )
        else:
            logger.debug("Dropping superseded update response for task %s", server_id)
        await self.fetch_stats()

    async def update_task_status(self, task_id: str, status: TaskStatus) -> None:
        await self.update_task(task_id, status=status)

    async def archive_task(self, task_id: str) -> None:
        await self.update_task(task_id, is_archived=True)

    async def restore_task(self, task_id: str) -> None:
        await self.update_task(task_id, is_archived=False)

    # -- delete --------------------------------------------------------------

    async def delete_task(self, task_id: str) -> None:
        """Remove locally, then on the server; refetch if the server refuses."""
        seq = self._stamp(task_id)
        index = self._index(task_id)
        if index is not None:
            del self.entries[index]

        server_id = await self._server_id(task_id)
        if server_id is None:
            self._forget(task_id, seq)
            return
        try:
            await self.api.delete_task(int(server_id))
        except ApiError as e:
            logger.warning("Task delete failed for %s: %s; refetching", server_id, e.message)
            await self._refetch()
            return
        self._forget(server_id, seq)
        await self.fetch_stats()
