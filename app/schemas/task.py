"""Pydantic schemas for task endpoints: create/update payloads, list filters, outputs, stats."""

import math
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import Field, computed_field, field_validator

from app.schemas.common import CamelModel, ensure_utc

TaskStatus = Literal["pending", "in-progress", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
SortField = Literal["createdAt", "updatedAt", "dueDate", "name", "priority", "status"]
SortOrder = Literal["asc", "desc"]

NAME_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
TAG_MAX_LENGTH = 50
MAX_TAGS = 20
DEFAULT_TASK_NAME = "Untitled Task"

# Fields a PATCH may touch; anything else in the body is dropped.
UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "status",
        "priority",
        "due_date",
        "tags",
        "estimated_hours",
        "actual_hours",
        "is_archived",
    }
)


def _clean_tags(v: list[str] | None) -> list[str] | None:
    if v is None:
        return None
    tags: list[str] = []
    for tag in v:
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            raise ValueError(f"Tags cannot exceed {TAG_MAX_LENGTH} characters")
        if tag not in tags:
            tags.append(tag)
    return tags


class TaskCreate(CamelModel):
    """Body for POST /tasks. Status is not accepted; new tasks start as pending."""

    name: str = Field(default=DEFAULT_TASK_NAME, description="Task title")
    description: str = Field(default="", max_length=DESCRIPTION_MAX_LENGTH)
    priority: TaskPriority = "medium"
    due_date: datetime | None = None
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)
    estimated_hours: float | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not (1 <= len(v) <= NAME_MAX_LENGTH):
            raise ValueError(f"Task name must be between 1 and {NAME_MAX_LENGTH} characters")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        return _clean_tags(v) or []


class TaskUpdate(CamelModel):
    """
    Body for PATCH /tasks/{id}. Only keys present in the request are applied
    (use model_dump(exclude_unset=True)); dueDate may be null to clear it.
    """

    name: str | None = None
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    tags: list[str] | None = Field(default=None, max_length=MAX_TAGS)
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    is_archived: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("Task name cannot be null")
        v = v.strip()
        if not (1 <= len(v) <= NAME_MAX_LENGTH):
            raise ValueError(f"Task name must be between 1 and {NAME_MAX_LENGTH} characters")
        return v

    @field_validator("status", "priority", "is_archived")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str] | None:
        return _clean_tags(v)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly sent by the client, restricted to updatable ones (snake_case)."""
        data = self.model_dump(exclude_unset=True)
        if data.get("description") is None and "description" in data:
            data["description"] = ""
        if "tags" in data and data["tags"] is None:
            data["tags"] = []
        return {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}


class TaskOut(CamelModel):
    """Task as returned by the API, with derived overdue fields."""

    id: int
    user_id: int
    name: str
    description: str = ""
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    due_date: datetime | None = None
    completed_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_hours: float | None = None
    actual_hours: float | None = None
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "completed_at", "created_at", "updated_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, v: Any) -> Any:
        return [] if v is None else v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.status == "completed" or self.is_archived:
            return False
        return self.due_date < datetime.now(UTC)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def days_until_due(self) -> int | None:
        if self.due_date is None:
            return None
        delta = self.due_date - datetime.now(UTC)
        return math.ceil(delta.total_seconds() / 86400)


class TaskFilters(CamelModel):
    """Listing filters for GET /tasks; shared by the router and the client."""

    search: str | None = Field(default=None, max_length=100)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    page: int = Field(default=1, ge=1, le=1000)
    limit: int = Field(default=100, ge=1, le=100)
    sort_by: SortField = "createdAt"
    sort_order: SortOrder = "desc"
    include_archived: bool = False
    due_before: datetime | None = None
    due_after: datetime | None = None

    @field_validator("search")
    @classmethod
    def strip_search(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("due_before", "due_after")
    @classmethod
    def dates_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    def to_query_params(self) -> dict[str, str]:
        """Render as camelCase query parameters, omitting unset filters."""
        params: dict[str, str] = {}
        for key, value in self.model_dump(by_alias=True, exclude_none=True).items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            elif isinstance(value, datetime):
                params[key] = value.isoformat()
            else:
                params[key] = str(value)
        return params


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_tasks: int
    has_next_page: bool
    has_prev_page: bool
    limit: int


class TaskData(CamelModel):
    task: TaskOut


class TaskListData(CamelModel):
    """Page of tasks plus aggregates over the caller's whole non-archived set."""

    tasks: list[TaskOut]
    pagination: Pagination
    stats: dict[str, int] = Field(default_factory=dict)
    overdue_count: int = 0


class ProductivityPoint(CamelModel):
    date: str = Field(..., description="Day (YYYY-MM-DD, UTC)")
    count: int


class TaskOverview(CamelModel):
    """Response data for GET /tasks/stats/overview."""

    task_stats: dict[str, int] = Field(default_factory=dict)
    overdue_count: int = 0
    completion_rate: int = Field(default=0, description="Percent of last-30-day tasks completed")
    productivity_trend: list[ProductivityPoint] = Field(default_factory=list)
    total_tasks: int = Field(default=0, description="Tasks created in the last 30 days")
