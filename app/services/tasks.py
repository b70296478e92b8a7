"""
Task store operations, always scoped by owner.

Every query filters on (task id, user id): a task owned by someone else is
indistinguishable from a missing one.
"""

import logging
import math
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Query, Session

from app.models.task import STATUS_COMPLETED, TASK_PRIORITIES, TASK_STATUSES, Task
from app.schemas.common import ensure_utc
from app.schemas.task import (
    ProductivityPoint,
    TaskCreate,
    TaskFilters,
    TaskOut,
    TaskOverview,
)

logger = logging.getLogger(__name__)

COMPLETION_WINDOW_DAYS = 30
TREND_WINDOW_DAYS = 7


class TaskNotFoundError(Exception):
    """Raised when a task does not exist or is not owned by the caller."""

    def __init__(self, message: str = "Task not found") -> None:
        self.message = message
        super().__init__(message)


class TaskPage(NamedTuple):
    tasks: list[Task]
    total: int


_SORT_COLUMNS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "name": Task.name,
    "priority": case(
        {p: i for i, p in enumerate(TASK_PRIORITIES)},
        value=Task.priority,
        else_=len(TASK_PRIORITIES),
    ),
    "status": case(
        {s: i for i, s in enumerate(TASK_STATUSES)},
        value=Task.status,
        else_=len(TASK_STATUSES),
    ),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _owned(db: Session, user_id: int) -> Query:
    return db.query(Task).filter(Task.user_id == user_id)


def apply_status_transition(task: Task, new_status: str, now: datetime | None = None) -> None:
    """
    Set status and keep completed_at in step with it.

    Moving to 'completed' stamps completed_at (an already-completed task keeps
    its original stamp); any other status clears it.
    """
    if new_status == STATUS_COMPLETED:
        if task.status != STATUS_COMPLETED or task.completed_at is None:
            task.completed_at = now or _utcnow()
    else:
        task.completed_at = None
    task.status = new_status


def create_task(db: Session, user_id: int, body: TaskCreate) -> Task:
    """Persist a new pending task for user_id."""
    task = Task(
        user_id=user_id,
        name=body.name,
        description=body.description,
        status="pending",
        priority=body.priority,
        due_date=body.due_date,
        tags=list(body.tags),
        estimated_hours=body.estimated_hours,
        is_archived=False,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("Task created: id=%s user_id=%s", task.id, user_id)
    return task


def get_task(db: Session, user_id: int, task_id: int) -> Task:
    """Return the caller's task or raise TaskNotFoundError."""
    task = _owned(db, user_id).filter(Task.id == task_id).first()
    if task is None:
        raise TaskNotFoundError()
    return task


def update_task(
    db: Session,
    user_id: int,
    task_id: int,
    changes: dict[str, Any],
    now: datetime | None = None,
) -> Task:
    """
    Apply a partial update (snake_case keys already restricted to updatable fields).

    completed_at is derived from status here and never taken from the client.
    """
    task = get_task(db, user_id, task_id)
    changes = dict(changes)
    changes.pop("completed_at", None)
    new_status = changes.pop("status", None)
    for field, value in changes.items():
        setattr(task, field, value)
    if new_status is not None:
        apply_status_transition(task, new_status, now=now)
    db.commit()
    db.refresh(task)
    logger.info(
        "Task updated: id=%s user_id=%s fields=%s",
        task.id,
        user_id,
        sorted(changes) + (["status"] if new_status is not None else []),
    )
    return task


def delete_task(db: Session, user_id: int, task_id: int) -> TaskOut:
    """Delete the caller's task and return a snapshot of what was removed."""
    task = get_task(db, user_id, task_id)
    snapshot = TaskOut.model_validate(task)
    db.delete(task)
    db.commit()
    logger.info("Task deleted: id=%s user_id=%s", task_id, user_id)
    return snapshot


def list_tasks(db: Session, user_id: int, filters: TaskFilters) -> TaskPage:
    """Return one page of the caller's tasks matching filters, plus the filtered total."""
    query = _owned(db, user_id)
    if not filters.include_archived:
        query = query.filter(Task.is_archived.is_(False))
    if filters.search:
        pattern = f"%{_escape_like(filters.search)}%"
        query = query.filter(
            or_(
                Task.name.ilike(pattern, escape="\\"),
                Task.description.ilike(pattern, escape="\\"),
            )
        )
    if filters.status:
        query = query.filter(Task.status == filters.status)
    if filters.priority:
        query = query.filter(Task.priority == filters.priority)
    if filters.due_before is not None:
        query = query.filter(Task.due_date <= filters.due_before)
    if filters.due_after is not None:
        query = query.filter(Task.due_date >= filters.due_after)

    total = query.count()

    sort_col = _SORT_COLUMNS[filters.sort_by]
    primary = sort_col.asc() if filters.sort_order == "asc" else sort_col.desc()
    if filters.sort_by == "dueDate":
        # Undated tasks sort last in both directions.
        primary = primary.nulls_last()
    tie = Task.id.asc() if filters.sort_order == "asc" else Task.id.desc()
    order = (primary, tie)
    tasks = (
        query.order_by(*order)
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
        .all()
    )
    return TaskPage(tasks=tasks, total=total)


def status_counts(db: Session, user_id: int) -> dict[str, int]:
    """Count the caller's non-archived tasks by status (statuses with zero tasks are omitted)."""
    rows = (
        db.query(Task.status, func.count(Task.id))
        .filter(Task.user_id == user_id, Task.is_archived.is_(False))
        .group_by(Task.status)
        .all()
    )
    return {status: count for status, count in rows}


def overdue_count(db: Session, user_id: int, now: datetime | None = None) -> int:
    """Owned, non-archived, non-completed tasks whose due date is strictly before now."""
    now = now or _utcnow()
    return (
        _owned(db, user_id)
        .filter(
            Task.is_archived.is_(False),
            Task.status != STATUS_COMPLETED,
            Task.due_date.is_not(None),
            Task.due_date < now,
        )
        .count()
    )


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def task_overview(db: Session, user_id: int, now: datetime | None = None) -> TaskOverview:
    """Dashboard numbers: status counts, overdue, 30-day completion rate, 7-day completion trend."""
    now = now or _utcnow()
    window_start = now - timedelta(days=COMPLETION_WINDOW_DAYS)
    recent = _owned(db, user_id).filter(
        Task.is_archived.is_(False),
        Task.created_at >= window_start,
    )
    recent_total = recent.count()
    recent_completed = recent.filter(Task.status == STATUS_COMPLETED).count()
    completion_rate = (
        math.floor(recent_completed / recent_total * 100 + 0.5) if recent_total else 0
    )

    trend_start = now - timedelta(days=TREND_WINDOW_DAYS)
    completed_stamps = (
        db.query(Task.completed_at)
        .filter(
            Task.user_id == user_id,
            Task.is_archived.is_(False),
            Task.status == STATUS_COMPLETED,
            Task.completed_at >= trend_start,
        )
        .all()
    )
    per_day = Counter(ensure_utc(stamp).date().isoformat() for (stamp,) in completed_stamps)

    return TaskOverview(
        task_stats=status_counts(db, user_id),
        overdue_count=overdue_count(db, user_id, now=now),
        completion_rate=completion_rate,
        productivity_trend=[
            ProductivityPoint(date=day, count=count) for day, count in sorted(per_day.items())
        ],
        total_tasks=recent_total,
    )
