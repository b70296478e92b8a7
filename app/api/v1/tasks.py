"""Task endpoints: owner-scoped CRUD, filtered listing with aggregates, and overview stats."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user
from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse
from app.schemas.task import (
    Pagination,
    SortField,
    SortOrder,
    TaskCreate,
    TaskData,
    TaskFilters,
    TaskListData,
    TaskOut,
    TaskOverview,
    TaskPriority,
    TaskStatus,
    TaskUpdate,
)
from app.services.tasks import (
    TaskNotFoundError,
    create_task,
    delete_task,
    get_task,
    list_tasks,
    overdue_count,
    status_counts,
    task_overview,
    total_pages,
    update_task,
)

router = APIRouter()


def _not_found(e: TaskNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post("", response_model=ApiResponse[TaskData], status_code=status.HTTP_201_CREATED)
def post_task(
    body: TaskCreate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[TaskData]:
    """Create a task for the caller. New tasks always start as pending."""
    task = create_task(db, current_user.id, body)
    return ApiResponse[TaskData](
        message="Task created successfully",
        data=TaskData(task=TaskOut.model_validate(task)),
    )


@router.get("", response_model=ApiResponse[TaskListData])
def get_tasks(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    search: Annotated[str | None, Query(max_length=100)] = None,
    status_: Annotated[TaskStatus | None, Query(alias="status")] = None,
    priority: Annotated[TaskPriority | None, Query()] = None,
    page: Annotated[int, Query(ge=1, le=1000)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
    sort_by: Annotated[SortField, Query(alias="sortBy")] = "createdAt",
    sort_order: Annotated[SortOrder, Query(alias="sortOrder")] = "desc",
    include_archived: Annotated[bool, Query(alias="includeArchived")] = False,
    due_before: Annotated[datetime | None, Query(alias="dueBefore")] = None,
    due_after: Annotated[datetime | None, Query(alias="dueAfter")] = None,
) -> ApiResponse[TaskListData]:
    """
    List the caller's tasks with search, status/priority/due-date filters,
    sorting and pagination.

    Alongside the page, returns counts by status and the overdue count computed
    over all of the caller's non-archived tasks (not just this page).
    """
    filters = TaskFilters(
        search=search,
        status=status_,
        priority=priority,
        page=page,
        limit=limit or get_settings().TASKS_DEFAULT_PAGE_LIMIT,
        sort_by=sort_by,
        sort_order=sort_order,
        include_archived=include_archived,
        due_before=due_before,
        due_after=due_after,
    )
    result = list_tasks(db, current_user.id, filters)
    pages = total_pages(result.total, filters.limit)
    return ApiResponse[TaskListData](
        data=TaskListData(
            tasks=[TaskOut.model_validate(t) for t in result.tasks],
            pagination=Pagination(
                current_page=filters.page,
                total_pages=pages,
                total_tasks=result.total,
                has_next_page=filters.page < pages,
                has_prev_page=filters.page > 1,
                limit=filters.limit,
            ),
            stats=status_counts(db, current_user.id),
            overdue_count=overdue_count(db, current_user.id),
        )
    )


@router.get("/stats/overview", response_model=ApiResponse[TaskOverview])
def get_overview(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[TaskOverview]:
    """Status counts, overdue count, 30-day completion rate and 7-day completion trend."""
    return ApiResponse[TaskOverview](data=task_overview(db, current_user.id))


@router.get("/{task_id}", response_model=ApiResponse[TaskData])
def get_one_task(
    task_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[TaskData]:
    """Fetch one of the caller's tasks; 404 if missing or owned by someone else."""
    try:
        task = get_task(db, current_user.id, task_id)
    except TaskNotFoundError as e:
        raise _not_found(e) from e
    return ApiResponse[TaskData](data=TaskData(task=TaskOut.model_validate(task)))


@router.patch("/{task_id}", response_model=ApiResponse[TaskData])
def patch_task(
    task_id: int,
    body: TaskUpdate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[TaskData]:
    """
    Partially update one of the caller's tasks.

    Only name, description, status, priority, dueDate, tags, estimatedHours,
    actualHours and isArchived are applied; other keys are ignored. Moving to
    'completed' stamps completedAt, any other status clears it.
    """
    try:
        task = update_task(db, current_user.id, task_id, body.changes())
    except TaskNotFoundError as e:
        raise _not_found(e) from e
    return ApiResponse[TaskData](
        message="Task updated successfully",
        data=TaskData(task=TaskOut.model_validate(task)),
    )


@router.delete("/{task_id}", response_model=ApiResponse[TaskData])
def remove_task(
    task_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[TaskData]:
    """Delete one of the caller's tasks and return the deleted record."""
    try:
        snapshot = delete_task(db, current_user.id, task_id)
    except TaskNotFoundError as e:
        raise _not_found(e) from e
    return ApiResponse[TaskData](
        message="Task deleted successfully",
        data=TaskData(task=snapshot),
    )
