"""Unit and in-memory SQLite tests for app.services.tasks."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from sqlalchemy.orm import sessionmaker

from app.core.database import build_engine
from app.models import Base, Task, User
from app.schemas.task import TaskCreate, TaskFilters
from app.services.tasks import (
    TaskNotFoundError,
    apply_status_transition,
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

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class TestStatusTransition(unittest.TestCase):
    """completed_at follows status: stamped on completion, cleared otherwise."""

    def test_completing_stamps_completed_at(self) -> None:
        task = Task(status="pending", completed_at=None)
        apply_status_transition(task, "completed", now=T0)
        self.assertEqual(task.status, "completed")
        self.assertEqual(task.completed_at, T0)

    def test_recompleting_keeps_original_stamp(self) -> None:
        task = Task(status="completed", completed_at=T0)
        apply_status_transition(task, "completed", now=T0 + timedelta(hours=3))
        self.assertEqual(task.completed_at, T0)

    def test_completed_without_stamp_gets_one(self) -> None:
        task = Task(status="completed", completed_at=None)
        apply_status_transition(task, "completed", now=T0)
        self.assertEqual(task.completed_at, T0)

    def test_leaving_completed_clears_stamp(self) -> None:
        for status in ("pending", "in-progress", "cancelled"):
            with self.subTest(status=status):
                task = Task(status="completed", completed_at=T0)
                apply_status_transition(task, status, now=T0)
                self.assertEqual(task.status, status)
                self.assertIsNone(task.completed_at)


class TestGetTaskScoping(unittest.TestCase):
    def test_missing_row_raises_not_found(self) -> None:
        db = MagicMock()
        db.query.return_value.filter.return_value.filter.return_value.first.return_value = None
        with self.assertRaises(TaskNotFoundError) as ctx:
            get_task(db, user_id=1, task_id=99)
        self.assertEqual(ctx.exception.message, "Task not found")

    def test_total_pages(self) -> None:
        self.assertEqual(total_pages(0, 10), 0)
        self.assertEqual(total_pages(10, 10), 1)
        self.assertEqual(total_pages(11, 10), 2)


class _DatabaseTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(self.engine)
        self.db = sessionmaker(bind=self.engine, autoflush=False)()
        self.addCleanup(self.engine.dispose)
        self.addCleanup(self.db.close)
        self.alice = self._user("Alice", "alice@example.com")
        self.bob = self._user("Bob", "bob@example.com")

    def _user(self, name: str, email: str) -> User:
        user = User(name=name, email=email, password_hash="x", role="user")
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def _task(self, user: User, name: str, **fields: object) -> Task:
        return create_task(self.db, user.id, TaskCreate(name=name, **fields))


class TestTaskCrud(_DatabaseTestCase):
    def test_create_defaults(self) -> None:
        task = self._task(self.alice, "  Buy milk  ")
        self.assertEqual(task.name, "Buy milk")
        self.assertEqual(task.status, "pending")
        self.assertEqual(task.priority, "medium")
        self.assertEqual(task.tags, [])
        self.assertFalse(task.is_archived)
        self.assertIsNone(task.completed_at)

    def test_update_to_completed_then_back(self) -> None:
        task = self._task(self.alice, "Write report")
        updated = update_task(self.db, self.alice.id, task.id, {"status": "completed"}, now=T0)
        self.assertEqual(updated.status, "completed")
        self.assertIsNotNone(updated.completed_at)
        reopened = update_task(self.db, self.alice.id, task.id, {"status": "pending"})
        self.assertIsNone(reopened.completed_at)

    def test_client_supplied_completed_at_is_ignored(self) -> None:
        task = self._task(self.alice, "Write report")
        updated = update_task(
            self.db, self.alice.id, task.id, {"name": "Renamed", "completed_at": T0}
        )
        self.assertEqual(updated.name, "Renamed")
        self.assertIsNone(updated.completed_at)

    def test_other_owner_cannot_read_update_or_delete(self) -> None:
        task = self._task(self.alice, "Private")
        with self.assertRaises(TaskNotFoundError):
            get_task(self.db, self.bob.id, task.id)
        with self.assertRaises(TaskNotFoundError):
            update_task(self.db, self.bob.id, task.id, {"name": "Hijacked"})
        with self.assertRaises(TaskNotFoundError):
            delete_task(self.db, self.bob.id, task.id)
        self.assertEqual(get_task(self.db, self.alice.id, task.id).name, "Private")

    def test_delete_returns_snapshot(self) -> None:
        task = self._task(self.alice, "Short lived")
        snapshot = delete_task(self.db, self.alice.id, task.id)
        self.assertEqual(snapshot.name, "Short lived")
        with self.assertRaises(TaskNotFoundError):
            get_task(self.db, self.alice.id, task.id)


class TestTaskListing(_DatabaseTestCase):
    def test_filters_search_and_archive(self) -> None:
        self._task(self.alice, "Buy milk", priority="high")
        self._task(self.alice, "Call mom", description="about the milk run")
        archived = self._task(self.alice, "Old milk")
        update_task(self.db, self.alice.id, archived.id, {"is_archived": True})
        self._task(self.bob, "Bob's milk")

        page = list_tasks(self.db, self.alice.id, TaskFilters(search="milk"))
        self.assertEqual(page.total, 2)
        self.assertEqual({t.name for t in page.tasks}, {"Buy milk", "Call mom"})

        page = list_tasks(self.db, self.alice.id, TaskFilters(search="milk", include_archived=True))
        self.assertEqual(page.total, 3)

        page = list_tasks(self.db, self.alice.id, TaskFilters(priority="high"))
        self.assertEqual([t.name for t in page.tasks], ["Buy milk"])

    def test_search_treats_wildcards_literally(self) -> None:
        self._task(self.alice, "100% done")
        self._task(self.alice, "1000 things")
        page = list_tasks(self.db, self.alice.id, TaskFilters(search="0%"))
        self.assertEqual([t.name for t in page.tasks], ["100% done"])

    def test_sort_by_priority_and_paginate(self) -> None:
        for name, priority in (("a", "urgent"), ("b", "low"), ("c", "high"), ("d", "medium")):
            self._task(self.alice, name, priority=priority)
        page = list_tasks(
            self.db,
            self.alice.id,
            TaskFilters(sort_by="priority", sort_order="asc", limit=3, page=1),
        )
        self.assertEqual(page.total, 4)
        self.assertEqual([t.priority for t in page.tasks], ["low", "medium", "high"])
        page = list_tasks(
            self.db,
            self.alice.id,
            TaskFilters(sort_by="priority", sort_order="asc", limit=3, page=2),
        )
        self.assertEqual([t.priority for t in page.tasks], ["urgent"])

    def test_status_counts_and_overdue_skip_archived_and_completed(self) -> None:
        past = datetime.now(UTC) - timedelta(days=2)
        future = datetime.now(UTC) + timedelta(days=2)
        self._task(self.alice, "Late", due_date=past)
        self._task(self.alice, "Soon", due_date=future)
        done = self._task(self.alice, "Late but done", due_date=past)
        update_task(self.db, self.alice.id, done.id, {"status": "completed"})
        hidden = self._task(self.alice, "Late but archived", due_date=past)
        update_task(self.db, self.alice.id, hidden.id, {"is_archived": True})
        self._task(self.bob, "Bob late", due_date=past)

        self.assertEqual(overdue_count(self.db, self.alice.id), 1)
        self.assertEqual(status_counts(self.db, self.alice.id), {"pending": 2, "completed": 1})


class TestDueDates(_DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.now = datetime.now(UTC)
        self._task(self.alice, "late", due_date=self.now - timedelta(days=2))
        self._task(self.alice, "soon", due_date=self.now + timedelta(days=1))
        self._task(self.alice, "later", due_date=self.now + timedelta(days=5))
        self._task(self.alice, "someday")

    def _names(self, **filters: object) -> list[str]:
        return [t.name for t in list_tasks(self.db, self.alice.id, TaskFilters(**filters)).tasks]

    def test_due_range_is_inclusive_and_skips_undated(self) -> None:
        self.assertEqual(
            self._names(due_after=self.now, due_before=self.now + timedelta(days=2)), ["soon"]
        )
        self.assertEqual(
            set(self._names(due_before=self.now + timedelta(days=1))), {"late", "soon"}
        )
        self.assertEqual(set(self._names(due_after=self.now)), {"soon", "later"})

    def test_undated_tasks_sort_last_both_ways(self) -> None:
        self.assertEqual(
            self._names(sort_by="dueDate", sort_order="asc"), ["late", "soon", "later", "someday"]
        )
        self.assertEqual(
            self._names(sort_by="dueDate", sort_order="desc"), ["later", "soon", "late", "someday"]
        )


class TestTaskOverview(_DatabaseTestCase):
    def test_completion_rate_and_trend(self) -> None:
        tasks = [self._task(self.alice, f"Task {i}") for i in range(3)]
        now = datetime.now(UTC)
        update_task(self.db, self.alice.id, tasks[0].id, {"status": "completed"}, now=now)
        overview = task_overview(self.db, self.alice.id, now=now + timedelta(minutes=1))
        self.assertEqual(overview.total_tasks, 3)
        self.assertEqual(overview.completion_rate, 33)
        self.assertEqual(overview.task_stats, {"pending": 2, "completed": 1})
        self.assertEqual(len(overview.productivity_trend), 1)
        self.assertEqual(overview.productivity_trend[0].count, 1)
        self.assertEqual(overview.productivity_trend[0].date, now.date().isoformat())

    def test_empty_overview(self) -> None:
        overview = task_overview(self.db, self.bob.id)
        self.assertEqual(overview.total_tasks, 0)
        self.assertEqual(overview.completion_rate, 0)
        self.assertEqual(overview.productivity_trend, [])


if __name__ == "__main__":
    unittest.main()
