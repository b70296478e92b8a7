"""HTTP tests for the task endpoints: defaults, status timestamps, filters, stats and ownership."""

import unittest
from datetime import UTC, datetime, timedelta

from test_api_auth import ApiTestCase


class TaskApiTestCase(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.token = self.signup()["accessToken"]

    def create(self, token: str | None = None, **body: object) -> dict:
        resp = self.client.post(
            self.url("/tasks"), json=body, headers=self.bearer(token or self.token)
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["data"]["task"]

    def patch_task(self, task_id: int, **body: object) -> dict:
        resp = self.client.patch(
            self.url(f"/tasks/{task_id}"), json=body, headers=self.bearer(self.token)
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()["data"]["task"]

    def list_tasks(self, **params: str) -> dict:
        resp = self.client.get(self.url("/tasks"), params=params, headers=self.bearer(self.token))
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()["data"]


class TestCreateTask(TaskApiTestCase):
    def test_defaults(self) -> None:
        task = self.create(name="Buy milk")
        self.assertEqual(task["name"], "Buy milk")
        self.assertEqual(task["status"], "pending")
        self.assertEqual(task["priority"], "medium")
        self.assertEqual(task["description"], "")
        self.assertEqual(task["tags"], [])
        self.assertIsNone(task["completedAt"])
        self.assertFalse(task["isArchived"])
        self.assertFalse(task["isOverdue"])

    def test_missing_name_uses_placeholder(self) -> None:
        task = self.create()
        self.assertEqual(task["name"], "Untitled Task")

    def test_status_in_body_is_ignored(self) -> None:
        task = self.create(name="Sneaky", status="completed")
        self.assertEqual(task["status"], "pending")
        self.assertIsNone(task["completedAt"])

    def test_blank_name_is_rejected(self) -> None:
        resp = self.client.post(
            self.url("/tasks"), json={"name": "   "}, headers=self.bearer(self.token)
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["errors"][0]["field"], "name")

    def test_bad_priority_is_rejected(self) -> None:
        resp = self.client.post(
            self.url("/tasks"),
            json={"name": "x", "priority": "whenever"},
            headers=self.bearer(self.token),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Validation failed")

    def test_requires_auth(self) -> None:
        resp = self.client.post(self.url("/tasks"), json={"name": "x"})
        self.assertEqual(resp.status_code, 401)


class TestUpdateTask(TaskApiTestCase):
    def test_completed_and_back_to_pending(self) -> None:
        task = self.create(name="Write report")
        done = self.patch_task(task["id"], status="completed")
        self.assertEqual(done["status"], "completed")
        self.assertIsNotNone(done["completedAt"])

        again = self.patch_task(task["id"], status="completed")
        self.assertEqual(again["completedAt"], done["completedAt"])

        reopened = self.patch_task(task["id"], status="pending")
        self.assertIsNone(reopened["completedAt"])

    def test_unknown_and_readonly_fields_are_ignored(self) -> None:
        task = self.create(name="Write report")
        updated = self.patch_task(
            task["id"], name="Write summary", userId=999, completedAt="2020-01-01T00:00:00Z"
        )
        self.assertEqual(updated["name"], "Write summary")
        self.assertEqual(updated["userId"], task["userId"])
        self.assertIsNone(updated["completedAt"])

    def test_due_date_can_be_cleared(self) -> None:
        task = self.create(name="Pay rent", dueDate="2030-01-01T00:00:00Z")
        self.assertIsNotNone(task["dueDate"])
        updated = self.patch_task(task["id"], dueDate=None)
        self.assertIsNone(updated["dueDate"])
        self.assertIsNone(updated["daysUntilDue"])

    def test_archive_and_restore(self) -> None:
        task = self.create(name="Old idea")
        self.patch_task(task["id"], isArchived=True)
        self.assertEqual(self.list_tasks()["tasks"], [])
        self.assertEqual(len(self.list_tasks(includeArchived="true")["tasks"]), 1)
        self.patch_task(task["id"], isArchived=False)
        self.assertEqual(len(self.list_tasks()["tasks"]), 1)

    def test_non_integer_id_is_validation_error(self) -> None:
        resp = self.client.get(self.url("/tasks/abc"), headers=self.bearer(self.token))
        self.assertEqual(resp.status_code, 400)


class TestListTasks(TaskApiTestCase):
    def test_status_filter_and_stats(self) -> None:
        a = self.create(name="A")
        self.create(name="B")
        self.create(name="C")
        self.patch_task(a["id"], status="completed")

        data = self.list_tasks(status="completed")
        self.assertEqual([t["name"] for t in data["tasks"]], ["A"])
        self.assertEqual(data["pagination"]["totalTasks"], 1)
        self.assertEqual(data["stats"], {"pending": 2, "completed": 1})

    def test_newest_first_by_default(self) -> None:
        for name in ("first", "second", "third"):
            self.create(name=name)
        data = self.list_tasks()
        self.assertEqual([t["name"] for t in data["tasks"]], ["third", "second", "first"])

    def test_pagination(self) -> None:
        for i in range(5):
            self.create(name=f"Task {i}")
        data = self.list_tasks(limit="2", page="2")
        self.assertEqual(len(data["tasks"]), 2)
        self.assertEqual(
            data["pagination"],
            {
                "currentPage": 2,
                "totalPages": 3,
                "totalTasks": 5,
                "hasNextPage": True,
                "hasPrevPage": True,
                "limit": 2,
            },
        )

    def test_due_date_range(self) -> None:
        now = datetime.now(UTC)
        self.create(name="a", dueDate=(now - timedelta(days=2)).isoformat())
        self.create(name="b", dueDate=(now + timedelta(days=1)).isoformat())
        self.create(name="c", dueDate=(now + timedelta(days=5)).isoformat())
        self.create(name="d")

        data = self.list_tasks(
            dueAfter=now.isoformat(), dueBefore=(now + timedelta(days=2)).isoformat()
        )
        self.assertEqual([t["name"] for t in data["tasks"]], ["b"])
        self.assertEqual(data["pagination"]["totalTasks"], 1)

        data = self.list_tasks(sortBy="dueDate", sortOrder="asc")
        self.assertEqual([t["name"] for t in data["tasks"]], ["a", "b", "c", "d"])

    def test_limit_over_cap_is_rejected(self) -> None:
        resp = self.client.get(
            self.url("/tasks"), params={"limit": "101"}, headers=self.bearer(self.token)
        )
        self.assertEqual(resp.status_code, 400)

    def test_overdue_count_matches_overview(self) -> None:
        late = self.create(name="Late", dueDate="2020-01-01T00:00:00Z")
        self.create(name="Also late", dueDate="2021-06-01T00:00:00Z")
        self.create(name="Future", dueDate="2099-01-01T00:00:00Z")
        self.assertTrue(late["isOverdue"])

        listed = self.list_tasks()
        overview = self.client.get(
            self.url("/tasks/stats/overview"), headers=self.bearer(self.token)
        ).json()["data"]
        self.assertEqual(listed["overdueCount"], 2)
        self.assertEqual(overview["overdueCount"], 2)
        self.assertEqual(overview["taskStats"], listed["stats"])

        self.patch_task(late["id"], status="completed")
        self.assertEqual(self.list_tasks()["overdueCount"], 1)


class TestOwnership(TaskApiTestCase):
    def test_other_users_task_is_not_found(self) -> None:
        task = self.create(name="Mine")
        other = self.signup(name="Eve Intruder", email="eve@example.com")["accessToken"]
        headers = self.bearer(other)

        for method in ("get", "delete"):
            resp = getattr(self.client, method)(self.url(f"/tasks/{task['id']}"), headers=headers)
            self.assertEqual(resp.status_code, 404)
            self.assertEqual(resp.json(), {"success": False, "message": "Task not found"})
        resp = self.client.patch(
            self.url(f"/tasks/{task['id']}"), json={"name": "Stolen"}, headers=headers
        )
        self.assertEqual(resp.status_code, 404)

        listed = self.client.get(self.url("/tasks"), headers=headers).json()["data"]
        self.assertEqual(listed["tasks"], [])
        self.assertEqual(self.list_tasks()["tasks"][0]["name"], "Mine")

    def test_delete_returns_deleted_task(self) -> None:
        task = self.create(name="Temporary")
        resp = self.client.delete(self.url(f"/tasks/{task['id']}"), headers=self.bearer(self.token))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["task"]["id"], task["id"])
        resp = self.client.get(self.url(f"/tasks/{task['id']}"), headers=self.bearer(self.token))
        self.assertEqual(resp.status_code, 404)


if __name__ == "__main__":
    unittest.main()
