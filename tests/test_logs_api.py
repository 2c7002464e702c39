from study_tracker.server.db import SQLiteAuditRepository
from study_tracker.server.repositories import InMemoryAuditRepository

from conftest import BOB_TOKEN, bearer, make_task


def _create(client, headers, **overrides) -> dict:
    payload = make_task(**overrides).model_dump(by_alias=True, mode="json")
    return client.post("/api/tasks", json=payload, headers=headers).json()


def _toggle(client, headers, task: dict, index: int, completed: bool = True, note=None) -> dict:
    sid = task["subtasks"][index]["id"]
    body = {"completed": completed}
    if note is not None:
        body["logMessage"] = note
    return client.patch(f"/api/tasks/{task['id']}/subtasks/{sid}", json=body, headers=headers).json()


class TestActivityEndpoints:
    def test_records_mirror_task_log(self, client, alice):
        task = _create(client, alice)
        toggled = _toggle(client, alice, task, 0, note="note")

        records = client.get(f"/api/logs/{task['id']}", headers=alice).json()
        assert [r["id"] for r in records] == [e["id"] for e in toggled["logs"]]
        system = records[0]
        assert system["taskId"] == task["id"]
        assert system["taskTitle"] == task["title"]
        assert system["parentId"] == records[1]["id"]
        assert system["isSystemLog"] is True
        assert system["progress"] == 50

    def test_audit_survives_delete(self, client, alice):
        task = _create(client, alice)
        _toggle(client, alice, task, 0)
        _toggle(client, alice, task, 0, completed=False)
        assert client.delete(f"/api/tasks/{task['id']}", headers=alice).status_code == 204

        records = client.get(f"/api/logs/{task['id']}", headers=alice).json()
        assert [r["message"] for r in records] == ["Unchecked: Read chapter 4", "Completed: Read chapter 4"]

    def test_recent_across_tasks_newest_first(self, client, alice):
        first = _create(client, alice, title="First")
        second = _create(client, alice, title="Second")
        _toggle(client, alice, first, 0)
        _toggle(client, alice, second, 1)

        records = client.get("/api/logs", headers=alice).json()
        assert [r["taskTitle"] for r in records] == ["Second", "First"]

    def test_recent_is_bounded(self, client, alice, monkeypatch):
        monkeypatch.setenv("AUDIT_RECENT_LIMIT", "2")
        task = _create(client, alice)
        for completed in (True, False, True):
            _toggle(client, alice, task, 0, completed=completed)
        records = client.get("/api/logs", headers=alice).json()
        assert len(records) == 2
        assert records[0]["message"] == "Completed: Read chapter 4"

    def test_records_are_scoped_per_user(self, client, alice):
        task = _create(client, alice)
        _toggle(client, alice, task, 0)
        bob = bearer(BOB_TOKEN)
        assert client.get("/api/logs", headers=bob).json() == []
        assert client.get(f"/api/logs/{task['id']}", headers=bob).json() == []

    def test_requires_credential(self, client):
        assert client.get("/api/logs").status_code == 401


def _record(seq: int, timestamp: int, task_id: str = "t1", user_id: str = "alice") -> dict:
    return {
        "id": f"e{seq}",
        "user_id": user_id,
        "task_id": task_id,
        "task_title": "Title",
        "message": f"message {seq}",
        "progress": 0,
        "timestamp": timestamp,
        "parent_id": None,
        "is_system_log": True,
    }


class TestAuditRepositories:
    def _exercise(self, repo):
        repo.record(_record(1, 100))
        repo.record(_record(2, 100))
        repo.record(_record(3, 50, task_id="t2"))
        repo.record(_record(4, 200, user_id="bob"))

        assert [r["id"] for r in repo.recent("alice", 10)] == ["e2", "e1", "e3"]
        assert [r["id"] for r in repo.recent("alice", 1)] == ["e2"]
        assert [r["id"] for r in repo.for_task("alice", "t1")] == ["e2", "e1"]
        assert repo.for_task("alice", "missing") == []
        assert repo.recent("alice", 10)[0] == _record(2, 100)

    def test_in_memory(self):
        self._exercise(InMemoryAuditRepository())

    def test_sqlite(self, tmp_path):
        self._exercise(SQLiteAuditRepository(str(tmp_path / "audit.db")))
