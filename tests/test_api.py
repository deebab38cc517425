"""
Tests for API Layer
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from taskmanager.api.app import create_app
from taskmanager.api.deps import get_service, get_store
from taskmanager.api.tasks import parse_if_match
from taskmanager.tasks import InMemoryTaskStore, TaskService
from taskmanager.tasks.store import ALL_TASKS


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def task_store():
    """Fresh in-memory store per test."""
    return InMemoryTaskStore()


@pytest.fixture
def app(task_store):
    """Create test app with the store dependencies overridden."""
    application = create_app()
    service = TaskService(task_store)

    application.dependency_overrides[get_store] = lambda: task_store
    application.dependency_overrides[get_service] = lambda: service

    return application


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


def iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


def create(client, **body):
    body.setdefault("title", "Task")
    response = client.post("/api/tasks", json=body)
    assert response.status_code == 201, response.text
    return response


# =============================================================================
# Create
# =============================================================================

class TestCreateTask:
    """Tests for POST /api/tasks."""

    def test_create(self, client):
        response = client.post("/api/tasks", json={
            "title": "Buy milk",
            "priority": 4,
            "dueDate": iso(timedelta(days=-1)),
        })

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Buy milk"
        assert data["isComplete"] is False
        assert data["completedDate"] is None
        assert data["priorityText"] == "High"
        assert data["isOverdue"] is True
        assert response.headers["Location"].endswith(f"/api/tasks/{data['id']}")
        assert response.headers["ETag"].startswith('"')

    def test_default_priority(self, client):
        data = create(client).json()
        assert data["priority"] == 3
        assert data["priorityText"] == "Normal"

    def test_field_validation(self, client):
        response = client.post("/api/tasks", json={"title": "   ", "priority": 9})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "validation_error"
        assert [d["field"] for d in data["details"]] == ["title", "priority"]

    def test_missing_title(self, client):
        response = client.post("/api/tasks", json={"description": "no title"})
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "title"

    def test_malformed_body(self, client):
        response = client.post("/api/tasks", json={"title": "x", "priority": "urgent"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "validation_error"
        assert data["details"][0]["field"] == "priority"


# =============================================================================
# Read
# =============================================================================

class TestReadTasks:
    """Tests for GET endpoints."""

    def test_get_task(self, client):
        created = create(client, title="Read me")
        task_id = created.json()["id"]

        response = client.get(f"/api/tasks/{task_id}")

        assert response.status_code == 200
        assert response.json()["title"] == "Read me"
        assert response.headers["ETag"] == created.headers["ETag"]

    def test_get_missing(self, client):
        response = client.get("/api/tasks/999")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "not_found"
        assert "999" in data["message"]

    def test_get_non_numeric_id(self, client):
        assert client.get("/api/tasks/abc").status_code == 400

    def test_list_newest_first(self, client):
        first = create(client, title="first").json()["id"]
        second = create(client, title="second").json()["id"]

        response = client.get("/api/tasks")

        assert response.status_code == 200
        assert [t["id"] for t in response.json()] == [second, first]

    def test_list_by_status(self, client):
        pending = create(client, title="pending").json()["id"]
        done = create(client, title="done").json()["id"]
        client.patch(f"/api/tasks/{done}/complete")

        assert [t["id"] for t in client.get("/api/tasks/status/true").json()] == [done]
        assert [t["id"] for t in client.get("/api/tasks/status/false").json()] == [pending]

    def test_list_by_priority(self, client):
        create(client, title="low", priority=1)
        high = create(client, title="high", priority=5).json()["id"]

        response = client.get("/api/tasks/priority/5")
        assert [t["id"] for t in response.json()] == [high]

    @pytest.mark.parametrize("priority", ["0", "6"])
    def test_list_by_priority_out_of_range(self, client, priority):
        response = client.get(f"/api/tasks/priority/{priority}")

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_argument"

    def test_list_by_priority_not_a_number(self, client):
        assert client.get("/api/tasks/priority/high").status_code == 400

    def test_list_overdue(self, client):
        older = create(client, title="older", dueDate=iso(timedelta(days=-5))).json()["id"]
        newer = create(client, title="newer", dueDate=iso(timedelta(days=-1))).json()["id"]
        create(client, title="future", dueDate=iso(timedelta(days=2)))

        response = client.get("/api/tasks/overdue")

        assert response.status_code == 200
        assert [t["id"] for t in response.json()] == [older, newer]


# =============================================================================
# Update / Complete / Delete
# =============================================================================

class TestModifyTasks:
    """Tests for PUT, PATCH and DELETE."""

    def test_update(self, client):
        created = create(client, title="Old")
        task_id = created.json()["id"]

        response = client.put(
            f"/api/tasks/{task_id}",
            json={"title": "New", "priority": 2, "isComplete": True},
            headers={"If-Match": created.headers["ETag"]},
        )

        assert response.status_code == 204
        assert response.headers["ETag"] != created.headers["ETag"]
        data = client.get(f"/api/tasks/{task_id}").json()
        assert data["title"] == "New"
        assert data["isComplete"] is True
        assert data["completedDate"] is not None

    def test_update_stale_etag(self, client):
        created = create(client)
        task_id = created.json()["id"]
        stale = created.headers["ETag"]
        client.put(f"/api/tasks/{task_id}", json={"title": "First"}, headers={"If-Match": stale})

        response = client.put(
            f"/api/tasks/{task_id}", json={"title": "Second"}, headers={"If-Match": stale}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "concurrency_conflict"
        assert client.get(f"/api/tasks/{task_id}").json()["title"] == "First"

    def test_update_without_if_match(self, client):
        task_id = create(client).json()["id"]
        response = client.put(f"/api/tasks/{task_id}", json={"title": "Blind write"})
        assert response.status_code == 204

    def test_update_missing(self, client):
        response = client.put("/api/tasks/404", json={"title": "x"})
        assert response.status_code == 404

    def test_update_invalid(self, client):
        task_id = create(client).json()["id"]
        response = client.put(f"/api/tasks/{task_id}", json={"title": "t" * 101})

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "title"

    def test_complete_idempotent(self, client):
        task_id = create(client, dueDate=iso(timedelta(days=-1))).json()["id"]

        first = client.patch(f"/api/tasks/{task_id}/complete")
        second = client.patch(f"/api/tasks/{task_id}/complete")

        assert first.status_code == 200
        assert first.json()["isComplete"] is True
        assert first.json()["isOverdue"] is False
        assert second.json()["completedDate"] == first.json()["completedDate"]
        assert second.headers["ETag"] == first.headers["ETag"]

    def test_complete_missing(self, client):
        assert client.patch("/api/tasks/12/complete").status_code == 404

    def test_delete(self, client):
        task_id = create(client).json()["id"]

        response = client.delete(f"/api/tasks/{task_id}")

        assert response.status_code == 204
        assert client.get(f"/api/tasks/{task_id}").status_code == 404

    def test_delete_missing(self, client):
        assert client.delete("/api/tasks/3").status_code == 404


# =============================================================================
# Statistics
# =============================================================================

class TestStatistics:
    """Tests for GET /api/tasks/statistics."""

    def test_empty(self, client):
        response = client.get("/api/tasks/statistics")

        assert response.status_code == 200
        assert response.json() == {
            "total": 0,
            "completed": 0,
            "pending": 0,
            "overdue": 0,
            "highPriority": 0,
            "completionRate": 0.0,
        }

    def test_counts(self, client):
        overdue = create(client, priority=5, dueDate=iso(timedelta(days=-1))).json()["id"]
        create(client, priority=1)
        done = create(client, priority=4).json()["id"]
        client.patch(f"/api/tasks/{done}/complete")

        data = client.get("/api/tasks/statistics").json()

        assert data["total"] == 3
        assert data["completed"] == 1
        assert data["pending"] == 2
        assert data["overdue"] == 1
        assert data["highPriority"] == 1
        assert data["completionRate"] == 33.33

        client.patch(f"/api/tasks/{overdue}/complete")
        assert client.get("/api/tasks/statistics").json()["overdue"] == 0


# =============================================================================
# Service endpoints
# =============================================================================

class TestServiceEndpoints:
    """Tests for health, info and request plumbing."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "checks": {"store": "ok"}}

    def test_api_info(self, client):
        data = client.get("/api").json()
        assert data["endpoints"]["tasks"] == "/api/tasks"

    def test_request_id_header(self, client):
        response = client.get("/api/tasks")
        assert len(response.headers["X-Request-ID"]) == 8

    def test_invalid_request_timeout(self, client):
        response = client.get("/api/tasks", headers={"X-Request-Timeout": "0"})
        assert response.status_code == 400

    def test_short_request_timeout_accepted(self, client):
        response = client.get("/api/tasks", headers={"X-Request-Timeout": "5"})
        assert response.status_code == 200

    def test_store_calls_run_off_event_loop(self):
        store = LoopTrackingStore()
        application = create_app()
        service = TaskService(store)
        application.dependency_overrides[get_store] = lambda: store
        application.dependency_overrides[get_service] = lambda: service

        with TestClient(application) as test_client:
            assert test_client.get("/api/tasks").status_code == 200
            assert test_client.get("/health").status_code == 200

        assert store.calls_on_loop == [False, False]


class LoopTrackingStore(InMemoryTaskStore):
    """Records whether each list/ping call ran on a thread with a running event loop."""

    def __init__(self):
        super().__init__()
        self.calls_on_loop = []

    def _record(self):
        try:
            asyncio.get_running_loop()
            self.calls_on_loop.append(True)
        except RuntimeError:
            self.calls_on_loop.append(False)

    def list(self, task_filter=ALL_TASKS, deadline=None):
        self._record()
        return super().list(task_filter, deadline=deadline)

    def ping(self):
        self._record()
        return super().ping()


class TestIfMatchParsing:
    """Tests for If-Match header parsing."""

    def test_quoted(self):
        assert parse_if_match('"abc123"') == "abc123"

    def test_weak(self):
        assert parse_if_match('W/"abc123"') == "abc123"

    def test_unquoted(self):
        assert parse_if_match("abc123") == "abc123"

    def test_any(self):
        assert parse_if_match("*") is None
        assert parse_if_match(None) is None
        assert parse_if_match("  ") is None
