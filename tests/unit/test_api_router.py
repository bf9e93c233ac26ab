"""Tests for the HTTP proxy endpoints."""

from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from taskmirror.core.errors import TokenRefreshError
from taskmirror.interface.api_router import get_gateway, get_token_refresher
from taskmirror.interface.oauth_client import TokenGrant
from taskmirror.interface.tasks_gateway import TasksGateway
from taskmirror.main import app
from tests.unit.mocks import BASE_URL, FakeTasksService


AUTH = {"Authorization": "Bearer user-token"}


@pytest.fixture
def refresher() -> AsyncMock:
    return AsyncMock(return_value=TokenGrant(access_token="new-access", expires_at=1700000000))


@pytest.fixture
def client(fake_remote: FakeTasksService, refresher: AsyncMock) -> Iterator[TestClient]:
    """Test client whose gateway talks to the in-memory remote."""
    fake_remote.add_list("list-1", "Inbox")
    app.dependency_overrides[get_gateway] = lambda: TasksGateway(base_url=BASE_URL, transport=fake_remote.transport)
    app.dependency_overrides[get_token_refresher] = lambda: refresher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.unit
def test_health_endpoint_returns_healthy(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
class TestAuthentication:
    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "}])
    def test_missing_bearer_token_rejected(self, client: TestClient, fake_remote: FakeTasksService, headers):
        response = client.get("/api/tasks/lists", headers=headers)

        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}
        assert fake_remote.requests == []

    def test_bearer_token_forwarded(self, client: TestClient, fake_remote: FakeTasksService):
        client.get("/api/tasks/lists", headers=AUTH)

        assert fake_remote.requests[-1].headers["Authorization"] == "Bearer user-token"

    def test_expired_remote_token_mapped(self, client: TestClient, fake_remote: FakeTasksService):
        fake_remote.fail_next(401, message="Invalid Credentials")

        response = client.get("/api/tasks/lists", headers=AUTH)

        assert response.status_code == 401
        assert response.json() == {"detail": {"error": "Token expired", "code": "TOKEN_EXPIRED"}}


@pytest.mark.unit
class TestTaskLists:
    def test_list_task_lists(self, client: TestClient):
        response = client.get("/api/tasks/lists", headers={**AUTH, "X-Account-Id": "acct-work"})

        assert response.status_code == 200
        [inbox] = response.json()
        assert (inbox["id"], inbox["title"], inbox["account_id"]) == ("list-1", "Inbox", "acct-work")

    def test_create_task_list_trims_title(self, client: TestClient, fake_remote: FakeTasksService):
        response = client.post("/api/tasks/lists", json={"title": "  Errands "}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["title"] == "Errands"
        assert fake_remote.bodies("POST") == [{"title": "Errands"}]

    def test_create_task_list_requires_title(self, client: TestClient, fake_remote: FakeTasksService):
        response = client.post("/api/tasks/lists", json={"title": "   "}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"detail": "title is required"}
        assert fake_remote.requests == []

    def test_delete_task_list(self, client: TestClient, fake_remote: FakeTasksService):
        response = client.delete("/api/tasks/lists", params={"listId": "list-1"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert "list-1" not in fake_remote.lists

    def test_delete_task_list_requires_id(self, client: TestClient):
        response = client.delete("/api/tasks/lists", headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"detail": "listId is required"}


@pytest.mark.unit
class TestTasks:
    def test_get_tasks_without_list_returns_lists(self, client: TestClient):
        response = client.get("/api/tasks", headers=AUTH)

        assert response.status_code == 200
        assert [item["id"] for item in response.json()] == ["list-1"]

    def test_get_tasks_decodes_priority(self, client: TestClient, fake_remote: FakeTasksService):
        fake_remote.add_task("list-1", "t1", "Report", notes='<!--gtm:{"priority":2}-->\nDraft')
        fake_remote.add_task("list-1", "t2", "Old", status="completed")

        response = client.get("/api/tasks", params={"listId": "list-1"}, headers=AUTH)

        assert response.status_code == 200
        [task] = response.json()
        assert (task["id"], task["priority"], task["notes"]) == ("t1", 2, "Draft")
        assert task["account_id"] == "me"

    def test_get_tasks_show_completed(self, client: TestClient, fake_remote: FakeTasksService):
        fake_remote.add_task("list-1", "t1", "Open")
        fake_remote.add_task("list-1", "t2", "Old", status="completed")

        response = client.get("/api/tasks", params={"listId": "list-1", "showCompleted": "true"}, headers=AUTH)

        assert {task["id"] for task in response.json()} == {"t1", "t2"}

    def test_create_task(self, client: TestClient, fake_remote: FakeTasksService):
        response = client.post(
            "/api/tasks",
            json={"listId": "list-1", "title": " Write report ", "due": "2024-01-11T15:30:00Z", "priority": 1},
            headers=AUTH,
        )

        assert response.status_code == 200
        task = response.json()
        assert (task["title"], task["priority"], task["list_id"]) == ("Write report", 1, "list-1")

        [sent] = fake_remote.bodies("POST")
        assert sent["due"] == "2024-01-11T00:00:00.000Z"
        assert sent["notes"] == '<!--gtm:{"priority":1}-->'

    def test_create_task_requires_list_and_title(self, client: TestClient, fake_remote: FakeTasksService):
        response = client.post("/api/tasks", json={"title": ""}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"detail": "listId and title are required"}
        assert fake_remote.requests == []

    def test_update_task_applies_only_supplied_fields(self, client: TestClient, fake_remote: FakeTasksService):
        fake_remote.add_task("list-1", "t1", "Report", notes='<!--gtm:{"priority":2}-->\nDraft')

        response = client.patch(
            "/api/tasks", json={"listId": "list-1", "taskId": "t1", "status": "completed"}, headers=AUTH
        )

        assert response.status_code == 200
        task = response.json()
        assert (task["title"], task["status"], task["priority"]) == ("Report", "completed", 2)
        assert task["completed"] is not None

        [sent] = fake_remote.bodies("PATCH")
        assert "title" not in sent
        assert sent["notes"] == '<!--gtm:{"priority":2}-->\nDraft'

    def test_update_task_requires_ids(self, client: TestClient):
        response = client.patch("/api/tasks", json={"title": "x"}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"detail": "listId and taskId are required"}

    def test_delete_task(self, client: TestClient, fake_remote: FakeTasksService):
        fake_remote.add_task("list-1", "t1", "Report")

        response = client.delete("/api/tasks", params={"listId": "list-1", "taskId": "t1"}, headers=AUTH)

        assert response.json() == {"success": True}
        assert fake_remote.tasks["list-1"] == {}

    def test_delete_missing_task_is_404(self, client: TestClient):
        response = client.delete("/api/tasks", params={"listId": "list-1", "taskId": "nope"}, headers=AUTH)

        assert response.status_code == 404

    def test_remote_outage_is_502(self, client: TestClient, fake_remote: FakeTasksService):
        fake_remote.fail_next(503)

        response = client.get("/api/tasks", params={"listId": "list-1"}, headers=AUTH)

        assert response.status_code == 502


@pytest.mark.unit
class TestAccounts:
    def test_refresh_returns_new_token(self, client: TestClient, refresher: AsyncMock):
        response = client.post("/api/accounts/refresh", json={"refreshToken": "r1"})

        assert response.status_code == 200
        assert response.json() == {"accessToken": "new-access", "expiresAt": 1700000000, "refreshToken": None}
        refresher.assert_awaited_once_with("r1")

    def test_refresh_failure(self, client: TestClient, refresher: AsyncMock):
        refresher.side_effect = TokenRefreshError("invalid_grant")

        response = client.post("/api/accounts/refresh", json={"refreshToken": "revoked"})

        assert response.status_code == 401
        assert response.json() == {"detail": {"error": "Failed to refresh token", "code": "REFRESH_FAILED"}}

    def test_refresh_requires_token(self, client: TestClient, refresher: AsyncMock):
        response = client.post("/api/accounts/refresh", json={})

        assert response.status_code == 400
        refresher.assert_not_awaited()

    def test_account_tasks_uses_supplied_token(self, client: TestClient, fake_remote: FakeTasksService):
        fake_remote.add_task("list-1", "t1", "Laundry")

        response = client.post(
            "/api/accounts/tasks",
            json={"accessToken": "second-token", "accountId": "acct-personal", "listId": "list-1"},
        )

        assert response.status_code == 200
        [task] = response.json()
        assert task["account_id"] == "acct-personal"
        assert fake_remote.requests[-1].headers["Authorization"] == "Bearer second-token"

    def test_account_tasks_requires_token_and_account(self, client: TestClient):
        response = client.post("/api/accounts/tasks", json={"listId": "list-1"})

        assert response.status_code == 400
        assert response.json() == {"detail": "accessToken and accountId are required"}


@pytest.mark.unit
class TestQuickAddParse:
    def test_parses_date_and_account(self, client: TestClient):
        response = client.post(
            "/api/quick-add/parse",
            json={
                "text": "call mom tomorrow #bob",
                "accounts": [{"id": "acct-personal", "email": "bob.personal@gmail.com", "name": "Bob"}],
                "today": "2024-01-10",
            },
        )

        assert response.status_code == 200
        intent = response.json()
        assert intent["title"] == "call mom"
        assert intent["account_id"] == "acct-personal"
        assert intent["due"].startswith("2024-01-11T00:00:00")

    def test_requires_text(self, client: TestClient):
        response = client.post("/api/quick-add/parse", json={"text": "  "})

        assert response.status_code == 400
