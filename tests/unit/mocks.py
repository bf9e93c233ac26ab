"""Pure Python in-memory fake of the remote task service for unit testing."""

import copy
import json
import re
from datetime import UTC, datetime
from typing import Any

import httpx


BASE_URL = "https://tasks.test/tasks/v1"

_LISTS_PATH = re.compile(r"^/users/@me/lists(?:/(?P<list_id>[^/]+))?$")
_TASKS_PATH = re.compile(r"^/lists/(?P<list_id>[^/]+)/tasks(?:/(?P<task_id>[^/]+))?$")


def _now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _error(status_code: int, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"code": status_code, "message": message}})


class FakeTasksService:
    """In-memory task lists and tasks behind an ``httpx.MockTransport`` handler.

    Supports list/task CRUD, pagination via ``maxResults``/``pageToken``, token
    checks and one-shot failure injection.
    """

    def __init__(self) -> None:
        self.lists: dict[str, dict[str, Any]] = {}
        self.tasks: dict[str, dict[str, dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.valid_tokens: set[str] | None = None
        self._failures: list[dict[str, Any]] = []
        self._id_counter = 1000

    # --- seeding and inspection ---

    def add_list(self, list_id: str, title: str) -> dict[str, Any]:
        record = {"id": list_id, "title": title, "updated": _now()}
        self.lists[list_id] = record
        self.tasks.setdefault(list_id, {})
        return record

    def add_task(self, list_id: str, task_id: str, title: str, **fields: Any) -> dict[str, Any]:
        record = {"id": task_id, "title": title, "status": "needsAction", "updated": _now(), **fields}
        self.tasks.setdefault(list_id, {})[task_id] = record
        return record

    def fail_next(self, status_code: int, *, message: str = "Backend Error", method: str | None = None) -> None:
        """Make the next matching request fail with ``status_code``."""
        self._failures.append({"status_code": status_code, "message": message, "method": method})

    def bodies(self, method: str) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == method and r.content]

    def count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.method == method)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    # --- request handling ---

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.valid_tokens is not None:
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if token not in self.valid_tokens:
                return _error(401, "Invalid Credentials")

        for failure in self._failures:
            if failure["method"] in (None, request.method):
                self._failures.remove(failure)
                return _error(failure["status_code"], failure["message"])

        path = request.url.path.removeprefix(httpx.URL(BASE_URL).path)
        body = json.loads(request.content) if request.content else {}

        if match := _LISTS_PATH.match(path):
            return self._handle_lists(request, match.group("list_id"), body)
        if match := _TASKS_PATH.match(path):
            return self._handle_tasks(request, match.group("list_id"), match.group("task_id"), body)
        return _error(404, "Not Found")

    def _next_id(self, prefix: str) -> str:
        self._id_counter += 1
        return f"{prefix}-{self._id_counter}"

    def _handle_lists(self, request: httpx.Request, list_id: str | None, body: dict[str, Any]) -> httpx.Response:
        if list_id is None:
            if request.method == "GET":
                return httpx.Response(200, json={"items": [copy.deepcopy(v) for v in self.lists.values()]})
            if request.method == "POST":
                record = self.add_list(self._next_id("list"), body.get("title", ""))
                return httpx.Response(200, json=record)
            return _error(405, "Method Not Allowed")

        if list_id not in self.lists:
            return _error(404, "Task list not found")
        if request.method == "PATCH":
            self.lists[list_id].update(body, updated=_now())
            return httpx.Response(200, json=self.lists[list_id])
        if request.method == "DELETE":
            del self.lists[list_id]
            self.tasks.pop(list_id, None)
            return httpx.Response(204)
        return httpx.Response(200, json=self.lists[list_id])

    def _handle_tasks(
        self, request: httpx.Request, list_id: str, task_id: str | None, body: dict[str, Any]
    ) -> httpx.Response:
        if list_id not in self.lists:
            return _error(404, "Task list not found")
        tasks = self.tasks.setdefault(list_id, {})

        if task_id is None:
            if request.method == "POST":
                record = {k: v for k, v in body.items() if v is not None}
                record.update(id=self._next_id("task"), updated=_now(), etag='"e1"')
                tasks[record["id"]] = record
                return httpx.Response(200, json=record)
            return self._list_page(request, tasks)

        if task_id not in tasks:
            return _error(404, "Task not found")
        if request.method == "PATCH":
            record = tasks[task_id]
            for key, value in body.items():
                if value is None:
                    record.pop(key, None)
                else:
                    record[key] = value
            if record.get("status") == "needsAction":
                record.pop("completed", None)
            record["updated"] = _now()
            return httpx.Response(200, json=copy.deepcopy(record))
        if request.method == "DELETE":
            del tasks[task_id]
            return httpx.Response(204)
        return httpx.Response(200, json=copy.deepcopy(tasks[task_id]))

    def _list_page(self, request: httpx.Request, tasks: dict[str, dict[str, Any]]) -> httpx.Response:
        params = request.url.params
        items = list(tasks.values())
        if params.get("showCompleted") != "true":
            items = [t for t in items if t.get("status") != "completed"]

        page_size = int(params.get("maxResults", "100"))
        start = int(params.get("pageToken", "0"))
        page = items[start : start + page_size]

        payload: dict[str, Any] = {"items": copy.deepcopy(page)}
        if start + page_size < len(items):
            payload["nextPageToken"] = str(start + page_size)
        return httpx.Response(200, json=payload)
