"""Typed client for the Google Tasks REST API.

This is the only module that talks to the remote task service. Every task read
is decoded through the metadata codec and every create/update is encoded, so
callers only ever see the local Task shape.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from taskmirror.core.config import constants, settings
from taskmirror.core.errors import ErrorKind, TasksAPIError
from taskmirror.core.metadata_codec import decode_metadata, encode_metadata
from taskmirror.domain.account import TaskList
from taskmirror.domain.task import Task, TaskCreate, TaskStatus, TaskUpdate, normalize_due


logger = logging.getLogger(__name__)


class RemoteTask(BaseModel):
    """A task exactly as the remote service returns it."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    notes: str | None = None
    status: TaskStatus = TaskStatus.NEEDS_ACTION
    due: datetime | None = None
    updated: str | None = None
    completed: str | None = None
    position: str | None = None
    parent: str | None = None
    etag: str | None = None


class RemoteTaskList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    updated: str | None = None


def format_due(value: datetime) -> str:
    """Render a due date the way the remote service stores it (date at UTC midnight)."""
    return normalize_due(value).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def task_from_remote(payload: dict[str, Any], *, account_id: str, list_id: str) -> Task:
    """Materialize the local Task shape, decoding priority out of the notes."""
    remote = RemoteTask.model_validate(payload)
    decoded = decode_metadata(remote.notes)
    return Task(
        id=remote.id,
        title=remote.title,
        notes=decoded.clean_notes,
        due=remote.due,
        status=remote.status,
        priority=decoded.priority,
        list_id=list_id,
        account_id=account_id,
        updated=remote.updated,
        completed=remote.completed,
        position=remote.position,
        parent=remote.parent,
        etag=remote.etag,
    )


def _task_list_from_remote(payload: dict[str, Any], *, account_id: str, account_email: str) -> TaskList:
    remote = RemoteTaskList.model_validate(payload)
    return TaskList(
        id=remote.id,
        title=remote.title,
        updated=remote.updated,
        account_id=account_id,
        account_email=account_email,
    )


def _error_from_response(response: httpx.Response) -> TasksAPIError:
    """Normalize a non-2xx response into a TasksAPIError."""
    message = "API request failed"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            message = str(error["message"])
        elif isinstance(error, str) and error:
            message = error
    return TasksAPIError(message, status_code=response.status_code)


class TasksGateway:
    """Remote task service operations, authenticated per call with a bearer token."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url or settings.tasks_api_base_url
        self._timeout = timeout or constants.API_TIMEOUT_SECONDS
        self._page_size = page_size or settings.tasks_page_size
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("tasks_api_network_error", extra={"method": method, "path": path, "error": str(e)})
            raise TasksAPIError(f"Network error: {e}", kind=ErrorKind.TRANSIENT) from e

        if not response.is_success:
            error = _error_from_response(response)
            logger.warning(
                "tasks_api_error",
                extra={"method": method, "path": path, "status": response.status_code, "kind": error.kind.value},
            )
            raise error

        if response.status_code == constants.HTTP_NO_CONTENT or not response.content:
            return None
        return response.json()

    # Task lists

    async def list_task_lists(self, *, token: str, account_id: str, account_email: str = "") -> list[TaskList]:
        payload = await self._request("GET", "/users/@me/lists", token=token) or {}
        return [
            _task_list_from_remote(item, account_id=account_id, account_email=account_email)
            for item in payload.get("items", [])
        ]

    async def create_task_list(
        self, *, token: str, account_id: str, title: str, account_email: str = ""
    ) -> TaskList:
        payload = await self._request("POST", "/users/@me/lists", token=token, json={"title": title})
        return _task_list_from_remote(payload or {}, account_id=account_id, account_email=account_email)

    async def update_task_list(
        self, *, token: str, account_id: str, list_id: str, title: str, account_email: str = ""
    ) -> TaskList:
        payload = await self._request("PATCH", f"/users/@me/lists/{list_id}", token=token, json={"title": title})
        return _task_list_from_remote(payload or {}, account_id=account_id, account_email=account_email)

    async def delete_task_list(self, *, token: str, list_id: str) -> None:
        await self._request("DELETE", f"/users/@me/lists/{list_id}", token=token)

    # Tasks

    async def list_tasks(
        self,
        *,
        token: str,
        account_id: str,
        list_id: str,
        include_completed: bool = False,
    ) -> list[Task]:
        """Fetch every task in a list, following pagination."""
        flag = "true" if include_completed else "false"
        params = {"maxResults": str(self._page_size), "showCompleted": flag, "showHidden": flag}
        tasks: list[Task] = []

        while True:
            payload = await self._request("GET", f"/lists/{list_id}/tasks", token=token, params=params) or {}
            tasks.extend(
                task_from_remote(item, account_id=account_id, list_id=list_id) for item in payload.get("items", [])
            )
            page_token = payload.get("nextPageToken")
            if not page_token:
                return tasks
            params = {**params, "pageToken": page_token}

    async def get_task(self, *, token: str, account_id: str, list_id: str, task_id: str) -> Task:
        payload = await self._request("GET", f"/lists/{list_id}/tasks/{task_id}", token=token)
        return task_from_remote(payload or {}, account_id=account_id, list_id=list_id)

    async def create_task(self, *, token: str, account_id: str, list_id: str, draft: TaskCreate) -> Task:
        body: dict[str, Any] = {"title": draft.title, "status": TaskStatus.NEEDS_ACTION.value}
        if draft.due is not None:
            body["due"] = format_due(draft.due)

        notes = encode_metadata(draft.notes, draft.priority)
        if notes:
            body["notes"] = notes

        payload = await self._request("POST", f"/lists/{list_id}/tasks", token=token, json=body)
        task = task_from_remote(payload or {}, account_id=account_id, list_id=list_id)
        logger.info("Created remote task", extra={"task_id": task.id, "list_id": list_id, "account_id": account_id})
        return task

    async def update_task(
        self,
        *,
        token: str,
        account_id: str,
        list_id: str,
        task_id: str,
        changes: TaskUpdate,
    ) -> Task:
        """PATCH a task, preserving whatever notes/priority the caller did not supply.

        Priority lives inside the notes field, so the current remote task is read
        first and the notes are rebuilt from the merged values.
        """
        current = await self.get_task(token=token, account_id=account_id, list_id=list_id, task_id=task_id)
        fields = changes.supplied()
        body: dict[str, Any] = {}

        if "title" in fields and fields["title"] is not None:
            body["title"] = fields["title"]

        if fields.get("status") is not None:
            body["status"] = TaskStatus(fields["status"]).value
            if fields["status"] == TaskStatus.COMPLETED:
                body["completed"] = _utc_timestamp()

        if "due" in fields:
            body["due"] = format_due(fields["due"]) if fields["due"] is not None else None

        notes = fields.get("notes")
        priority = fields.get("priority")
        body["notes"] = encode_metadata(
            current.notes if notes is None else notes,
            current.priority if priority is None else priority,
        )

        payload = await self._request("PATCH", f"/lists/{list_id}/tasks/{task_id}", token=token, json=body)
        return task_from_remote(payload or {}, account_id=account_id, list_id=list_id)

    async def delete_task(self, *, token: str, list_id: str, task_id: str) -> None:
        await self._request("DELETE", f"/lists/{list_id}/tasks/{task_id}", token=token)
