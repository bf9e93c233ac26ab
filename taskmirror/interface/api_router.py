"""HTTP proxy in front of the remote task service.

Callers authenticate with their own bearer token; the proxy never stores it.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from taskmirror.core.date_parser import parse_quick_add
from taskmirror.core.errors import ErrorKind, TasksAPIError, TokenRefreshError
from taskmirror.domain.account import AccountDescriptor, TaskList
from taskmirror.domain.task import DEFAULT_PRIORITY, Priority, QuickAddIntent, Task, TaskCreate, TaskStatus, TaskUpdate
from taskmirror.interface.oauth_client import TokenGrant, refresh_access_token
from taskmirror.interface.tasks_gateway import TasksGateway


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tasks"])

T = TypeVar("T")

TokenRefresher = Callable[[str], Awaitable[TokenGrant]]

DEFAULT_ACCOUNT_ID = "me"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateTaskListRequest(CamelModel):
    title: str = ""


class CreateTaskRequest(CamelModel):
    list_id: str = Field(default="", alias="listId")
    title: str = ""
    notes: str = ""
    due: datetime | None = None
    priority: Priority = DEFAULT_PRIORITY


class UpdateTaskRequest(CamelModel):
    """Partial edit; only the keys present in the body are applied."""

    list_id: str = Field(default="", alias="listId")
    task_id: str = Field(default="", alias="taskId")
    title: str | None = None
    notes: str | None = None
    due: datetime | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None

    def changes(self) -> TaskUpdate:
        supplied = self.model_fields_set - {"list_id", "task_id"}
        return TaskUpdate.model_validate(self.model_dump(include=supplied))


class RefreshRequest(CamelModel):
    refresh_token: str = Field(default="", alias="refreshToken")


class RefreshResponse(CamelModel):
    access_token: str = Field(..., alias="accessToken")
    expires_at: int = Field(..., alias="expiresAt")
    refresh_token: str | None = Field(default=None, alias="refreshToken")


class AccountTasksRequest(CamelModel):
    access_token: str = Field(default="", alias="accessToken")
    account_id: str = Field(default="", alias="accountId")
    list_id: str | None = Field(default=None, alias="listId")
    show_completed: bool = Field(default=False, alias="showCompleted")


class QuickAddParseRequest(CamelModel):
    text: str = ""
    accounts: list[AccountDescriptor] = Field(default_factory=list)
    today: date | None = None


# --- dependencies ---


def get_gateway() -> TasksGateway:
    return TasksGateway()


def get_token_refresher() -> TokenRefresher:
    return refresh_access_token


async def require_bearer_token(authorization: str | None = Header(default=None)) -> str:
    """Extract the caller's bearer token or reject the request."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        logger.warning("api_auth_missing_bearer")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return token.strip()


async def account_id_header(x_account_id: str | None = Header(default=None)) -> str:
    return x_account_id or DEFAULT_ACCOUNT_ID


# --- helpers ---


def http_error_for(error: TasksAPIError) -> HTTPException:
    """Translate a remote failure into the proxy's HTTP response."""
    match error.kind:
        case ErrorKind.AUTH_EXPIRED:
            return HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Token expired", "code": "TOKEN_EXPIRED"},
            )
        case ErrorKind.NOT_FOUND:
            return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)
        case ErrorKind.VALIDATION:
            return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error.message)


async def _proxy(call: Awaitable[T], *, action: str) -> T:
    try:
        return await call
    except TasksAPIError as e:
        logger.error("api_proxy_failed", extra={"action": action, "status": e.status_code, "kind": e.kind.value})
        raise http_error_for(e) from e


def _require(**params: str | None) -> None:
    missing = [name for name, value in params.items() if not value]
    if missing:
        verb = "is" if len(missing) == 1 else "are"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{' and '.join(missing)} {verb} required")


def _dump(items: Sequence[BaseModel]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


async def _lists_or_tasks(
    gateway: TasksGateway,
    *,
    token: str,
    account_id: str,
    list_id: str | None,
    include_completed: bool,
) -> list[dict[str, Any]]:
    if not list_id:
        lists = await _proxy(gateway.list_task_lists(token=token, account_id=account_id), action="list_task_lists")
        return _dump(lists)
    tasks = await _proxy(
        gateway.list_tasks(token=token, account_id=account_id, list_id=list_id, include_completed=include_completed),
        action="list_tasks",
    )
    return _dump(tasks)


# --- task lists ---


@router.get("/tasks/lists")
async def get_task_lists(
    token: str = Depends(require_bearer_token),
    account_id: str = Depends(account_id_header),
    gateway: TasksGateway = Depends(get_gateway),
) -> list[TaskList]:
    return await _proxy(gateway.list_task_lists(token=token, account_id=account_id), action="list_task_lists")


@router.post("/tasks/lists")
async def create_task_list(
    body: CreateTaskListRequest,
    token: str = Depends(require_bearer_token),
    account_id: str = Depends(account_id_header),
    gateway: TasksGateway = Depends(get_gateway),
) -> TaskList:
    title = body.title.strip()
    _require(title=title)
    return await _proxy(
        gateway.create_task_list(token=token, account_id=account_id, title=title),
        action="create_task_list",
    )


@router.delete("/tasks/lists")
async def delete_task_list(
    list_id: str | None = Query(default=None, alias="listId"),
    token: str = Depends(require_bearer_token),
    gateway: TasksGateway = Depends(get_gateway),
) -> dict[str, bool]:
    _require(listId=list_id)
    await _proxy(gateway.delete_task_list(token=token, list_id=list_id), action="delete_task_list")
    return {"success": True}


# --- tasks ---


@router.get("/tasks")
async def get_tasks(
    list_id: str | None = Query(default=None, alias="listId"),
    show_completed: bool = Query(default=False, alias="showCompleted"),
    token: str = Depends(require_bearer_token),
    account_id: str = Depends(account_id_header),
    gateway: TasksGateway = Depends(get_gateway),
) -> list[dict[str, Any]]:
    """Tasks of one list, or every task list when no list is named."""
    return await _lists_or_tasks(
        gateway, token=token, account_id=account_id, list_id=list_id, include_completed=show_completed
    )


@router.post("/tasks")
async def create_task(
    body: CreateTaskRequest,
    token: str = Depends(require_bearer_token),
    account_id: str = Depends(account_id_header),
    gateway: TasksGateway = Depends(get_gateway),
) -> Task:
    title = body.title.strip()
    _require(listId=body.list_id, title=title)
    draft = TaskCreate(title=title, notes=body.notes, due=body.due, priority=body.priority)
    return await _proxy(
        gateway.create_task(token=token, account_id=account_id, list_id=body.list_id, draft=draft),
        action="create_task",
    )


@router.patch("/tasks")
async def update_task(
    body: UpdateTaskRequest,
    token: str = Depends(require_bearer_token),
    account_id: str = Depends(account_id_header),
    gateway: TasksGateway = Depends(get_gateway),
) -> Task:
    _require(listId=body.list_id, taskId=body.task_id)
    return await _proxy(
        gateway.update_task(
            token=token,
            account_id=account_id,
            list_id=body.list_id,
            task_id=body.task_id,
            changes=body.changes(),
        ),
        action="update_task",
    )


@router.delete("/tasks")
async def delete_task(
    list_id: str | None = Query(default=None, alias="listId"),
    task_id: str | None = Query(default=None, alias="taskId"),
    token: str = Depends(require_bearer_token),
    gateway: TasksGateway = Depends(get_gateway),
) -> dict[str, bool]:
    _require(listId=list_id, taskId=task_id)
    await _proxy(gateway.delete_task(token=token, list_id=list_id, task_id=task_id), action="delete_task")
    return {"success": True}


# --- accounts ---


@router.post("/accounts/refresh")
async def refresh_account(
    body: RefreshRequest,
    refresher: TokenRefresher = Depends(get_token_refresher),
) -> RefreshResponse:
    """Exchange a linked account's refresh token for a new access token."""
    _require(refreshToken=body.refresh_token)
    try:
        grant = await refresher(body.refresh_token)
    except TokenRefreshError as e:
        logger.error("api_token_refresh_failed", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Failed to refresh token", "code": "REFRESH_FAILED"},
        ) from e
    return RefreshResponse(
        access_token=grant.access_token,
        expires_at=grant.expires_at,
        refresh_token=grant.refresh_token,
    )


@router.post("/accounts/tasks")
async def get_account_tasks(
    body: AccountTasksRequest,
    gateway: TasksGateway = Depends(get_gateway),
) -> list[dict[str, Any]]:
    """Fetch lists or tasks for a secondary account using the token it supplies."""
    _require(accessToken=body.access_token, accountId=body.account_id)
    return await _lists_or_tasks(
        gateway,
        token=body.access_token,
        account_id=body.account_id,
        list_id=body.list_id,
        include_completed=body.show_completed,
    )


# --- quick add ---


@router.post("/quick-add/parse")
async def parse_quick_add_text(body: QuickAddParseRequest) -> QuickAddIntent:
    """Preview how a line of quick-add text will be interpreted."""
    _require(text=body.text.strip())
    return parse_quick_add(body.text, body.accounts, today=body.today)
