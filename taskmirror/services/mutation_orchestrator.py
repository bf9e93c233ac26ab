"""Optimistic mutation orchestrator.

Every task mutation follows the same protocol:

1. compute the forward patch and its exact inverse,
2. apply the forward patch to the store synchronously (before any await),
3. issue the remote call,
4. on success reconcile with the server record (create swaps its temporary ID),
5. on failure apply the inverse and report the failure; nothing is retried.

A mutation moves PENDING -> CONFIRMED or PENDING -> ROLLED_BACK. This is also
the only layer that looks at error kinds: an expired token gets one refresh and
one retry of the failed call, anything else rolls back.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Generic, TypeVar

from taskmirror.core.config import constants
from taskmirror.core.errors import (
    ErrorResponse,
    SessionExpiredError,
    TasksAPIError,
    TaskValidationError,
    TokenRefreshError,
    error_response_for,
)
from taskmirror.core.logging import span
from taskmirror.domain.account import Account, TaskList
from taskmirror.domain.task import Priority, Task, TaskCreate, TaskStatus, TaskUpdate
from taskmirror.services import account_service
from taskmirror.services.context import SyncContext


logger = logging.getLogger(__name__)

T = TypeVar("T")


class MutationState(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class MutationResult(Generic[T]):
    """Outcome of one optimistic mutation."""

    mutation: str
    state: MutationState
    value: T | None = None
    error: ErrorResponse | None = None
    exception: Exception | None = None

    @property
    def confirmed(self) -> bool:
        return self.state == MutationState.CONFIRMED


async def call_remote(ctx: SyncContext, *, account_id: str, call: Callable[[str], Awaitable[T]]) -> T:
    """Run ``call`` with the account's token, refreshing and retrying once on expiry.

    Raises:
        TaskValidationError: If the account is unknown
        SessionExpiredError: If the refresh fails, the account is unlinked mid-call,
            or the retry is rejected again
        TasksAPIError: For any non-auth failure
    """
    account = ctx.accounts.get_account_by_id(account_id)
    if account is None:
        msg = f"Unknown account {account_id}"
        raise TaskValidationError(msg)

    try:
        return await call(account.access_token)
    except TasksAPIError as e:
        if not e.is_auth_error:
            raise
        logger.info("auth_expired_refreshing", extra={"account_id": account_id, "status": e.status_code})

    try:
        refreshed = await account_service.refresh_account_token(ctx, account_id=account_id)
    except TokenRefreshError as e:
        raise SessionExpiredError(account_id, "Token refresh failed") from e
    except KeyError as e:
        # Unlinked while the call was in flight
        raise SessionExpiredError(account_id, "Account was removed") from e

    try:
        return await call(refreshed.access_token)
    except TasksAPIError as e:
        if e.is_auth_error:
            logger.error("auth_retry_rejected", extra={"account_id": account_id, "status": e.status_code})
            raise SessionExpiredError(account_id) from e
        raise


def _apply_changes(task: Task, fields: dict[str, object]) -> Task:
    """Build the optimistic record for an edit. Validation normalizes ``due``."""
    patched = task.model_dump() | fields
    if "status" in fields:
        completed = fields["status"] == TaskStatus.COMPLETED
        patched["completed"] = datetime.now(UTC).isoformat().replace("+00:00", "Z") if completed else None
    return Task.model_validate(patched)


def _reinsert(ctx: SyncContext, positions: list[tuple[int, Task]]) -> None:
    # Ascending original indices rebuild the exact prior ordering.
    for index, task in positions:
        if ctx.tasks.get_task_by_id(task.id) is None:
            ctx.tasks.insert_task(task, index)


class MutationOrchestrator:
    """Applies task and list mutations optimistically against the local stores."""

    def __init__(self, ctx: SyncContext) -> None:
        self._ctx = ctx

    @property
    def context(self) -> SyncContext:
        return self._ctx

    async def run_optimistic(
        self,
        *,
        name: str,
        account_id: str,
        forward: Callable[[], None],
        inverse: Callable[[], None],
        call: Callable[[str], Awaitable[T]],
        on_confirm: Callable[[T], None] | None = None,
    ) -> MutationResult[T]:
        """Apply ``forward``, run ``call`` remotely, and undo with ``inverse`` on failure.

        Remote and session failures are reported in the result; unexpected
        exceptions still roll back and then propagate.
        """
        with span(f"mutation_orchestrator.{name}"):
            self._require_account(account_id)
            forward()
            logger.debug("mutation_pending", extra={"mutation": name, "account_id": account_id})

            try:
                value = await call_remote(self._ctx, account_id=account_id, call=call)
            except (TasksAPIError, SessionExpiredError) as e:
                inverse()
                logger.warning(
                    "mutation_rolled_back",
                    extra={"mutation": name, "account_id": account_id, "error_type": type(e).__name__, "error": str(e)},
                )
                return MutationResult(
                    mutation=name,
                    state=MutationState.ROLLED_BACK,
                    error=error_response_for(e),
                    exception=e,
                )
            except Exception:
                inverse()
                logger.exception("mutation_failed_unexpectedly", extra={"mutation": name, "account_id": account_id})
                raise

            if on_confirm is not None:
                on_confirm(value)
            logger.info("mutation_confirmed", extra={"mutation": name, "account_id": account_id})
            return MutationResult(mutation=name, state=MutationState.CONFIRMED, value=value)

    # --- guards ---

    def _require_account(self, account_id: str) -> Account:
        account = self._ctx.accounts.get_account_by_id(account_id)
        if account is None:
            msg = f"Unknown account {account_id}"
            raise TaskValidationError(msg)
        return account

    def _require_task(self, task_id: str) -> Task:
        task = self._ctx.tasks.get_task_by_id(task_id)
        if task is None:
            msg = f"Task {task_id} not found"
            raise TaskValidationError(msg)
        if task.is_pending_creation:
            msg = f"Task {task_id} is still being created"
            raise TaskValidationError(msg)
        return task

    def _require_task_list(self, list_id: str, account_id: str | None = None) -> TaskList:
        if not list_id:
            msg = "A task list is required"
            raise TaskValidationError(msg)
        task_list = self._ctx.accounts.get_task_list(list_id)
        if task_list is None:
            msg = f"Task list {list_id} not found"
            raise TaskValidationError(msg)
        if account_id is not None and task_list.account_id != account_id:
            msg = f"Task list {list_id} does not belong to account {account_id}"
            raise TaskValidationError(msg)
        return task_list

    # --- tasks ---

    async def create_task(self, *, account_id: str, list_id: str, draft: TaskCreate) -> MutationResult[Task]:
        """Insert a placeholder immediately, then swap in the server-confirmed task.

        Raises:
            TaskValidationError: On an empty title, unknown account or list
        """
        title = draft.title.strip()
        if not title:
            msg = "Task title cannot be empty"
            raise TaskValidationError(msg)
        self._require_account(account_id)
        self._require_task_list(list_id, account_id)

        draft = draft.model_copy(update={"title": title})
        placeholder = Task(
            id=f"{constants.TEMP_TASK_ID_PREFIX}{uuid.uuid4().hex}",
            title=draft.title,
            notes=draft.notes,
            due=draft.due,
            priority=draft.priority,
            list_id=list_id,
            account_id=account_id,
        )
        tasks = self._ctx.tasks
        accounts = self._ctx.accounts
        gateway = self._ctx.gateway

        def confirm(created: Task) -> None:
            if tasks.get_task_by_id(created.id) is not None:
                # A reload already brought the server record in
                tasks.remove_task(placeholder.id)
            elif not tasks.replace_task(created, previous_id=placeholder.id):
                # A reload dropped the placeholder before the server record was visible
                if accounts.get_account_by_id(account_id) and accounts.get_task_list(list_id):
                    tasks.add_task(created)
                else:
                    logger.info("Discarding created task %s; its account or list was removed", created.id)

        return await self.run_optimistic(
            name="create_task",
            account_id=account_id,
            forward=lambda: tasks.add_task(placeholder),
            inverse=lambda: tasks.remove_task(placeholder.id),
            call=lambda token: gateway.create_task(token=token, account_id=account_id, list_id=list_id, draft=draft),
            on_confirm=confirm,
        )

    async def update_task(self, *, task_id: str, changes: TaskUpdate) -> MutationResult[Task]:
        """Edit a task: title, notes, due date, status or priority.

        Raises:
            TaskValidationError: If nothing is supplied, the title would become
                empty, or the task is unknown or not yet created
        """
        # Only ``due`` can be cleared; None elsewhere means "leave unchanged".
        fields = {name: value for name, value in changes.supplied().items() if value is not None or name == "due"}
        if not fields:
            msg = "No changes supplied"
            raise TaskValidationError(msg)
        if "title" in fields:
            title = str(fields["title"]).strip()
            if not title:
                msg = "Task title cannot be empty"
                raise TaskValidationError(msg)
            fields["title"] = title
            changes = changes.model_copy(update={"title": title})

        original = self._require_task(task_id)
        updated = _apply_changes(original, fields)
        tasks = self._ctx.tasks
        gateway = self._ctx.gateway

        return await self.run_optimistic(
            name="update_task",
            account_id=original.account_id,
            forward=lambda: tasks.replace_task(updated),
            inverse=lambda: tasks.replace_task(original),
            call=lambda token: gateway.update_task(
                token=token,
                account_id=original.account_id,
                list_id=original.list_id,
                task_id=task_id,
                changes=changes,
            ),
            on_confirm=lambda confirmed: tasks.replace_task(confirmed),
        )

    async def set_task_completed(self, *, task_id: str, completed: bool) -> MutationResult[Task]:
        status = TaskStatus.COMPLETED if completed else TaskStatus.NEEDS_ACTION
        return await self.update_task(task_id=task_id, changes=TaskUpdate(status=status))

    async def set_task_priority(self, *, task_id: str, priority: Priority) -> MutationResult[Task]:
        return await self.update_task(task_id=task_id, changes=TaskUpdate(priority=priority))

    async def delete_task(self, *, task_id: str) -> MutationResult[None]:
        original = self._require_task(task_id)
        index = self._ctx.tasks.index_of(task_id)
        tasks = self._ctx.tasks
        gateway = self._ctx.gateway

        return await self.run_optimistic(
            name="delete_task",
            account_id=original.account_id,
            forward=lambda: tasks.remove_task(task_id),
            inverse=lambda: _reinsert(self._ctx, [(index, original)]),
            call=lambda token: gateway.delete_task(token=token, list_id=original.list_id, task_id=task_id),
        )

    # --- task lists ---

    async def create_task_list(self, *, account_id: str, title: str) -> MutationResult[TaskList]:
        """Create a list remotely; it joins the store once the server confirms it."""
        title = title.strip()
        if not title:
            msg = "Task list title cannot be empty"
            raise TaskValidationError(msg)
        account = self._require_account(account_id)
        gateway = self._ctx.gateway

        return await self.run_optimistic(
            name="create_task_list",
            account_id=account_id,
            forward=lambda: None,
            inverse=lambda: None,
            call=lambda token: gateway.create_task_list(
                token=token, account_id=account_id, title=title, account_email=account.email
            ),
            on_confirm=self._ctx.accounts.add_task_list,
        )

    async def delete_task_list(self, *, list_id: str) -> MutationResult[None]:
        """Remove a list and its tasks immediately; restore both if the call fails."""
        task_list = self._require_task_list(list_id)
        accounts = self._ctx.accounts
        tasks = self._ctx.tasks
        gateway = self._ctx.gateway
        list_index = accounts.index_of_task_list(list_id)
        positions = [(i, t) for i, t in enumerate(tasks.tasks) if t.list_id == list_id]

        def forward() -> None:
            accounts.remove_task_list(list_id)
            tasks.clear_tasks_by_list(list_id)

        def inverse() -> None:
            if accounts.get_task_list(list_id) is None:
                accounts.insert_task_list(task_list, list_index)
            _reinsert(self._ctx, positions)

        return await self.run_optimistic(
            name="delete_task_list",
            account_id=task_list.account_id,
            forward=forward,
            inverse=inverse,
            call=lambda token: gateway.delete_task_list(token=token, list_id=list_id),
        )
