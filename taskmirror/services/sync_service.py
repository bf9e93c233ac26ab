"""Initial load: pull every linked account's task lists and tasks into the stores."""

import asyncio
import logging

from pydantic import BaseModel, Field

from taskmirror.core.errors import (
    ErrorResponse,
    SessionExpiredError,
    TasksAPIError,
    TokenRefreshError,
    error_response_for,
)
from taskmirror.core.logging import log_with_context, span
from taskmirror.domain.account import TaskList
from taskmirror.domain.task import Task
from taskmirror.services import account_service
from taskmirror.services.context import SyncContext
from taskmirror.services.mutation_orchestrator import call_remote


logger = logging.getLogger(__name__)


class AccountLoadResult(BaseModel):
    """Outcome of loading one account."""

    account_id: str = Field(..., description="Account that was loaded")
    list_count: int = Field(default=0, description="Task lists fetched")
    task_count: int = Field(default=0, description="Tasks fetched across all lists")
    error: ErrorResponse | None = Field(default=None, description="Failure details, if the load failed")

    @property
    def ok(self) -> bool:
        return self.error is None


async def load_account(ctx: SyncContext, *, account_id: str, include_completed: bool = False) -> AccountLoadResult:
    """Fetch one account's lists, then every list's tasks concurrently.

    The account's slice of both stores is replaced only once everything has
    arrived, so a failed load leaves the previous data in place.

    Raises:
        KeyError: If the account is unknown
        SessionExpiredError: If the account can no longer be authenticated
        TasksAPIError: If any remote call fails
    """
    with span("sync_service.load_account"):
        try:
            account = await account_service.ensure_fresh_token(ctx, account_id=account_id)
        except TokenRefreshError as e:
            raise SessionExpiredError(account_id, "Token refresh failed") from e

        task_lists: list[TaskList] = await call_remote(
            ctx,
            account_id=account_id,
            call=lambda token: ctx.gateway.list_task_lists(
                token=token, account_id=account_id, account_email=account.email
            ),
        )

        async def fetch(list_id: str) -> list[Task]:
            return await call_remote(
                ctx,
                account_id=account_id,
                call=lambda token: ctx.gateway.list_tasks(
                    token=token, account_id=account_id, list_id=list_id, include_completed=include_completed
                ),
            )

        try:
            async with asyncio.TaskGroup() as group:
                fetches = [group.create_task(fetch(task_list.id)) for task_list in task_lists]
        except ExceptionGroup as eg:
            # The remaining fetches are already cancelled; report the first failure
            raise eg.exceptions[0] from None
        tasks = [task for fetched in fetches for task in fetched.result()]

        ctx.accounts.replace_account_task_lists(account_id, task_lists)
        ctx.tasks.replace_account_tasks(account_id, tasks)
        logger.info(
            "Loaded account",
            extra={"account_id": account_id, "list_count": len(task_lists), "task_count": len(tasks)},
        )
        return AccountLoadResult(account_id=account_id, list_count=len(task_lists), task_count=len(tasks))


async def _load_isolated(ctx: SyncContext, account_id: str, include_completed: bool) -> AccountLoadResult:
    try:
        return await load_account(ctx, account_id=account_id, include_completed=include_completed)
    except (TasksAPIError, SessionExpiredError) as e:
        log_with_context(logger, "warning", "Account load failed", account_id=account_id, error=str(e))
        return AccountLoadResult(account_id=account_id, error=error_response_for(e))


async def load_all_accounts(ctx: SyncContext, *, include_completed: bool = False) -> list[AccountLoadResult]:
    """Load every linked account concurrently.

    One account failing does not affect the others; its failure is reported
    in its result instead.
    """
    with span("sync_service.load_all_accounts"):
        account_ids = [account.id for account in ctx.accounts.accounts]
        results = await asyncio.gather(*(_load_isolated(ctx, aid, include_completed) for aid in account_ids))

        failed = [r.account_id for r in results if not r.ok]
        if failed:
            logger.warning("Some accounts failed to load", extra={"failed_accounts": failed})
        return list(results)
