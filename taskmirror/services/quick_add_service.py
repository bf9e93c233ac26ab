"""Quick add: one line of free text to an optimistically created task."""

import logging
from datetime import date

from taskmirror.core.date_parser import parse_quick_add
from taskmirror.core.errors import TaskValidationError
from taskmirror.core.logging import span
from taskmirror.domain.account import Account, TaskList
from taskmirror.domain.task import DEFAULT_PRIORITY, Priority, Task, TaskCreate
from taskmirror.services.mutation_orchestrator import MutationOrchestrator, MutationResult


logger = logging.getLogger(__name__)


def _resolve_account(orchestrator: MutationOrchestrator, tagged_id: str | None, explicit_id: str | None) -> Account:
    accounts = orchestrator.context.accounts
    for candidate in (tagged_id, explicit_id):
        if candidate and (account := accounts.get_account_by_id(candidate)):
            return account

    active = accounts.get_active_account()
    if active is None:
        msg = "No account available for the new task"
        raise TaskValidationError(msg)
    return active


def _resolve_list(orchestrator: MutationOrchestrator, account: Account, explicit_id: str | None) -> TaskList:
    accounts = orchestrator.context.accounts
    if explicit_id:
        task_list = accounts.get_task_list(explicit_id)
        if task_list is not None and task_list.account_id == account.id:
            return task_list

    lists = accounts.get_task_lists_by_account(account.id)
    if not lists:
        msg = f"Account {account.email} has no task lists"
        raise TaskValidationError(msg)
    return lists[0]


async def submit_quick_add(
    orchestrator: MutationOrchestrator,
    text: str,
    *,
    account_id: str | None = None,
    list_id: str | None = None,
    notes: str = "",
    priority: Priority = DEFAULT_PRIORITY,
    today: date | None = None,
) -> MutationResult[Task]:
    """Parse quick-add text and create the task it describes.

    A ``#tag`` naming a linked account overrides ``account_id``; without either
    the active account is used. ``list_id`` is honoured only if it belongs to
    the chosen account, otherwise that account's first list receives the task.

    Raises:
        TaskValidationError: If the parsed title is empty or no target list
            exists. Nothing is written to the stores in that case.
    """
    with span("quick_add_service.submit_quick_add"):
        accounts = orchestrator.context.accounts
        intent = parse_quick_add(text, accounts.account_descriptors(), today=today)

        if not intent.title:
            msg = "Task title cannot be empty"
            raise TaskValidationError(msg)

        account = _resolve_account(orchestrator, intent.account_id, account_id)
        task_list = _resolve_list(orchestrator, account, list_id)
        logger.info(
            "Quick add resolved",
            extra={"account_id": account.id, "list_id": task_list.id, "has_due": intent.due is not None},
        )

        draft = TaskCreate(title=intent.title, notes=notes, due=intent.due, priority=priority)
        return await orchestrator.create_task(account_id=account.id, list_id=task_list.id, draft=draft)
