"""Domain models and DTOs."""

from taskmirror.domain.account import Account, AccountDescriptor, TaskList
from taskmirror.domain.task import (
    DEFAULT_PRIORITY,
    Priority,
    QuickAddIntent,
    Task,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
)


__all__ = [
    "DEFAULT_PRIORITY",
    "Account",
    "AccountDescriptor",
    "Priority",
    "QuickAddIntent",
    "Task",
    "TaskCreate",
    "TaskList",
    "TaskStatus",
    "TaskUpdate",
]
