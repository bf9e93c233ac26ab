"""Task domain models and enums."""

from datetime import UTC, date, datetime
from enum import IntEnum, StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskmirror.core.config import constants


def normalize_due(value: datetime | None) -> datetime | None:
    """Reduce a due timestamp to UTC midnight of its calendar date.

    The remote service stores only the date part of ``due``, so a local-midnight
    value from the quick-add parser and the server's echo compare equal.
    """
    if value is None:
        return None
    return datetime(value.year, value.month, value.day, tzinfo=UTC)


class TaskStatus(StrEnum):
    """Completion status as the remote service spells it."""

    NEEDS_ACTION = "needsAction"
    COMPLETED = "completed"


class Priority(IntEnum):
    """Local-only priority. 1 is highest, 4 means no priority."""

    P1 = 1
    P2 = 2
    P3 = 3
    P4 = 4


DEFAULT_PRIORITY = Priority.P4


class Task(BaseModel):
    """Local task record, with priority decoded out of the remote notes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Remote task ID, or a temporary ID while creation is pending")
    title: str = Field(..., description="Task title")
    notes: str = Field(default="", description="User-visible notes, never containing the metadata tag")
    due: datetime | None = Field(default=None, description="Due timestamp")
    status: TaskStatus = Field(default=TaskStatus.NEEDS_ACTION, description="Completion status")
    priority: Priority = Field(default=DEFAULT_PRIORITY, description="Local priority")
    list_id: str = Field(..., description="Owning task list ID")
    account_id: str = Field(..., description="Owning local account ID")
    updated: str | None = Field(default=None, description="Last remote update (RFC 3339)")
    completed: str | None = Field(default=None, description="Completion timestamp (RFC 3339)")
    position: str | None = Field(default=None, description="Remote ordering key")
    parent: str | None = Field(default=None, description="Parent task ID for subtasks")
    etag: str | None = Field(default=None, description="Remote entity tag")

    @field_validator("due")
    @classmethod
    def validate_due_is_date(cls, v: datetime | None) -> datetime | None:
        """Store due dates as UTC midnight of their calendar date."""
        return normalize_due(v)

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def is_pending_creation(self) -> bool:
        """True while the record is an optimistic placeholder awaiting its server ID."""
        return self.id.startswith(constants.TEMP_TASK_ID_PREFIX)

    @property
    def due_date(self) -> date | None:
        return self.due.date() if self.due else None


class TaskCreate(BaseModel):
    """Fields supplied when creating a task."""

    title: str
    notes: str = ""
    due: datetime | None = None
    priority: Priority = DEFAULT_PRIORITY


class TaskUpdate(BaseModel):
    """Partial task edit. Only fields explicitly set are applied.

    Setting ``due`` to None explicitly clears the due date; leaving it unset keeps it.
    """

    title: str | None = None
    notes: str | None = None
    due: datetime | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None

    def supplied(self) -> dict[str, object]:
        """Return only the fields the caller set."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class QuickAddIntent(BaseModel):
    """Structured result of parsing one line of quick-add text."""

    title: str
    due: datetime | None = None
    account_id: str | None = None
