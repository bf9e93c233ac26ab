"""In-memory tasks store: the authoritative cache the UI renders from.

Tasks are never persisted; they are reloaded from the remote service. Every
write replaces whole Task records, and only the mutation orchestrator and the
initial load write here.
"""

from collections.abc import Callable, Iterable
from datetime import date, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field

from taskmirror.core.config import constants
from taskmirror.domain.task import Priority, Task
from taskmirror.stores.observable import ObservableStore


class StatusFilter(StrEnum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


class DateFilter(StrEnum):
    ALL = "all"
    OVERDUE = "overdue"
    NO_DATE = "no-date"
    TODAY = "today"
    WEEK = "week"
    CUSTOM = "custom"


class SortOption(StrEnum):
    DUE_ASC = "due-asc"
    DUE_DESC = "due-desc"
    PRIORITY_HIGH = "priority-high"
    PRIORITY_LOW = "priority-low"
    UPDATED_DESC = "updated-desc"
    TITLE_ASC = "title-asc"
    TITLE_DESC = "title-desc"


class TaskFilters(BaseModel):
    """Filters for the all-tasks view."""

    search: str = ""
    account_ids: list[str] = Field(default_factory=list)
    list_ids: list[str] = Field(default_factory=list)
    priorities: list[Priority] = Field(default_factory=list)
    status: StatusFilter = StatusFilter.ALL
    date_filter: DateFilter = DateFilter.ALL
    custom_start: date | None = None
    custom_end: date | None = None
    sort_by: SortOption = SortOption.DUE_ASC


def _matches_date_filter(task: Task, filters: TaskFilters, today: date) -> bool:
    due = task.due_date
    match filters.date_filter:
        case DateFilter.OVERDUE:
            return due is not None and due < today and not task.is_completed
        case DateFilter.NO_DATE:
            return due is None
        case DateFilter.TODAY:
            return due == today
        case DateFilter.WEEK:
            return due is not None and today <= due < today + timedelta(days=constants.UPCOMING_WINDOW_DAYS)
        case DateFilter.CUSTOM if filters.custom_start and filters.custom_end:
            return due is not None and filters.custom_start <= due <= filters.custom_end
    return True


def _sort_tasks(tasks: list[Task], sort_by: SortOption) -> list[Task]:
    """Sort a filtered task list. Tasks without a due date always go last for due sorts."""
    if sort_by in (SortOption.DUE_ASC, SortOption.DUE_DESC):
        dated = sorted(
            (t for t in tasks if t.due is not None),
            key=lambda t: t.due,
            reverse=sort_by == SortOption.DUE_DESC,
        )
        return dated + [t for t in tasks if t.due is None]
    if sort_by == SortOption.PRIORITY_HIGH:
        return sorted(tasks, key=lambda t: t.priority)
    if sort_by == SortOption.PRIORITY_LOW:
        return sorted(tasks, key=lambda t: t.priority, reverse=True)
    if sort_by == SortOption.UPDATED_DESC:
        return sorted(tasks, key=lambda t: t.updated or "", reverse=True)
    return sorted(tasks, key=lambda t: t.title.casefold(), reverse=sort_by == SortOption.TITLE_DESC)


class TasksStore(ObservableStore):
    """Owned container for the task cache."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        super().__init__()
        self._tasks: list[Task] = list(tasks)
        self._show_completed = False
        self._filters = TaskFilters()

    # --- state ---

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def show_completed(self) -> bool:
        return self._show_completed

    @property
    def filters(self) -> TaskFilters:
        return self._filters.model_copy(deep=True)

    # --- mutators ---

    def set_tasks(self, tasks: Iterable[Task]) -> None:
        self._tasks = list(tasks)
        self._notify()

    def add_tasks(self, tasks: Iterable[Task]) -> None:
        """Append tasks whose IDs are not already present."""
        existing = {t.id for t in self._tasks}
        self._tasks.extend(t for t in tasks if t.id not in existing)
        self._notify()

    def add_task(self, task: Task) -> None:
        """Insert a task at the top of the cache."""
        self.insert_task(task, 0)

    def insert_task(self, task: Task, index: int) -> None:
        self._tasks.insert(index, task)
        self._notify()

    def replace_task(self, task: Task, *, previous_id: str | None = None) -> bool:
        """Replace the record keyed by ``previous_id`` (default: ``task.id``) in place.

        Returns False if no such record exists, which happens when the task was
        removed while a mutation on it was in flight.
        """
        target_id = previous_id or task.id
        index = self.index_of(target_id)
        if index is None:
            return False
        self._tasks[index] = task
        self._notify()
        return True

    def remove_task(self, task_id: str) -> Task | None:
        index = self.index_of(task_id)
        if index is None:
            return None
        removed = self._tasks.pop(index)
        self._notify()
        return removed

    def replace_account_tasks(self, account_id: str, tasks: Iterable[Task]) -> None:
        """Swap out one account's slice of the cache after a reload."""
        self._tasks = [t for t in self._tasks if t.account_id != account_id]
        self._tasks.extend(tasks)
        self._notify()

    def clear_tasks(self) -> None:
        self._tasks = []
        self._notify()

    def clear_tasks_by_account(self, account_id: str) -> list[Task]:
        return self._remove_where(lambda t: t.account_id == account_id)

    def clear_tasks_by_list(self, list_id: str) -> list[Task]:
        return self._remove_where(lambda t: t.list_id == list_id)

    def toggle_show_completed(self) -> None:
        self._show_completed = not self._show_completed
        self._notify()

    def set_filters(self, **changes: object) -> None:
        self._filters = TaskFilters.model_validate(self._filters.model_dump() | changes)
        self._notify()

    def reset_filters(self) -> None:
        self._filters = TaskFilters()
        self._notify()

    def _remove_where(self, predicate: Callable[[Task], bool]) -> list[Task]:
        removed = [t for t in self._tasks if predicate(t)]
        if removed:
            self._tasks = [t for t in self._tasks if not predicate(t)]
            self._notify()
        return removed

    # --- queries ---

    def index_of(self, task_id: str) -> int | None:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def get_task_by_id(self, task_id: str) -> Task | None:
        index = self.index_of(task_id)
        return self._tasks[index] if index is not None else None

    def _visible(self) -> list[Task]:
        return [t for t in self._tasks if self._show_completed or not t.is_completed]

    def get_all_tasks(self) -> list[Task]:
        return self._visible()

    def get_tasks_by_list(self, list_id: str) -> list[Task]:
        return [t for t in self._visible() if t.list_id == list_id]

    def get_tasks_by_account(self, account_id: str) -> list[Task]:
        return [t for t in self._visible() if t.account_id == account_id]

    def get_today_tasks(self, *, today: date | None = None) -> list[Task]:
        """Tasks due today, highest priority first."""
        day = today or date.today()
        return sorted((t for t in self._visible() if t.due_date == day), key=lambda t: t.priority)

    def get_upcoming_tasks(self, *, today: date | None = None) -> list[Task]:
        """Tasks due within the next seven days, by due date then priority."""
        day = today or date.today()
        end = day + timedelta(days=constants.UPCOMING_WINDOW_DAYS)
        upcoming = [t for t in self._visible() if t.due_date is not None and day <= t.due_date < end]
        return sorted(upcoming, key=lambda t: (t.due, t.priority))

    def get_filtered_tasks(self, *, today: date | None = None) -> list[Task]:
        """Apply the all-tasks view filters and sort order."""
        day = today or date.today()
        filters = self._filters
        filtered = list(self._tasks)

        if filters.search:
            needle = filters.search.lower()
            filtered = [t for t in filtered if needle in t.title.lower() or needle in t.notes.lower()]

        if filters.account_ids:
            filtered = [t for t in filtered if t.account_id in filters.account_ids]

        if filters.list_ids:
            filtered = [t for t in filtered if t.list_id in filters.list_ids]

        if filters.priorities:
            filtered = [t for t in filtered if t.priority in filters.priorities]

        if filters.status == StatusFilter.ACTIVE:
            filtered = [t for t in filtered if not t.is_completed]
        elif filters.status == StatusFilter.COMPLETED:
            filtered = [t for t in filtered if t.is_completed]

        filtered = [t for t in filtered if _matches_date_filter(t, filters, day)]

        return _sort_tasks(filtered, filters.sort_by)
