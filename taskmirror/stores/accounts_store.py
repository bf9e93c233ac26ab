"""In-memory accounts store: linked accounts, the active account and their task lists.

The accounts slice (tokens included) is persisted by the account service via
``snapshot``/``restore``; task lists are reloaded from the remote service.
"""

from collections.abc import Iterable

from pydantic import BaseModel, Field

from taskmirror.domain.account import Account, AccountDescriptor, TaskList
from taskmirror.stores.observable import ObservableStore


class AccountsSnapshot(BaseModel):
    """The persisted part of the accounts store."""

    accounts: list[Account] = Field(default_factory=list)
    active_account_id: str | None = None


class AccountsStore(ObservableStore):
    """Owned container for linked accounts and their task lists."""

    def __init__(self) -> None:
        super().__init__()
        self._accounts: list[Account] = []
        self._active_account_id: str | None = None
        self._task_lists: list[TaskList] = []

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(self._accounts)

    @property
    def active_account_id(self) -> str | None:
        return self._active_account_id

    @property
    def task_lists(self) -> tuple[TaskList, ...]:
        return tuple(self._task_lists)

    # --- account mutators ---

    def add_account(self, account: Account) -> Account:
        """Add a linked account, or update the record with the same email.

        The existing record keeps its ID so tasks already attributed to it stay
        attached. The first account added becomes the active one.
        """
        email = account.email.lower()
        for index, existing in enumerate(self._accounts):
            if existing.email.lower() == email:
                stored = account.model_copy(update={"id": existing.id})
                self._accounts[index] = stored
                self._notify()
                return stored

        self._accounts.append(account)
        if self._active_account_id is None:
            self._active_account_id = account.id
        self._notify()
        return account

    def update_account(self, account_id: str, **changes: object) -> Account:
        """Replace an account with a copy carrying ``changes``.

        Raises:
            KeyError: If no account has ``account_id``
        """
        for index, existing in enumerate(self._accounts):
            if existing.id == account_id:
                updated = Account.model_validate(existing.model_dump() | changes)
                self._accounts[index] = updated
                self._notify()
                return updated
        msg = f"Account {account_id} not found"
        raise KeyError(msg)

    def remove_account(self, account_id: str) -> Account | None:
        """Remove an account and every task list attributed to it."""
        removed = self.get_account_by_id(account_id)
        if removed is None:
            return None

        self._accounts = [a for a in self._accounts if a.id != account_id]
        self._task_lists = [t for t in self._task_lists if t.account_id != account_id]
        if self._active_account_id == account_id:
            self._active_account_id = self._accounts[0].id if self._accounts else None
        self._notify()
        return removed

    def set_active_account(self, account_id: str | None) -> None:
        if account_id is not None and self.get_account_by_id(account_id) is None:
            msg = f"Account {account_id} not found"
            raise KeyError(msg)
        self._active_account_id = account_id
        self._notify()

    # --- task list mutators ---

    def set_task_lists(self, task_lists: Iterable[TaskList]) -> None:
        self._task_lists = list(task_lists)
        self._notify()

    def replace_account_task_lists(self, account_id: str, task_lists: Iterable[TaskList]) -> None:
        self._task_lists = [t for t in self._task_lists if t.account_id != account_id]
        self._task_lists.extend(task_lists)
        self._notify()

    def add_task_list(self, task_list: TaskList) -> None:
        self._task_lists.append(task_list)
        self._notify()

    def insert_task_list(self, task_list: TaskList, index: int) -> None:
        self._task_lists.insert(index, task_list)
        self._notify()

    def remove_task_list(self, list_id: str) -> TaskList | None:
        for index, task_list in enumerate(self._task_lists):
            if task_list.id == list_id:
                del self._task_lists[index]
                self._notify()
                return task_list
        return None

    # --- queries ---

    def get_account_by_id(self, account_id: str) -> Account | None:
        return next((a for a in self._accounts if a.id == account_id), None)

    def get_active_account(self) -> Account | None:
        if self._active_account_id is None:
            return None
        return self.get_account_by_id(self._active_account_id)

    def get_task_lists_by_account(self, account_id: str) -> list[TaskList]:
        return [t for t in self._task_lists if t.account_id == account_id]

    def get_task_list(self, list_id: str) -> TaskList | None:
        return next((t for t in self._task_lists if t.id == list_id), None)

    def index_of_task_list(self, list_id: str) -> int | None:
        for index, task_list in enumerate(self._task_lists):
            if task_list.id == list_id:
                return index
        return None

    def account_descriptors(self) -> list[AccountDescriptor]:
        return [a.descriptor() for a in self._accounts]

    # --- persistence ---

    def snapshot(self) -> AccountsSnapshot:
        return AccountsSnapshot(accounts=list(self._accounts), active_account_id=self._active_account_id)

    def restore(self, snapshot: AccountsSnapshot) -> None:
        self._accounts = list(snapshot.accounts)
        known = {a.id for a in self._accounts}
        if snapshot.active_account_id in known:
            self._active_account_id = snapshot.active_account_id
        else:
            self._active_account_id = self._accounts[0].id if self._accounts else None
        self._notify()
