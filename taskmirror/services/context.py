"""Wiring shared by the service layer."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from taskmirror.core.local_storage import LocalStorage
from taskmirror.interface.oauth_client import TokenGrant, refresh_access_token
from taskmirror.interface.tasks_gateway import TasksGateway
from taskmirror.stores.accounts_store import AccountsStore
from taskmirror.stores.tasks_store import TasksStore


TokenRefresher = Callable[[str], Awaitable[TokenGrant]]


@dataclass
class SyncContext:
    """The stores, the gateway and the collaborators the services operate on."""

    tasks: TasksStore = field(default_factory=TasksStore)
    accounts: AccountsStore = field(default_factory=AccountsStore)
    gateway: TasksGateway = field(default_factory=TasksGateway)
    storage: LocalStorage = field(default_factory=LocalStorage)
    refresh_token: TokenRefresher = refresh_access_token
