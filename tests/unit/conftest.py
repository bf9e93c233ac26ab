"""Pytest configuration and fixtures for unit tests."""

import time
from datetime import date
from unittest.mock import AsyncMock

import pytest

from taskmirror.core.local_storage import LocalStorage
from taskmirror.domain.account import Account, TaskList
from taskmirror.interface.oauth_client import TokenGrant
from taskmirror.interface.tasks_gateway import TasksGateway
from taskmirror.services.context import SyncContext
from taskmirror.services.mutation_orchestrator import MutationOrchestrator
from tests.unit.mocks import BASE_URL, FakeTasksService


# Wednesday
TODAY = date(2024, 1, 10)


@pytest.fixture
def fake_remote() -> FakeTasksService:
    """Provides a fresh in-memory remote task service for each test."""
    return FakeTasksService()


@pytest.fixture
def gateway(fake_remote: FakeTasksService) -> TasksGateway:
    return TasksGateway(base_url=BASE_URL, transport=fake_remote.transport)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(str(tmp_path / "taskmirror-test.db"))


@pytest.fixture
def token_refresher() -> AsyncMock:
    """Refresh-token grant that always succeeds with ``fresh-token``."""
    return AsyncMock(return_value=TokenGrant(access_token="fresh-token", expires_at=int(time.time()) + 3600))


@pytest.fixture
def ctx(gateway: TasksGateway, storage: LocalStorage, token_refresher: AsyncMock) -> SyncContext:
    return SyncContext(gateway=gateway, storage=storage, refresh_token=token_refresher)


@pytest.fixture
def work_account() -> Account:
    return Account(
        id="acct-work",
        email="alice@work.com",
        name="Alice Smith",
        access_token="token-work",
        refresh_token="refresh-work",
        expires_at=int(time.time()) + 3600,
    )


@pytest.fixture
def personal_account() -> Account:
    return Account(
        id="acct-personal",
        email="bob.personal@gmail.com",
        name="Bob",
        access_token="token-personal",
        refresh_token="refresh-personal",
        expires_at=int(time.time()) + 3600,
    )


@pytest.fixture
def seeded_ctx(ctx: SyncContext, fake_remote: FakeTasksService, work_account: Account) -> SyncContext:
    """Context with one linked account owning one list ("list-1") both locally and remotely."""
    ctx.accounts.add_account(work_account)
    fake_remote.add_list("list-1", "Inbox")
    ctx.accounts.add_task_list(
        TaskList(id="list-1", title="Inbox", account_id=work_account.id, account_email=work_account.email)
    )
    return ctx


@pytest.fixture
def orchestrator(seeded_ctx: SyncContext) -> MutationOrchestrator:
    return MutationOrchestrator(seeded_ctx)
