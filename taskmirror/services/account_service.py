"""Account service for linking, token refresh, removal and persistence."""

import logging

from pydantic import ValidationError

from taskmirror.core.config import constants
from taskmirror.core.logging import span
from taskmirror.domain.account import Account
from taskmirror.services.context import SyncContext
from taskmirror.stores.accounts_store import AccountsSnapshot


logger = logging.getLogger(__name__)


async def load_accounts(ctx: SyncContext) -> int:
    """Hydrate the accounts store from local storage.

    Corrupt persisted state is discarded rather than blocking startup.

    Returns:
        Number of accounts restored
    """
    with span("account_service.load_accounts"):
        raw = await ctx.storage.get_item(constants.ACCOUNTS_STORAGE_KEY)
        if raw is None:
            return 0

        try:
            snapshot = AccountsSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable persisted accounts: %s", e.errors(include_url=False))
            return 0

        ctx.accounts.restore(snapshot)
        logger.info("Restored %d account(s) from local storage", len(snapshot.accounts))
        return len(snapshot.accounts)


async def save_accounts(ctx: SyncContext) -> None:
    """Persist the accounts slice (tokens included) under its fixed namespace."""
    await ctx.storage.set_item(constants.ACCOUNTS_STORAGE_KEY, ctx.accounts.snapshot().model_dump_json())


async def link_account(ctx: SyncContext, *, account: Account) -> Account:
    """Add a newly linked account, or refresh the tokens of the one with the same email.

    Returns:
        The stored account record
    """
    with span("account_service.link_account"):
        stored = ctx.accounts.add_account(account)
        await save_accounts(ctx)
        logger.info("Linked account %s", stored.email, extra={"account_id": stored.id})
        return stored


async def refresh_account_token(ctx: SyncContext, *, account_id: str) -> Account:
    """Run the refresh-token grant for an account and store the new tokens.

    The existing refresh token is kept when the server does not rotate it.

    Raises:
        KeyError: If the account is unknown
        TokenRefreshError: If the grant fails
    """
    with span("account_service.refresh_account_token"):
        account = ctx.accounts.get_account_by_id(account_id)
        if account is None:
            msg = f"Account {account_id} not found"
            raise KeyError(msg)

        grant = await ctx.refresh_token(account.refresh_token)
        updated = ctx.accounts.update_account(
            account_id,
            access_token=grant.access_token,
            expires_at=grant.expires_at,
            refresh_token=grant.refresh_token or account.refresh_token,
        )
        await save_accounts(ctx)
        logger.info("Refreshed access token", extra={"account_id": account_id, "expires_at": grant.expires_at})
        return updated


async def ensure_fresh_token(ctx: SyncContext, *, account_id: str) -> Account:
    """Refresh the account's token ahead of time if it is about to expire."""
    account = ctx.accounts.get_account_by_id(account_id)
    if account is None:
        msg = f"Account {account_id} not found"
        raise KeyError(msg)

    if account.token_expires_within(constants.TOKEN_EXPIRY_SKEW_SECONDS) and account.refresh_token:
        return await refresh_account_token(ctx, account_id=account_id)
    return account


async def remove_account(ctx: SyncContext, *, account_id: str) -> Account | None:
    """Unlink an account, cascading to its task lists and tasks."""
    with span("account_service.remove_account"):
        removed = ctx.accounts.remove_account(account_id)
        if removed is None:
            logger.warning("Attempted to remove unknown account %s", account_id)
            return None

        cleared = ctx.tasks.clear_tasks_by_account(account_id)
        await save_accounts(ctx)
        logger.info("Removed account %s and %d task(s)", removed.email, len(cleared), extra={"account_id": account_id})
        return removed
