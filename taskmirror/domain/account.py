"""Account and task list domain models."""

import time

from pydantic import BaseModel, ConfigDict, Field


class Account(BaseModel):
    """A linked identity with the remote task service."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Local account ID (OAuth subject)")
    email: str = Field(..., description="Account email, unique per logical account")
    name: str = Field(default="", description="Display name")
    image: str | None = Field(default=None, description="Avatar URL")
    access_token: str = Field(default="", description="Current bearer token")
    refresh_token: str = Field(default="", description="OAuth refresh token")
    expires_at: int = Field(default=0, description="Access token expiry (epoch seconds)")

    @property
    def email_local_part(self) -> str:
        return self.email.split("@", 1)[0]

    def token_expires_within(self, seconds: int, *, now: float | None = None) -> bool:
        """True if the access token is missing or expires within ``seconds``."""
        if not self.access_token:
            return True
        current = time.time() if now is None else now
        return self.expires_at - seconds <= current

    def descriptor(self) -> "AccountDescriptor":
        return AccountDescriptor(id=self.id, email=self.email, name=self.name or None)


class AccountDescriptor(BaseModel):
    """The slice of an account the quick-add parser needs."""

    id: str
    email: str
    name: str | None = None


class TaskList(BaseModel):
    """A remote task list annotated with the account it came from."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Remote task list ID")
    title: str = Field(..., description="List title")
    updated: str | None = Field(default=None, description="Last remote update (RFC 3339)")
    account_id: str = Field(..., description="Owning local account ID")
    account_email: str = Field(default="", description="Owning account email")
