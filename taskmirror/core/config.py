"""Settings and constants for taskmirror."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from the environment and an optional ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote task service
    tasks_api_base_url: str = Field(
        default="https://tasks.googleapis.com/tasks/v1", description="Base URL of the remote task service"
    )
    tasks_page_size: int = Field(default=100, description="maxResults used when listing tasks")

    # OAuth refresh-token grant
    oauth_token_url: str = Field(
        default="https://oauth2.googleapis.com/token", description="Token endpoint for refresh-token grants"
    )
    google_client_id: str | None = Field(default=None, description="OAuth client ID")
    google_client_secret: str | None = Field(default=None, description="OAuth client secret")

    # Local persistence
    local_storage_path: str = Field(
        default="taskmirror.db", description="SQLite file backing persisted local state (accounts)"
    )

    # Observability (optional)
    logfire_token: str | None = Field(default=None, description="Logfire write token; nothing is exported without it")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Return the named credential, or fail with the variable the operator has to set.

        Raises:
            ValueError: If ``field_name`` is unset or empty
        """
        value = getattr(self, field_name)
        if not value:
            msg = f"{service_name} is not configured; set {field_name.upper()} in the environment or .env"
            raise ValueError(msg)
        return value


class Constants:
    """Fixed values shared across modules."""

    # Outbound HTTP
    API_TIMEOUT_SECONDS: int = 30

    # Status codes the error taxonomy branches on
    HTTP_NO_CONTENT: int = 204
    HTTP_UNAUTHORIZED: int = 401
    HTTP_FORBIDDEN: int = 403
    HTTP_NOT_FOUND: int = 404
    HTTP_GONE: int = 410
    HTTP_TOO_MANY_REQUESTS: int = 429
    HTTP_SERVER_ERROR: int = 500

    # Local storage namespaces
    ACCOUNTS_STORAGE_KEY: str = "gtm-accounts"

    # Identity given to a task between optimistic insert and server confirmation
    TEMP_TASK_ID_PREFIX: str = "temp-"

    # Refresh tokens this many seconds before they actually expire
    TOKEN_EXPIRY_SKEW_SECONDS: int = 60

    # Upcoming view window
    UPCOMING_WINDOW_DAYS: int = 7


def get_settings() -> Settings:
    return Settings()


settings = get_settings()
constants = Constants()
