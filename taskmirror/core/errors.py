"""Error taxonomy for remote task service failures and local validation."""

from enum import Enum

from pydantic import BaseModel

from taskmirror.core.config import constants


class ErrorKind(Enum):
    """Closed set of failure kinds a gateway call can produce."""

    TRANSIENT = "transient"  # Network failure, 5xx, 429
    AUTH_EXPIRED = "auth_expired"  # 401/403, token needs refreshing
    VALIDATION = "validation"  # Rejected input, local or remote 4xx
    NOT_FOUND = "not_found"  # 404/410


class ErrorSeverity(Enum):
    """How prominently a failure notice should be shown."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Stable codes callers can branch on without parsing messages."""

    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_TOKEN_EXPIRED = "ERR_TOKEN_EXPIRED"
    ERR_SESSION_EXPIRED = "ERR_SESSION_EXPIRED"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error notice with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


def classify_status(status_code: int | None) -> ErrorKind:
    """Map an HTTP status (None for transport failures) onto an ErrorKind."""
    if status_code is None:
        return ErrorKind.TRANSIENT
    if status_code in (constants.HTTP_UNAUTHORIZED, constants.HTTP_FORBIDDEN):
        return ErrorKind.AUTH_EXPIRED
    if status_code in (constants.HTTP_NOT_FOUND, constants.HTTP_GONE):
        return ErrorKind.NOT_FOUND
    if status_code == constants.HTTP_TOO_MANY_REQUESTS or status_code >= constants.HTTP_SERVER_ERROR:
        return ErrorKind.TRANSIENT
    return ErrorKind.VALIDATION


class TasksAPIError(Exception):
    """A failed call against the remote task service."""

    def __init__(self, message: str, *, status_code: int | None = None, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = kind or classify_status(status_code)

    @property
    def is_auth_error(self) -> bool:
        return self.kind is ErrorKind.AUTH_EXPIRED

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


class TokenRefreshError(Exception):
    """The refresh-token grant was rejected or could not be completed."""


class SessionExpiredError(Exception):
    """Authentication failed again after a refresh; the account must be re-linked."""

    def __init__(self, account_id: str, message: str = "Session expired") -> None:
        super().__init__(f"{message} for account {account_id}")
        self.account_id = account_id


class TaskValidationError(ValueError):
    """Input rejected before any store mutation or network call."""


def error_response_for(exception: Exception) -> ErrorResponse:
    """Build the user-facing notice for a failed operation.

    Outer layers show this as-is; they never need to branch on the error kind.
    """
    if isinstance(exception, SessionExpiredError):
        return ErrorResponse(
            code=ErrorCode.ERR_SESSION_EXPIRED,
            message="Your session with this account has expired.",
            suggestion="Sign in to the account again to keep syncing.",
            severity=ErrorSeverity.CRITICAL,
        )

    if isinstance(exception, TaskValidationError):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception),
            suggestion="Check the task details and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, TasksAPIError):
        if exception.kind is ErrorKind.AUTH_EXPIRED:
            return ErrorResponse(
                code=ErrorCode.ERR_TOKEN_EXPIRED,
                message="The account's access token has expired.",
                suggestion="Refresh the account and try again.",
                severity=ErrorSeverity.HIGH,
            )
        if exception.kind is ErrorKind.NOT_FOUND:
            return ErrorResponse(
                code=ErrorCode.ERR_NOT_FOUND,
                message="That task or list no longer exists.",
                suggestion="Reload your lists to see the latest state.",
                severity=ErrorSeverity.LOW,
            )
        if exception.kind is ErrorKind.VALIDATION:
            return ErrorResponse(
                code=ErrorCode.ERR_VALIDATION,
                message="The task service rejected the change.",
                suggestion="Check the task details and try again.",
                severity=ErrorSeverity.MEDIUM,
            )
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="Could not reach the task service.",
            suggestion="The change was undone; try again once you are back online.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="Something went wrong while syncing.",
        suggestion="Please try again later. If the problem persists, reload the page.",
        severity=ErrorSeverity.MEDIUM,
    )
