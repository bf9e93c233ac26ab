"""Observability for taskmirror, built on Pydantic Logfire.

Modules log through the standard library (``logging.getLogger(__name__)``) and
put structured fields in ``extra``. Service operations open Logfire spans so a
mutation and the remote calls it triggers show up together, e.g.::

    with span("sync_service.load_account"):
        ...
    log_with_context(logger, "warning", "Account load failed", account_id="acct-1")
"""

import logging

import logfire
from fastapi import FastAPI

from taskmirror.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Set up Logfire once at startup; spans stay local unless a token is configured."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="taskmirror",
        service_version="0.1.0",
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured", extra={"exporting": bool(settings.logfire_token)})


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request handled by the HTTP proxy."""
    logfire.instrument_fastapi(app)
    logger.debug("Proxy request tracing enabled", extra={"app": app.title})


def span(name: str) -> logfire.LogfireSpan:
    """Open a span around a service operation."""
    return logfire.span(name)


def log_with_context(logger: logging.Logger, level: str, message: str, **context: object) -> None:
    """Emit ``message`` at ``level`` (a level name such as "warning") with ``context`` as structured fields."""
    getattr(logger, level.lower())(message, extra=context)
