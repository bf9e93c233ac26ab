"""taskmirror HTTP proxy: FastAPI app serving the task service routes."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskmirror.core.logging import configure_logfire, instrument_fastapi
from taskmirror.interface.api_router import router as api_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    configure_logfire()
    logger.info("taskmirror proxy started")
    yield
    logger.info("taskmirror proxy stopped")


app = FastAPI(
    title="taskmirror",
    description="Proxy for the remote task service with priority metadata",
    version="0.1.0",
    lifespan=lifespan,
)

instrument_fastapi(app)

app.include_router(api_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness probe; does not touch the remote service."""
    return {"status": "healthy"}
