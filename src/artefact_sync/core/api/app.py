"""
FastAPI application setup for the sync trigger.

Creates the FastAPI app, wires the store and sync service into it and
registers routes and exception handlers.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from artefact_sync import __version__
from artefact_sync.core.api.routes import sync
from artefact_sync.core.config import AppConfig, load_config
from artefact_sync.core.exceptions import SyncError
from artefact_sync.core.store import SyncStore, create_store
from artefact_sync.core.sync.service import SyncService

logger = logging.getLogger(__name__)


async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    """
    Answer a failed sync with ``{"error": message}``.

    The status comes from the exception class: 4xx for problems the user has
    to fix, 5xx for upstream failures.
    """
    if exc.status_code >= 500:
        logger.error(
            "HTTP %d on %s %s: %s", exc.status_code, request.method, request.url.path, exc
        )
    else:
        logger.info(
            "HTTP %d on %s %s: %s", exc.status_code, request.method, request.url.path, exc
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer a malformed request body with a 400 and the first problem found."""
    logger.warning(
        "Validation error on %s %s: %s", request.method, request.url.path, exc.errors()
    )
    first_error = exc.errors()[0] if exc.errors() else {}
    field = " -> ".join(str(loc) for loc in first_error.get("loc", []) if loc != "body")
    error_msg = first_error.get("msg", "Invalid input")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"{field}: {error_msg}" if field else error_msg},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all uncaught exceptions.

    Logs the full exception with traceback, but returns a clean error
    response to the client without exposing internal details.
    """
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An internal server error occurred"},
    )


def create_app(store: SyncStore | None = None, config: AppConfig | None = None) -> FastAPI:
    """
    Build the trigger application.

    Args:
        store: Store to use (built from configuration when omitted)
        config: Configuration (loaded from the usual layers when omitted)

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = load_config()
    if store is None:
        store = create_store(config.store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        aclose = getattr(store, "aclose", None)
        if aclose is not None:
            await aclose()

    app = FastAPI(
        title="Artefact Sync API",
        description="Publishes prompts, skills and workflows to GitHub",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.sync_service = SyncService(store, config)

    # The trigger is called from the browser app on another origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["authorization", "content-type", "x-client-info", "apikey"],
    )

    app.include_router(sync.router, prefix="/api", tags=["sync"])

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    app.add_exception_handler(SyncError, sync_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app
