"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, the internal-access middleware,
request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- Every request, including internal-header rejections, gets X-Request-ID

Order of registration:
1. AuthMiddleware (runs second - after request-id)
2. RequestIDMiddleware (runs first - outermost)

Process-local collaborators:
- AutosaveQueue and PublishLockRegistry are created at startup and stored
  on app.state; route dependencies read them from there
"""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from folio.api.routes import create_api_router
from folio.auth.middleware import AuthMiddleware
from folio.config import get_settings
from folio.errors import ApiError, ApiErrorCode
from folio.logging import configure_logging, get_logger
from folio.middleware.request_id import RequestIDMiddleware
from folio.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from folio.services.autosave import AutosaveQueue
from folio.services.locks import PublishLockRegistry

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle resources.

    Unsaved drafts still queued at shutdown are reported, not written.
    """
    yield

    pending = len(app.state.autosave_queue)
    if pending:
        logger.warning("autosave_drafts_dropped", pending=pending)


def create_app(skip_auth_middleware: bool = False) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding the internal-access
            middleware (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Folio API",
        description="Document hierarchy and publication snapshot service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.autosave_queue = AutosaveQueue(max_pending=settings.autosave_max_pending)
    app.state.publish_locks = PublishLockRegistry()

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Handle JSON parsing errors specifically
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    # Handle JSON decode errors from malformed JSON bodies
    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    # Use router factory to avoid import-time settings loading
    app.include_router(create_api_router())

    # Internal header enforcement (all paths except health, docs and /p/*)
    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            requires_internal_header=settings.requires_internal_header,
            internal_secret=settings.folio_internal_secret,
        )

        logger.info(
            "auth_middleware_enabled",
            env=settings.folio_env.value,
            internal_header_required=settings.requires_internal_header,
        )

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
