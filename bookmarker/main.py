"""
Bookmarker — FastAPI Application Factory
==========================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, exception
       handlers and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn bookmarker.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐                   │
    │  │ Req ID   │→│  Logging        │                   │
    │  └──────────┘ └─────────────────┘                   │
    │                                                     │
    │  Routes:                                            │
    │  ┌────────────────────┐ ┌─────────────────┐         │
    │  │ /api/annotations/* │ │ GET /health     │         │
    │  └────────────────────┘ └─────────────────┘         │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation→400 │ NotFound→404 │ Conflict→409 │   │
    │  │ Database→500   │ anything else→500           │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bookmarker import __version__
from bookmarker.config import settings
from bookmarker.database import dispose_engine
from bookmarker.exceptions import (
    BookmarkerError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from bookmarker.middleware.request_id import RequestIDMiddleware, request_id_var
from bookmarker.middleware.logging import RequestLoggingMiddleware
from bookmarker.routes import annotations, health

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Called once during app startup and by the importer CLI.
    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Set up logging on startup; dispose the engine's pool on shutdown."""
    setup_logging()
    logger.info("Bookmarker %s starting up...", __version__)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("Bookmarker shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# Status code and error code per application exception.
# DatabaseError details stay in the logs; the client gets a generic message.
ERROR_RESPONSES: Dict[Type[BookmarkerError], Tuple[int, str]] = {
    ValidationError: (400, "validation_error"),
    NotFoundError: (404, "not_found"),
    ConflictError: (409, "conflict"),
    DatabaseError: (500, "server_error"),
}

GENERIC_DATABASE_MESSAGE = "An internal error occurred. Please try again later."


def error_response(exc: BookmarkerError, rid: str) -> JSONResponse:
    """Render an application exception as the standard error envelope."""
    status_code, code = ERROR_RESPONSES.get(type(exc), (500, "server_error"))
    content: Dict[str, Any] = {"error": code, "message": exc.message, "request_id": rid}
    if status_code >= 500:
        content["message"] = GENERIC_DATABASE_MESSAGE
    elif isinstance(exc, ValidationError):
        content["details"] = exc.context
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

        ValidationError  → 400    NotFoundError → 404
        ConflictError    → 409    DatabaseError → 500
        anything else    → 500 (logged with stack trace)

    The legacy read endpoints never reach these; they answer their own
    fixed 404 bodies.
    """

    @app.exception_handler(BookmarkerError)
    async def handle_app_error(request: Request, exc: BookmarkerError):
        rid = request_id_var.get("")
        response = error_response(exc, rid)
        if response.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        elif response.status_code != 404:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return response

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers into a FastAPI app."""
    app = FastAPI(
        title="Bookmarker API",
        description="Kindle and Calibre annotations: highlights, notes and tags.",
        version=__version__,
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(annotations.router)
    app.include_router(health.router)

    return app


# uvicorn expects `bookmarker.main:app` to be importable
app = create_app()
