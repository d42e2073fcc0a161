"""
Civil Registry Backend - FastAPI Application Factory
=====================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       uvicorn serves `civil_registry.main:app`.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌───────────┐ ┌──────┐ ┌──────┐       │
    │  │  Req ID  │→│  Logging  │→│ GZip │→│ CORS │       │
    │  └──────────┘ └───────────┘ └──────┘ └──────┘       │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────────────────┐ ┌─────────────┐       │
    │  │ /api/residents/...       │ │ GET /health │       │
    │  └──────────────────────────┘ └─────────────┘       │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation→400 │ NotFound→404 │ Format→400   │   │
    │  │ Infrastructure→500/400 │ Unexpected→500      │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config validation → backup directory
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from civil_registry import __version__
from civil_registry.config import settings
from civil_registry.database import dispose_engine
from civil_registry.exceptions import (
    FormatError,
    NotFoundError,
    RegistryError,
    ValidationError,
)
from civil_registry.middleware.logging import RequestLoggingMiddleware
from civil_registry.middleware.request_id import RequestIDMiddleware, request_id_var
from civil_registry.routes import health, residents
from civil_registry.services.backup_service import backup_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Output: stdout (collected by Docker)
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Civil Registry Backend %s starting up...", __version__)

    try:
        settings.validate_runtime()
    except ValueError as e:
        # Keep serving: /health reports the database state
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    try:
        backup_dir = backup_service.ensure_directory()
        logger.info("Backup directory: %s", backup_dir)
    except RegistryError as e:
        logger.error("Backup directory unavailable: %s", e.error)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Civil Registry Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(exc: RegistryError, rid: str) -> Dict[str, Any]:
    """Envelope shared by every application error."""
    body: Dict[str, Any] = {"success": False, "message": exc.message}
    if exc.error:
        body["error"] = exc.error
    if rid:
        body["requestId"] = rid
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP responses.

    Handler hierarchy:
        ValidationError         → 400 (+ missingFields / details)
        NotFoundError           → 404
        FormatError             → 400
        RegistryError (base)    → exc.status_code (infrastructure, storage)
        RequestValidationError  → 400 (malformed body)
        Exception (fallback)    → 500
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        body = error_body(exc, rid)
        if exc.missing_fields is not None:
            body["missingFields"] = exc.missing_fields
        if exc.details is not None:
            body["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(status_code=404, content=error_body(exc, rid))

    @app.exception_handler(FormatError)
    async def handle_format_error(request: Request, exc: FormatError):
        rid = request_id_var.get("")
        logger.warning("[%s] Format error: %s", rid, exc.message)
        return JSONResponse(status_code=400, content=error_body(exc, rid))

    @app.exception_handler(RegistryError)
    async def handle_registry_error(request: Request, exc: RegistryError):
        rid = request_id_var.get("")
        logger.error(
            "[%s] %s: %s | error=%s | context=%s",
            rid, type(exc).__name__, exc.message, exc.error, exc.context,
        )
        return JSONResponse(status_code=exc.status_code, content=error_body(exc, rid))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        details = [
            {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning("[%s] Malformed request: %s", rid, details)
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Invalid request body",
                "details": details,
                "requestId": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "An unexpected error occurred. Please try again or contact support.",
                "error": str(exc),
                "requestId": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Civil Registry API",
        description=(
            "Resident records for a local civil registry: registration, updates, "
            "QR codes for ID lookup, and JSON backup export/import."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    # Export files and full listings compress well
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(residents.router)
    app.include_router(health.router)

    return app


app = create_app()
