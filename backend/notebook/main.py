"""
Notebook Backend: FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app(settings) builds every shared component from one Settings
       object and keeps it on app.state; routes reach them through
       notebook.dependencies.
Who:   uvicorn (`uvicorn notebook.main:app`), tests (create_app(test_settings)).

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  app.state: settings │ engine │ session_factory │       │
    │             file_store │ summarizer                     │
    │                                                         │
    │  Middleware:  CORS → GZip → Request ID → Access Log     │
    │                                                         │
    │  Routes:  /api/notes  /api/requests  /api/summarize     │
    │           /api/colleges  /health                        │
    │                                                         │
    │  Exception Handlers:                                    │
    │    NotebookError → its status_code / error_code         │
    │    RequestValidationError → 400 validation_error        │
    │    Exception → 500 internal_server_error                │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    create_app:  logging, config validation (fail fast), engine, file store,
                 summarizer
    Startup:     log readiness
    Shutdown:    dispose database engine
"""

import logging
import sys
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from notebook import __version__
from notebook.config import Settings, get_settings
from notebook.database import dispose_engine, init_database
from notebook.exceptions import NotebookError, UpstreamError
from notebook.middleware.logging import RequestLoggingMiddleware
from notebook.middleware.request_id import RequestIDMiddleware, request_id_var
from notebook.routes import colleges, health, notes, requests, summarize
from notebook.services.file_store import build_file_store
from notebook.services.gemini_service import GeminiSummarizer

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════


def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the entire application.

    Format: 2024-01-15T12:00:00 [INFO] notebook.services.note_service: message
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    logger.info("=" * 60)
    logger.info("Notebook Backend %s starting up (%s)", __version__, settings.environment)
    logger.info("File store: %s", settings.storage_backend)
    logger.info("Summarizer: %s", app.state.summarizer.status())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Notebook Backend shutting down...")
    await dispose_engine(app.state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


HTTP_ERROR_CODES = {
    404: "not_found",
    405: "method_not_allowed",
}


def _error_body(
    settings: Settings,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]],
    exc: BaseException,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        body["details"] = details
    if not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """
    Map exceptions to the standard error body.

    Handler hierarchy:
        NotebookError (and subclasses) → exc.status_code / exc.error_code
        RequestValidationError         → 400 validation_error
        StarletteHTTPException         → exc.status_code (unknown route, wrong method)
        Exception (fallback)           → 500 internal_server_error

    Security: `details` are only returned for 4xx errors; 5xx context is
    logged server-side and withheld from the client. Stack traces are added
    outside production only.
    """

    @app.exception_handler(NotebookError)
    async def handle_notebook_error(request: Request, exc: NotebookError):
        rid = request_id_var.get("")
        is_client_error = exc.status_code < 500
        if is_client_error:
            logger.warning("[%s] %s: %s", rid, exc.error_code, exc.message)
        else:
            logger.error("[%s] %s: %s | Context: %s", rid, exc.error_code, exc.message, exc.context)

        headers = {}
        if isinstance(exc, UpstreamError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                settings,
                exc.error_code,
                exc.message,
                exc.context if is_client_error else None,
                exc,
            ),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", rid, errors)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                settings,
                "validation_error",
                errors[0]["message"] if errors else "Invalid request",
                {"errors": errors},
                exc,
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        rid = request_id_var.get("")
        error = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
        logger.warning("[%s] %s %s: %s", rid, request.method, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(settings, error, str(exc.detail), None, exc),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                settings,
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
                None,
                exc,
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Raises:
        ConfigurationError: DATABASE_URL missing or remote storage misconfigured
    """
    settings = settings or get_settings()
    setup_logging(settings)

    for warning in settings.validate_required():
        logger.error("Configuration problem: %s", warning)

    app = FastAPI(
        title="Notebook API",
        description=(
            "College note-sharing backend: a filtered note library, student "
            "submissions moderated by teachers, and LLM summaries of notes."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    engine, session_factory = init_database(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.file_store = build_file_store(settings)
    app.state.summarizer = GeminiSummarizer(settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: CORS → GZip → RequestID → Logging → route
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_origin_regex=settings.cors_origin_regex or None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )

    register_exception_handlers(app, settings)

    app.include_router(notes.router)
    app.include_router(requests.router)
    app.include_router(summarize.router)
    app.include_router(colleges.router)
    app.include_router(health.router)

    return app


app = create_app()
