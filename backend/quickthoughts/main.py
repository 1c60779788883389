"""
Quick Thoughts Backend: FastAPI Application Factory
=====================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() assembles middleware, exception handlers and routers.
Who:   uvicorn (`uvicorn quickthoughts.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:  Rate Limit → Request ID → Logging → CORS   │
    │                                                          │
    │  Routes:                                                 │
    │    POST /api/transcribe   GET/POST/DELETE /api/memos     │
    │    GET /api/folders       POST /api/onboarding           │
    │    GET /health                                           │
    │                                                          │
    │  Exception Handlers:                                     │
    │    Validation/Unauthorized → 400   NotFound → 404        │
    │    RateLimit → 429   CircuitOpen → 503                   │
    │    RequestFailed/Configuration/Database → 500            │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, credential check (missing keys are logged, not fatal;
              the affected routes answer with a configuration error)
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from quickthoughts import __version__
from quickthoughts.config import settings
from quickthoughts.database import dispose_engine
from quickthoughts.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    DatabaseError,
    NotFoundError,
    QuickThoughtsError,
    RateLimitExceededError,
    RequestFailedError,
    UnauthorizedError,
    ValidationError,
)
from quickthoughts.middleware.logging import RequestLoggingMiddleware
from quickthoughts.middleware.rate_limit import RateLimitMiddleware
from quickthoughts.middleware.request_id import (
    RequestIDFilter,
    RequestIDMiddleware,
    request_id_var,
)
from quickthoughts.routes import folders, health, memos, transcribe

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once at startup.

    Every record gets a `request_id` attribute from RequestIDFilter ("-"
    outside a request), so one format works for app, access and library logs.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())

    logging.basicConfig(
        level=getattr(logging, level or settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Quick Thoughts backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Routes that need these credentials will fail until they are set.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Quick Thoughts backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("") or None}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to status codes and a uniform ErrorResponse body.

    Internal details (SQL, stack traces, provider errors) are logged
    server-side only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        # Body and query errors use the same 400 shape as ValidationError
        errors = exc.errors()
        first = errors[0] if errors else {}
        message = str(first.get("msg", "Invalid request")).removeprefix("Value error, ")
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        logger.warning("Request validation failed: %s (%s)", message, field or "-")
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", message, {"field": field} if field else None),
        )

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        # Clients match on error == "unauthorized", not on the status code
        return JSONResponse(
            status_code=400,
            content=_error_body("unauthorized", exc.message),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("Circuit breaker open: %s", exc.message)
        return JSONResponse(
            status_code=503,
            content=_error_body(
                "service_unavailable", exc.message, {"recovery_time": exc.recovery_time}
            ),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(RequestFailedError)
    async def handle_request_failed(request: Request, exc: RequestFailedError):
        logger.error("Upstream request failed: %s | Context: %s", exc.message, exc.context)
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=500,
            content=_error_body("request_failed", exc.message),
            headers=headers,
        )

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error("Missing configuration: %s", ", ".join(exc.missing))
        return JSONResponse(
            status_code=500,
            content=_error_body("configuration_error", exc.message, {"missing": exc.missing}),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(QuickThoughtsError)
    async def handle_app_error(request: Request, exc: QuickThoughtsError):
        logger.error("Unhandled application error: %s", exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Quick Thoughts API",
        description=(
            "Voice memo capture: transcribes short recordings with Google Gemini, "
            "splits them into thoughts and files each into one of the user's folders."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Executed in reverse order of addition: RateLimit runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(transcribe.router)
    app.include_router(folders.router)
    app.include_router(memos.router)
    app.include_router(health.router)

    return app


app = create_app()
