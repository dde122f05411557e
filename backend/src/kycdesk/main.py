"""KYC Desk Backend - Main FastAPI Application

Identity-verification intake and review service.

This module creates and configures the FastAPI application:
- Attachment store bootstrap (once, in the lifespan)
- Middleware (request ID correlation, CORS)
- Exception handlers mapping domain errors to JSON error bodies
- Submission, health and metrics routers
"""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .domain.attachments.errors import StorageError
from .domain.submissions.errors import SubmissionError
from .infrastructure.storage import initialize_store, load_storage_config
from .observability.logging_config import configure_logging
from .observability.middleware import RequestContextMiddleware
from .observability.router import router as observability_router
from .submissions.router import router as submissions_router

settings = get_settings()

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: build and initialize the attachment store (unless one was
      provided already, e.g. by tests)
    - Shutdown: log only; the store holds no open handles
    """
    logger.info("KYC desk API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if getattr(app.state, "attachment_store", None) is None:
        app.state.attachment_store = await initialize_store(load_storage_config(settings))
    logger.info(f"Attachment store ready: backend={app.state.attachment_store.backend_name}")

    yield

    logger.info("KYC desk API shutting down...")


app = FastAPI(
    title="KYC Desk API",
    description="Identity-verification submissions, attachments and review workflow",
    version="0.1.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    openapi_url="/openapi.json" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE CONFIGURATION
# =============================================================================

app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {"error": code, "message": message, "details": details}


@app.exception_handler(SubmissionError)
async def submission_exception_handler(request: Request, exc: SubmissionError) -> JSONResponse:
    """Validation, duplicate, not-found, status and persistence errors."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.details),
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Attachment rejections (415/413/400), missing attachments (404), store I/O (500)."""
    if exc.status_code >= 500:
        logger.error(f"Storage error on {request.method} {request.url.path}", exc_info=exc)
        message = "Attachment storage failed. Please try again later."
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, message),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Auth failures, missing routes and unavailable dependencies.

    The error code is the status phrase, e.g. 401 -> UNAUTHORIZED.
    """
    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = "HTTP_ERROR"
    logger.info(f"{code} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Handle request parameter validation errors."""
    logger.warning(f"Validation error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            "REQUEST_VALIDATION_ERROR",
            "Request validation failed",
            [
                {"field": ".".join(str(p) for p in error.get("loc", ())), "message": error.get("msg")}
                for error in exc.errors()
            ],
        ),
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """Handle database errors.

    Logs the full error but returns a generic message to prevent
    information leakage.
    """
    logger.error(
        f"Database error on {request.method} {request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_error_body("DATABASE_ERROR", "A database error occurred. Please try again later."),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle uncaught exceptions.

    Full details are logged but not exposed to the client.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("INTERNAL_ERROR", "An unexpected error occurred. Please try again later."),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(observability_router)
app.include_router(submissions_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, Any]:
    return {"name": "KYC Desk API", "version": "0.1.0", "docs": "/docs"}
