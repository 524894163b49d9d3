"""QuoteFlow Backend - Main FastAPI Application

Document lifecycle engine for quotations, invoices and contracts.

This module creates and configures the FastAPI application, including:
- Document, recipient, analytics, template and settings routers
- Middleware (request ID correlation, CORS)
- Exception handlers mapping lifecycle errors to HTTP responses
- Health and metrics endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .documents.router import analytics_router, recipient_router
from .documents.router import router as documents_router
from .profiles.router import router as profiles_router
from .templates.router import router as templates_router
from .domain.documents.errors import (
    AccessDenied,
    DeliveryFailure,
    DuplicateDocumentNumber,
    InvalidTemplate,
    InvalidTransition,
    LifecycleError,
    NotFound,
    NumberingConflict,
    PersistenceFailure,
    RevisionConflict,
)
from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware
from .observability.router import router as observability_router

settings = get_settings()

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

logger = logging.getLogger(__name__)

# (status code, error code) per lifecycle error; the most specific class wins
ERROR_RESPONSES = {
    NotFound: (status.HTTP_404_NOT_FOUND, "not_found"),
    AccessDenied: (status.HTTP_403_FORBIDDEN, "access_denied"),
    InvalidTransition: (status.HTTP_409_CONFLICT, "invalid_transition"),
    NumberingConflict: (status.HTTP_409_CONFLICT, "numbering_conflict"),
    DuplicateDocumentNumber: (status.HTTP_409_CONFLICT, "duplicate_document_number"),
    RevisionConflict: (status.HTTP_409_CONFLICT, "revision_conflict"),
    InvalidTemplate: (status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_template"),
    DeliveryFailure: (status.HTTP_502_BAD_GATEWAY, "delivery_failed"),
    PersistenceFailure: (status.HTTP_500_INTERNAL_SERVER_ERROR, "persistence_failure"),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("QuoteFlow API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Email delivery: {'smtp' if settings.SMTP_HOST else 'disabled'}")
    logger.info(f"Export format: {settings.EXPORT_FORMAT}")

    yield

    logger.info("QuoteFlow API shutting down...")


app = FastAPI(
    title="QuoteFlow API",
    description="Document lifecycle engine for quotations, invoices and contracts",
    version="0.1.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    openapi_url="/openapi.json" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE CONFIGURATION
# =============================================================================

app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Totals-Warnings"],
)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSON cannot encode
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with field-level details."""
    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={"errors": exc.errors()}
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": jsonable_errors(exc),
        },
    )


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(
    request: Request,
    exc: LifecycleError
) -> JSONResponse:
    """Map lifecycle errors to status codes.

    Persistence failures are logged with traceback and reported generically.
    """
    status_code, error = status.HTTP_400_BAD_REQUEST, "lifecycle_error"
    for cls in type(exc).__mro__:
        if cls in ERROR_RESPONSES:
            status_code, error = ERROR_RESPONSES[cls]
            break

    if status_code >= 500 and status_code != status.HTTP_502_BAD_GATEWAY:
        logger.error(f"{error} on {request.method} {request.url.path}", exc_info=exc)
        message = "The document could not be saved. Please try again later."
    else:
        logger.info(f"{error} on {request.method} {request.url.path}: {exc}")
        message = str(exc)

    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Domain-level validation failures (e.g. a field that cannot be revised)."""
    logger.warning(f"Invalid request on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation_error", "message": str(exc)},
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
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "database_error",
            "message": "A database error occurred. Please try again later.",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle uncaught exceptions without exposing details to the client."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

# Observability (health, metrics)
app.include_router(observability_router)

app.include_router(documents_router, prefix="/api/v1")
app.include_router(recipient_router, prefix="/api/v1")
app.include_router(analytics_router, prefix="/api/v1")
app.include_router(templates_router, prefix="/api/v1")
app.include_router(profiles_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, Any]:
    """Root endpoint - API information."""
    return {
        "name": "QuoteFlow API",
        "version": "0.1.0",
        "status": "running",
        "docs": "/docs" if settings.ENVIRONMENT != "production" else None,
    }


def create_app() -> FastAPI:
    """Application factory for ASGI servers and tests."""
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quoteflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
