"""Artifact Collaboration API - FastAPI Application."""

import logging

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from artifact_core.errors import (
    CommitConflictError,
    InvalidTransitionError,
    NotFoundError,
    SchemaDriftError,
    StoreUnavailableError,
)
from config import settings
from database.session import init_models
from routers import artifacts, comments, conversations, realtime, shared, versions


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Output format ("json" or "console")
    """
    logging.basicConfig(format="%(message)s", level=level.upper())

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


setup_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Streaming artifact variants, version history and collaborative comments",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(conversations.router, prefix="/conversations", tags=["Conversations"])
app.include_router(artifacts.router, prefix="/artifacts", tags=["Artifacts"])
app.include_router(versions.router, prefix="/artifacts", tags=["Versions"])
app.include_router(comments.router, tags=["Comments"])
app.include_router(shared.router, prefix="/shared", tags=["Shared"])
app.include_router(realtime.router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Missing records map to 404."""
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(CommitConflictError)
async def conflict_handler(request: Request, exc: CommitConflictError) -> JSONResponse:
    """Version number races map to 409; nothing was written."""
    logger.warning("Commit conflict", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": {"code": "commit_conflict", "message": str(exc)}},
    )


@app.exception_handler(SchemaDriftError)
async def schema_drift_handler(request: Request, exc: SchemaDriftError) -> JSONResponse:
    """Rejected write shapes map to 422 so clients can retry reduced."""
    logger.warning("Schema drift", path=request.url.path, fields=exc.fields)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {"code": "schema_drift", "message": str(exc), "fields": exc.fields}
        },
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(
    request: Request, exc: StoreUnavailableError
) -> JSONResponse:
    """Store failures map to 503."""
    logger.error("Store unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": {"code": "store_unavailable", "message": str(exc)}},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Unclassified database failures map to 503."""
    logger.error("Database error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": {"code": "store_unavailable", "message": "Database error"}},
    )


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(
    request: Request, exc: InvalidTransitionError
) -> JSONResponse:
    """Illegal workflow transitions map to 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"code": "invalid_transition", "message": str(exc)}},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "disabled",
    }


@app.on_event("startup")
async def startup_event() -> None:
    """Run on application startup."""
    logger.info("Starting Artifact Collaboration API", environment=settings.environment)
    if settings.auto_create_tables:
        await init_models()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Run on application shutdown."""
    logger.info("Shutting down Artifact Collaboration API")
