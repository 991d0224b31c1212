"""
Statement Ledger - API Service
==============================
Upload bank statements, extract their transactions, and search them.
"""

from datetime import datetime, timezone
from pathlib import Path
import sys
import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_settings
from database.session import check_database, dispose_engine, init_db
from exceptions import (
    DatabaseConnectionError,
    NotFoundError,
    StatementLedgerBaseException,
    ValidationError,
)
from logging_config import configure_logging, get_logger
from routers import documents_router, transactions_router
from schemas import HealthResponse
from services.document_service import DocumentService
import metrics as app_metrics

# Will be configured in startup
logger = get_logger(__name__)

app = FastAPI(
    title="Statement Ledger",
    description="Bank statement upload and transaction extraction",
    version="0.1.0",
    debug=get_settings().debug,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Request Middleware
# =============================================================================

UNMATCHED_ROUTE = "<unmatched>"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Per-request log context, X-Request-ID echo and HTTP metrics.

    A client-supplied X-Request-ID is reused so a UI action can be traced
    through the logs. Metrics are labelled with the route template
    (/api/v1/documents/{document_id}), never the raw path. Unhandled
    errors are turned into the 500 response here so it carries the header
    and is counted.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)
        duration = time.perf_counter() - start_time

        response.headers["X-Request-ID"] = request_id

        if request.url.path != "/metrics":
            route = request.scope.get("route")
            endpoint = getattr(route, "path", UNMATCHED_ROUTE)
            app_metrics.http_requests_total.labels(
                method=request.method, endpoint=endpoint, status=response.status_code
            ).inc()
            app_metrics.http_request_duration_seconds.labels(
                method=request.method, endpoint=endpoint
            ).observe(duration)

        return response


app.add_middleware(RequestContextMiddleware)

# Register routers
app.include_router(documents_router, prefix="/api/v1/documents", tags=["documents"])
app.include_router(transactions_router, prefix="/api/v1/transactions", tags=["transactions"])


# =============================================================================
# Exception Handlers
# =============================================================================

def _status_code_for(exc: StatementLedgerBaseException) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, DatabaseConnectionError):
        return 503
    return 500


@app.exception_handler(StatementLedgerBaseException)
async def statement_ledger_exception_handler(request: Request, exc: StatementLedgerBaseException):
    """Handle all Statement Ledger exceptions with structured responses."""
    status_code = _status_code_for(exc)

    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        error_type=exc.__class__.__name__,
        context=exc.context,
        status_code=status_code,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.to_dict(),
            "path": str(request.url.path),
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.exception(
        f"Unexpected error: {str(exc)}",
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "error_type": "InternalServerError",
                "message": "An unexpected error occurred",
                "context": {},
            },
            "path": str(request.url.path),
        }
    )


# =============================================================================
# Service Endpoints
# =============================================================================

@app.get("/health", response_model=HealthResponse)
@app.get("/api/v1/health", response_model=HealthResponse, include_in_schema=False)
async def health_check():
    """
    Health check endpoint for container orchestration.

    Returns 200 when the database answers, 503 otherwise.
    """
    services = {}

    if await check_database():
        services["database"] = "healthy"
        app_metrics.database_is_healthy.set(1)
    else:
        services["database"] = "unhealthy"
        app_metrics.database_is_healthy.set(0)

    healthy = services["database"] == "healthy"
    response = HealthResponse(
        status="ok" if healthy else "unhealthy",
        timestamp=datetime.now(timezone.utc),
        services=services,
    )

    if not healthy:
        return JSONResponse(status_code=503, content=response.model_dump(mode="json"))

    return response


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Statement Ledger",
        "status": "operational",
        "docs": "/docs",
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# =============================================================================
# Lifecycle
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize resources on startup."""

    # 1. Validate configuration
    try:
        settings = get_settings()
    except Exception as e:
        print(f"❌ Configuration validation failed: {e}", file=sys.stderr)
        print("Please check your .env file and environment variables.", file=sys.stderr)
        sys.exit(1)

    # 2. Configure logging
    configure_logging(environment=settings.environment, level=settings.log_level)
    logger.info(
        "Starting backend",
        environment=settings.environment,
        extraction_backend=settings.extraction_backend,
    )

    # 3. Ensure storage directories exist
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Upload directory ensured: {upload_dir.absolute()}")

    if settings.sqlite_path is not None:
        settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    # 4. Initialize database tables (retried)
    await init_db(settings)

    # 5. Fail documents left PROCESSING by a previous run
    async with DocumentService() as doc_service:
        stats = await doc_service.rescue_stuck_documents(
            max_age_minutes=settings.stuck_processing_minutes
        )
    if stats["rescued_to_failed"]:
        logger.warning("Rescued stuck documents", count=stats["rescued_to_failed"])


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on shutdown."""
    logger.info("Shutting down backend")
    await dispose_engine()
