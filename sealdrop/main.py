"""FastAPI application for SealDrop.

Provides the v1 API, health endpoints, error rendering and lifecycle
management.

Run with:
    uvicorn sealdrop.main:app --reload

Examples:
    >>> # Health check
    >>> curl http://localhost:3000/health

Tests:
    - tests/unit/test_main.py
"""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from sealdrop import __version__
from sealdrop.api.v1 import router as v1_router
from sealdrop.config import get_settings
from sealdrop.database import check_db_connection, close_db, get_session_factory, init_db
from sealdrop.errors import InvalidInput, QuotaExceeded, SealDropError
from sealdrop.storage import BlobStore

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Response models
class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: bool


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    - Create tables and purge expired entries on startup
    - Close connections on shutdown
    """
    logger.info(f"Starting SealDrop v{__version__}")

    try:
        await init_db()
        if settings.PURGE_ON_STARTUP:
            store = BlobStore(get_session_factory(), settings.storage_config())
            deleted = await store.purge_expired()
            logger.info(f"Startup purge removed {deleted} expired entries")
    except Exception as e:
        # Keep serving; requests report StorageUnavailable until the database returns
        logger.error(f"Database initialization failed: {e}")

    yield

    logger.info("Shutting down SealDrop")
    await close_db()


app = FastAPI(
    title="SealDrop",
    description="Ephemeral storage for client-encrypted payloads",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(v1_router)


# Exception handlers
@app.exception_handler(SealDropError)
async def sealdrop_exception_handler(request: Request, exc: SealDropError):
    """Render storage-core errors with their own status code."""
    headers = None
    if isinstance(exc, QuotaExceeded) and exc.retry_after_seconds is not None:
        headers = {"Retry-After": str(exc.retry_after_seconds)}

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as InvalidInput instead of 422."""
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content={"error": InvalidInput.kind, "detail": "Malformed request body"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render routing errors (unknown path, wrong method) in the error body shape."""
    kind = HTTPStatus(exc.status_code).phrase.replace(" ", "")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": kind, "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "InternalServerError", "detail": str(exc) if settings.DEBUG else None},
    )


# Health endpoints
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Report application and database health."""
    db_healthy = await check_db_connection()

    return HealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=__version__,
        database=db_healthy,
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with basic info."""
    return {
        "name": "SealDrop",
        "version": __version__,
        "entries": "/api/v1/entries",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sealdrop.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
