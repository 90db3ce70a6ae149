"""
Crcle FastAPI Application

Main entry point for the Crcle API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from google.api_core.exceptions import GoogleAPIError
from pymongo.errors import PyMongoError

# Common library imports
from common.auth import FirebaseAuth
from common.database import MongoDB
from common.storage import BlobStore, StorageError
from common.utils import success_response
from common.utils.exceptions import TransientIOException

# App-specific imports
from config import settings
from crcle.database import ensure_indexes
from crcle.dependencies import init_all_services

# Import routers
from crcle.routers import (
    circles_router,
    photos_router,
    friends_router,
    users_router,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Database Instance
# =============================================================================
main_db = MongoDB()


# =============================================================================
# Application Lifespan
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown tasks like database connections
    and service initialization.
    """
    # Startup
    logger.info("Starting Crcle API...")
    settings.validate_required()

    await main_db.connect(
        uri=settings.MONGODB_URI,
        database_name=settings.MONGODB_DATABASE,
        timeout_ms=settings.MONGODB_TIMEOUT_MS,
    )
    await ensure_indexes(main_db.db)

    blob_store = BlobStore.from_bucket_name(
        settings.GCS_BUCKET,
        project_id=settings.GOOGLE_CLOUD_PROJECT,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
        signed_url_expiration=settings.GCS_SIGNED_URL_EXPIRATION,
    )
    auth_provider = FirebaseAuth(
        credentials_path=settings.FIREBASE_CREDENTIALS_PATH,
        project_id=settings.FIREBASE_PROJECT_ID,
    )

    init_all_services(
        db=main_db.db,
        blob_store=blob_store,
        auth_provider=auth_provider,
        settings=settings,
    )
    logger.info("Crcle API started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Crcle API...")
    await main_db.disconnect()


# =============================================================================
# FastAPI Application
# =============================================================================
app = FastAPI(
    title="Crcle API",
    description="Ephemeral, time-boxed group photo albums",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development() else None,
    redoc_url="/redoc" if settings.is_development() else None,
)

# =============================================================================
# CORS Middleware
# =============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Collaborator failures surface as retryable 503s
# =============================================================================
async def transient_io_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning(f"Transient failure on {request.method} {request.url.path}: {exc}")
    error = TransientIOException()
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.detail},
        headers=error.headers,
    )


app.add_exception_handler(PyMongoError, transient_io_handler)
app.add_exception_handler(GoogleAPIError, transient_io_handler)
app.add_exception_handler(StorageError, transient_io_handler)

# =============================================================================
# Include Routers (all under /api/v1 prefix)
# =============================================================================
API_PREFIX = "/api/v1"

app.include_router(circles_router, prefix=API_PREFIX, tags=["Circles"])
app.include_router(photos_router, prefix=API_PREFIX, tags=["Photos"])
app.include_router(friends_router, prefix=API_PREFIX, tags=["Friends"])
app.include_router(users_router, prefix=API_PREFIX, tags=["Users"])


# =============================================================================
# Health Check Endpoint
# =============================================================================
@app.get("/health", tags=["Health"])
async def health():
    """
    Health check endpoint.

    Returns the status of the API and database connection.
    """
    return success_response({
        "status": "ok",
        "version": "1.0.0",
        "database": main_db.is_connected,
    })


# =============================================================================
# Run with Uvicorn
# =============================================================================
if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
    )
