"""
FastAPI application entry point.
Sets up the API with lifespan events for loading and validating storage settings.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from imgup import __version__
from imgup.config import settings
from imgup.api.errors import upload_exception_handler
from imgup.api.router import api_router
from imgup.middleware.metrics_middleware import MetricsMiddleware
from imgup.services.uploader_service import get_uploader_service
from imgup.storage.errors import UploadError
from imgup.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: Load storage settings and run the connectivity probe
    - Shutdown: nothing to release (boto3 clients close with the process)
    """
    configure_logging(settings.service_name, settings.log_level)

    # Invalid settings must not stop the API: start() reports them and the
    # settings endpoints stay available to fix them
    service = get_uploader_service()
    report = await service.start()
    if not report.valid:
        logger.warning(f"Starting without active storage settings: {report.error}")

    yield


# Create FastAPI app
app = FastAPI(
    title="imgup",
    description="Upload pasted images to S3-compatible storage and get public links",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Editors call this from their own origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)

app.add_exception_handler(UploadError, upload_exception_handler)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "imgup API",
        "version": __version__,
        "environment": settings.environment
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
