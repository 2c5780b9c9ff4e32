"""
ImageForge - Main Application

FastAPI application with:
- Batch processing: optional Upscayl upscaling, sRGB normalization,
  metadata rewrite, JPEG re-encode
- Live progress over WebSocket
- Structured logging with structlog
- Prometheus metrics
- Global exception handling
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.routing import Match

from imageforge.api.dependencies import get_config_store, get_dispatcher
from imageforge.api.v1 import api_router, api_v1_router, ws_router
from imageforge.core.config import settings
from imageforge.core.exceptions import register_exception_handlers
from imageforge.core.logging import get_logger, setup_logging
from imageforge.core.metrics import http_request_duration_seconds, http_requests_total, set_app_info
from imageforge.core.storage import OUTPUT_URL_PREFIX, get_storage


# =============================================================================
# Initialize Logging
# =============================================================================
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.LOG_FORMAT_JSON
)
logger = get_logger(__name__)


# =============================================================================
# Lifespan Handler
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - startup and shutdown."""
    storage = get_storage()
    config = get_config_store().get()

    set_app_info(
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT
    )

    logger.info(
        "application_ready",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        data_dir=str(storage.base_path),
        upscayl_bin=config.upscayl_bin,
        upscayl_available=config.available
    )

    yield

    # Shutdown
    running = get_dispatcher().running_batches
    logger.info("application_shutting_down", running_batches=running)


# =============================================================================
# Create FastAPI Application
# =============================================================================
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Batch image finishing service:

    - **Upscaling**: optional 4x pass through the Upscayl executable
    - **Normalization**: EXIF auto-rotate, sRGB conversion, metadata strip
    - **Tagging**: Artist / Copyright / ImageDescription EXIF tags
    - **Encoding**: JPEG quality 95, 4:4:4 chroma
    - **Progress**: live events on `/ws/progress`
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# =============================================================================
# Middleware
# =============================================================================

cors_origins = settings.CORS_ORIGINS.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def route_label(request: Request) -> str:
    """Path template of the matching route, so metric labels stay bounded."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return route.path
    return "unmatched"


@app.middleware("http")
async def add_request_timing(request: Request, call_next):
    """Track request timing for metrics."""
    endpoint = route_label(request)
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    http_request_duration_seconds.labels(
        method=request.method,
        endpoint=endpoint
    ).observe(duration)

    http_requests_total.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code
    ).inc()

    response.headers["X-Process-Time"] = str(duration)
    return response


# =============================================================================
# Register Exception Handlers
# =============================================================================
register_exception_handlers(app)


# =============================================================================
# Include API Routers
# =============================================================================
app.include_router(api_v1_router)
app.include_router(api_router, include_in_schema=False)
app.include_router(ws_router)


# =============================================================================
# Static Files
# =============================================================================

# Processed images, at the URL carried by complete events
app.mount(
    OUTPUT_URL_PREFIX,
    StaticFiles(directory=str(get_storage().output_dir)),
    name="output"
)


# =============================================================================
# Root Endpoints
# =============================================================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
        "api_v1": "/api/v1",
        "progress": "/ws/progress",
        "metrics": "/api/v1/metrics"
    }


@app.get("/health", tags=["health"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


# =============================================================================
# Development Server
# =============================================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "imageforge.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
