"""
API v1 Router Module

All v1 endpoints are prefixed with /api/v1/ and mirrored under /api/ for
the browser UI:

- /config  - Upscaler location (read/write)
- /process - Batch dispatch
- /upload, /files - Input uploads and output gallery
- /metrics - Prometheus scrape target

The progress WebSocket lives outside the versioned prefix at /ws/progress.
"""

from fastapi import APIRouter

from imageforge.api.v1.config import router as config_router
from imageforge.api.v1.events import router as events_router
from imageforge.api.v1.files import router as files_router
from imageforge.api.v1.metrics import router as metrics_router
from imageforge.api.v1.process import router as process_router


def build_api_router(prefix: str) -> APIRouter:
    api_router = APIRouter(prefix=prefix)
    api_router.include_router(config_router, prefix="/config", tags=["config"])
    api_router.include_router(process_router, prefix="/process", tags=["pipeline"])
    api_router.include_router(files_router, tags=["files"])
    api_router.include_router(metrics_router, tags=["metrics"])
    return api_router


# Main v1 router
api_v1_router = build_api_router("/api/v1")

# Unversioned routes used by the browser UI
api_router = build_api_router("/api")

# Progress stream
ws_router = APIRouter(prefix="/ws")
ws_router.include_router(events_router, tags=["progress"])
