"""
Global Exception Handling

Domain exceptions for the processing pipeline and the FastAPI handlers
that render them as structured JSON responses.
"""

import traceback
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from imageforge.core.logging import get_logger, file_var

logger = get_logger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Custom Exceptions
# =============================================================================

class ImageForgeError(Exception):
    """Base exception for ImageForge."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        file: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.file = file or file_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ImageForgeError):
    """Raised when request input is rejected."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class PipelineStageError(ImageForgeError):
    """Raised when a pipeline stage fails."""

    def __init__(self, message: str, stage: str, **kwargs):
        super().__init__(message, code=500, stage=stage, **kwargs)


class UpscalerError(PipelineStageError):
    """Base for failures of the external upscaler process."""

    def __init__(self, message: str, binary: str, **kwargs):
        super().__init__(message, stage="upscale", **kwargs)
        self.details["binary"] = binary


class UpscalerExitError(UpscalerError):
    """The upscaler ran but exited with a non-zero code."""

    def __init__(self, exit_code: int, binary: str, **kwargs):
        super().__init__(f"Upscayl exited with code {exit_code}", binary=binary, **kwargs)
        self.exit_code = exit_code
        self.details["exit_code"] = exit_code


class UpscalerSpawnError(UpscalerError):
    """The upscaler could not be started at all."""

    def __init__(self, binary: str, reason: str, **kwargs):
        super().__init__(f"Failed to start Upscayl at {binary}: {reason}", binary=binary, **kwargs)


class StorageError(ImageForgeError):
    """Raised when storage operations fail."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=500, **kwargs)


# =============================================================================
# Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(ImageForgeError)
    async def imageforge_exception_handler(request: Request, exc: ImageForgeError):
        logger.error(
            "imageforge_exception",
            error=exc.message,
            code=exc.code,
            stage=exc.stage,
            details=exc.details,
            path=str(request.url.path)
        )

        return JSONResponse(
            status_code=exc.code,
            content={
                "error": exc.message,
                "code": exc.code,
                "file": exc.file,
                "stage": exc.stage,
                "details": exc.details,
                "timestamp": _utc_timestamp()
            }
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "code": 500,
                "timestamp": _utc_timestamp()
            }
        )
