"""
Process Endpoint - Batch Dispatch

POST /api/v1/process - Start processing one file or everything in input/.
Returns as soon as the batch is scheduled; progress arrives over
/ws/progress.
"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from imageforge.api.dependencies import get_dispatcher
from imageforge.core.logging import get_logger
from imageforge.modules.imagery.models import ProcessingSettings
from imageforge.pipeline.tasks import BatchDispatcher

logger = get_logger(__name__)
router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class ProcessRequest(BaseModel):
    """Request for a processing batch."""
    filename: str = Field(..., description='A file in input/, or "all"')
    settings: ProcessingSettings = Field(default_factory=ProcessingSettings)


class ProcessResponse(BaseModel):
    status: Literal["started"] = "started"
    count: int


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=ProcessResponse)
async def process_images(
    request: ProcessRequest,
    dispatcher: BatchDispatcher = Depends(get_dispatcher)
):
    """
    Dispatch a batch.

    The count is known before any file starts; per-file success or failure
    is reported only through progress events.
    """
    count = dispatcher.dispatch(request.filename, request.settings)
    return ProcessResponse(count=count)
