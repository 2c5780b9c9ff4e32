"""
Imagery Models

Per-batch processing settings and the progress events broadcast while a
batch runs. Nothing here is persisted: events are built, published and
forgotten.
"""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PipelineStage(str, Enum):
    """Pipeline stages, in execution order."""
    UPSCALE = "upscale"
    OPTIMIZE = "optimize"
    CLEANUP = "cleanup"


class ProcessingSettings(BaseModel):
    """Settings shared by every image in one batch."""
    model_config = ConfigDict(frozen=True)

    upscale: bool = False
    model: Optional[str] = Field(default=None, description="Upscayl model name; unset or empty uses the default model")


# =============================================================================
# Progress Events
# =============================================================================

class StartEvent(BaseModel):
    type: Literal["start"] = "start"
    file: str


class StepEvent(BaseModel):
    type: Literal["step"] = "step"
    file: str
    message: str


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    file: str
    output: str  # root-relative URL of the produced JPEG


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    file: str
    message: str


ProgressEvent = Union[StartEvent, StepEvent, CompleteEvent, ErrorEvent]

TERMINAL_EVENT_TYPES = ("complete", "error")
