"""
Imagery Module

Processing settings and progress event models.
"""

from imageforge.modules.imagery.models import (
    CompleteEvent,
    ErrorEvent,
    PipelineStage,
    ProcessingSettings,
    ProgressEvent,
    StartEvent,
    StepEvent,
)

__all__ = [
    "CompleteEvent",
    "ErrorEvent",
    "PipelineStage",
    "ProcessingSettings",
    "ProgressEvent",
    "StartEvent",
    "StepEvent",
]
