"""
FastAPI Dependencies

Provides dependency injection for the process-wide singletons:
- Storage (directory layout)
- Upscaler config store
- Progress broadcaster
- Batch dispatcher
"""

from typing import Optional

from imageforge.core.config import ConfigStore, config_store
from imageforge.core.events import get_broadcaster
from imageforge.core.storage import get_storage
from imageforge.pipeline.tasks import BatchDispatcher

_dispatcher: Optional[BatchDispatcher] = None


def get_config_store() -> ConfigStore:
    return config_store


def get_dispatcher() -> BatchDispatcher:
    """One dispatcher per process; it owns the running batch tasks."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = BatchDispatcher(
            storage=get_storage(),
            config_store=get_config_store(),
            broadcaster=get_broadcaster()
        )
    return _dispatcher


__all__ = [
    "get_broadcaster",
    "get_config_store",
    "get_dispatcher",
    "get_storage",
]
