"""
Config Endpoint - Upscaler Location

GET  /api/v1/config - Current upscaler path and whether it exists
POST /api/v1/config - Point at another upscayl-bin; models path is derived
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from imageforge.api.dependencies import get_config_store
from imageforge.core.config import ConfigStore
from imageforge.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class ConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upscayl_bin: str = Field(..., alias="upscaylBin")
    upscayl_available: bool = Field(..., alias="upscaylAvailable")
    models_path: str = Field(..., alias="modelsPath")


class ConfigUpdateRequest(BaseModel):
    path: Optional[str] = Field(default=None, description="Full path to upscayl-bin")


class ConfigUpdateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    upscayl_bin: str = Field(..., alias="upscaylBin")
    models_path: str = Field(..., alias="modelsPath")


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=ConfigResponse)
async def get_config(store: ConfigStore = Depends(get_config_store)):
    config = store.get()
    return ConfigResponse(
        upscayl_bin=config.upscayl_bin,
        upscayl_available=config.available,
        models_path=config.models_path
    )


@router.post("", response_model=ConfigUpdateResponse)
async def update_config(
    request: ConfigUpdateRequest,
    store: ConfigStore = Depends(get_config_store)
):
    """
    Replace the upscaler location.

    Takes effect for every file dispatched afterwards, including the
    remaining files of a batch that is already running. An empty path
    leaves the current config untouched.
    """
    if request.path:
        config = store.update(request.path)
        logger.info(
            "upscaler_config_updated",
            upscayl_bin=config.upscayl_bin,
            models_path=config.models_path,
            available=config.available
        )
    else:
        config = store.get()

    return ConfigUpdateResponse(
        upscayl_bin=config.upscayl_bin,
        models_path=config.models_path
    )
