"""
Files Endpoints

POST /api/v1/upload - Multipart upload (field "images") into input/
GET  /api/v1/files  - Gallery listing of output/
"""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from imageforge.api.dependencies import get_storage
from imageforge.core.logging import get_logger
from imageforge.core.storage import LocalStorage, safe_filename

logger = get_logger(__name__)
router = APIRouter()


class UploadResponse(BaseModel):
    count: int


class OutputFile(BaseModel):
    name: str
    url: str
    size: str


@router.post("/upload", response_model=UploadResponse)
async def upload_images(
    images: List[UploadFile] = File(...),
    storage: LocalStorage = Depends(get_storage)
):
    """
    Store uploaded images in input/ under their original names.

    Every name is checked before anything is written: one bad name rejects
    the whole request and input/ is left untouched.
    """
    names = [safe_filename(upload.filename or "") for upload in images]

    for upload, name in zip(images, names):
        file_data = await upload.read()
        target = storage.save_upload(file_data, name)
        logger.info("image_uploaded", file=target.name, size_bytes=len(file_data))

    return UploadResponse(count=len(images))


@router.get("/files", response_model=List[OutputFile])
async def list_files(storage: LocalStorage = Depends(get_storage)):
    """List processed images with their size in MB."""
    return [
        OutputFile(
            name=path.name,
            url=storage.output_url(path),
            size=f"{path.stat().st_size / 1024 / 1024:.2f} MB"
        )
        for path in storage.list_outputs()
    ]
