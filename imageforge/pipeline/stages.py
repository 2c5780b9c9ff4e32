"""
Pipeline Stage Implementations

Pillow work for the optimize stage. Each function is synchronous and is
called from the pipeline through asyncio.to_thread.
"""

import io
import os
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import ExifTags, Image, ImageCms, ImageOps

from imageforge.core.logging import get_logger

logger = get_logger(__name__)

SRGB_PROFILE = ImageCms.createProfile("sRGB")


# =============================================================================
# Diagnostics
# =============================================================================

def describe_image(path: Path) -> Dict[str, Any]:
    """
    Summarize an image's descriptive metadata.

    Only logged; nothing downstream branches on it.
    """
    with Image.open(path) as img:
        dpi = img.info.get("dpi")
        return {
            "format": img.format,
            "width": img.width,
            "height": img.height,
            "mode": img.mode,
            "size_bytes": path.stat().st_size,
            "density": [float(v) for v in dpi] if dpi else None,
            "exif": "Present" if img.info.get("exif") else "None",
            "icc": "Present" if img.info.get("icc_profile") else "None",
        }


# =============================================================================
# Normalize: rotate -> sRGB -> metadata-free buffer
# =============================================================================

def _to_srgb(img: Image.Image, icc_profile: Optional[bytes]) -> Image.Image:
    """Convert to RGB pixels in the sRGB color space."""
    if icc_profile:
        base = img if img.mode in ("RGB", "CMYK") else img.convert("RGB")
        try:
            source_profile = ImageCms.ImageCmsProfile(io.BytesIO(icc_profile))
            return ImageCms.profileToProfile(base, source_profile, SRGB_PROFILE, outputMode="RGB")
        except (ImageCms.PyCMSError, OSError) as e:
            logger.warning("icc_conversion_failed", error=str(e))
            return base.convert("RGB")

    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def normalize_image(path: Path) -> bytes:
    """
    Auto-rotate per EXIF orientation, convert to sRGB and re-encode into a
    fresh PNG buffer. The buffer carries no EXIF, ICC or text chunks.
    """
    with Image.open(path) as img:
        icc_profile = img.info.get("icc_profile")
        rotated = ImageOps.exif_transpose(img)
        srgb = _to_srgb(rotated, icc_profile)

        # Rebuild from raw pixels so no info dict entry survives
        clean = Image.frombytes("RGB", srgb.size, srgb.tobytes())

    buffer = io.BytesIO()
    clean.save(buffer, format="PNG")
    return buffer.getvalue()


# =============================================================================
# Encode: tag -> JPEG
# =============================================================================

def build_exif(artist: str, copyright_holder: str, description: str) -> Image.Exif:
    exif = Image.Exif()
    exif[ExifTags.Base.Artist] = artist
    exif[ExifTags.Base.Copyright] = copyright_holder
    exif[ExifTags.Base.ImageDescription] = description
    return exif


def encode_tagged_jpeg(
    clean_bytes: bytes,
    output_path: Path,
    description: str,
    artist: str,
    copyright_holder: str,
    quality: int = 95
) -> Path:
    """
    Write the clean image as a JPEG with identity tags.

    Full-resolution chroma (4:4:4) and optimized Huffman tables. The file is
    fsynced before returning so the caller may delete the source.
    """
    exif = build_exif(artist, copyright_holder, description)

    with Image.open(io.BytesIO(clean_bytes)) as img:
        with open(output_path, "wb") as f:
            img.save(
                f,
                format="JPEG",
                quality=quality,
                subsampling="4:4:4",
                optimize=True,
                exif=exif.tobytes(),
            )
            f.flush()
            os.fsync(f.fileno())

    return output_path
