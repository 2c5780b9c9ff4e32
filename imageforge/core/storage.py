"""
Storage Layer - Local Directory Layout

The pipeline works on four sibling directories under one data root:

    input/    images waiting to be processed (present = not yet done)
    output/   final <stem>.jpg files, served at /output
    temp/     intermediate upscaled files
    uploads/  raw upload landing area before a file is moved into input/
"""

import re
import shutil
import uuid
from pathlib import Path
from typing import List, Optional

from imageforge.core.config import settings
from imageforge.core.exceptions import StorageError, ValidationError

# Extensions accepted from the input directory
INPUT_IMAGE_PATTERN = re.compile(r"\.(png|jpg|jpeg|webp)$", re.IGNORECASE)

# Extensions listed from the output directory
OUTPUT_IMAGE_PATTERN = re.compile(r"\.(jpg|png|jpeg)$", re.IGNORECASE)

OUTPUT_URL_PREFIX = "/output"


def safe_filename(filename: str) -> str:
    """Reject names that would escape the directory they are joined to."""
    name = Path(filename.replace("\\", "/")).name
    if not filename or name != filename or name in (".", ".."):
        raise ValidationError(f"Invalid filename: {filename!r}")
    return name


class LocalStorage:
    """Local filesystem storage for the input/output/temp/uploads layout."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        self.input_dir = self.base_path / "input"
        self.output_dir = self.base_path / "output"
        self.temp_dir = self.base_path / "temp"
        self.uploads_dir = self.base_path / "uploads"
        self.ensure_dirs()

    def ensure_dirs(self):
        for directory in (self.input_dir, self.output_dir, self.temp_dir, self.uploads_dir):
            directory.mkdir(parents=True, exist_ok=True)

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def input_path(self, file_name: str) -> Path:
        return self.input_dir / file_name

    def temp_path(self, file_name: str) -> Path:
        return self.temp_dir / file_name

    def output_path(self, file_name: str) -> Path:
        """Final output is always <stem>.jpg, whatever the input extension."""
        return self.output_dir / (Path(file_name).stem + ".jpg")

    def output_url(self, output_path: Path) -> str:
        return f"{OUTPUT_URL_PREFIX}/{output_path.name}"

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    def list_inputs(self) -> List[str]:
        """Images currently waiting in input/, in name order."""
        return sorted(
            entry.name for entry in self.input_dir.iterdir()
            if entry.is_file() and INPUT_IMAGE_PATTERN.search(entry.name)
        )

    def list_outputs(self) -> List[Path]:
        return sorted(
            entry for entry in self.output_dir.iterdir()
            if entry.is_file() and OUTPUT_IMAGE_PATTERN.search(entry.name)
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def save_upload(self, file_data: bytes, filename: str) -> Path:
        """
        Land an uploaded file in uploads/ and move it into input/
        under its original name.

        Returns:
            Path of the file inside input/
        """
        name = safe_filename(filename)
        staged = self.uploads_dir / uuid.uuid4().hex
        try:
            with open(staged, "wb") as f:
                f.write(file_data)
            target = self.input_path(name)
            shutil.move(str(staged), str(target))
        except OSError as e:
            raise StorageError(f"Failed to store upload {name}: {e}", file=name)
        return target

    def delete(self, path: Path) -> bool:
        """Delete a file if it exists. Returns True when something was removed."""
        if path.exists():
            path.unlink()
            return True
        return False


class StorageFactory:
    """Factory for the process-wide storage instance."""

    _instance: Optional[LocalStorage] = None

    @classmethod
    def get_storage(cls) -> LocalStorage:
        if cls._instance is None:
            cls._instance = LocalStorage(base_path=settings.DATA_DIR)
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None


# Convenience function for dependency injection
def get_storage() -> LocalStorage:
    """Get the storage instance - ready for FastAPI Depends()."""
    return StorageFactory.get_storage()
