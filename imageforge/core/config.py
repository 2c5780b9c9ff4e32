"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.

The upscaler location is runtime state: it starts from the settings below
and can be replaced through the config endpoint. It lives in a ConfigStore
so every reader gets one consistent UpscalerConfig value.
"""

import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


# Default Upscayl install locations per platform
DEFAULT_UPSCAYL_BINS = {
    "win32": r"C:\Program Files\Upscayl\resources\bin\upscayl-bin.exe",
    "darwin": "/Applications/Upscayl.app/Contents/Resources/bin/upscayl-bin",
    "linux": "/opt/Upscayl/resources/bin/upscayl-bin",
}


def default_upscayl_bin(platform: str = sys.platform) -> str:
    """Return the conventional upscayl-bin path for a platform."""
    return DEFAULT_UPSCAYL_BINS.get(platform, DEFAULT_UPSCAYL_BINS["linux"])


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "ImageForge"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # ==========================================================================
    # Storage Settings
    # ==========================================================================
    # input/, output/, temp/ and uploads/ are created under this root
    DATA_DIR: Path = Path("./data")

    # ==========================================================================
    # Upscaler Settings
    # ==========================================================================
    UPSCAYL_BIN: Optional[str] = None  # Falls back to the platform default
    UPSCALE_FACTOR: int = 4
    UPSCALE_OUTPUT_FORMAT: str = "png"
    DEFAULT_MODEL: str = "upscayl-standard-4x"

    # ==========================================================================
    # Output Settings
    # ==========================================================================
    ARTIST: str = "Akhlaque"
    COPYRIGHT: str = "Akhlaque"
    JPEG_QUALITY: int = 95

    # ==========================================================================
    # Progress Stream Settings
    # ==========================================================================
    EVENT_QUEUE_SIZE: int = 1000  # Per subscriber; overflow is dropped

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@dataclass(frozen=True)
class UpscalerConfig:
    """Where the upscaler executable and its models live."""
    upscayl_bin: str
    models_path: str

    @classmethod
    def from_bin(cls, upscayl_bin: str) -> "UpscalerConfig":
        """
        Derive the models directory from the executable path.

        .../resources/bin/upscayl-bin(.exe) -> .../resources/models
        """
        models_path = Path(upscayl_bin).parent.parent / "models"
        return cls(upscayl_bin=upscayl_bin, models_path=str(models_path))

    @property
    def available(self) -> bool:
        return Path(self.upscayl_bin).exists()


class ConfigStore:
    """
    Single owned cell holding the current UpscalerConfig.

    Readers take a snapshot with get(); update() swaps the whole value,
    so a reader never sees a bin path paired with another bin's models.
    """

    def __init__(self, initial: UpscalerConfig):
        self._lock = threading.Lock()
        self._value = initial

    def get(self) -> UpscalerConfig:
        with self._lock:
            return self._value

    def update(self, upscayl_bin: str) -> UpscalerConfig:
        new_value = UpscalerConfig.from_bin(upscayl_bin)
        with self._lock:
            self._value = new_value
        return new_value


def initial_upscaler_config(app_settings: "Settings") -> UpscalerConfig:
    return UpscalerConfig.from_bin(app_settings.UPSCAYL_BIN or default_upscayl_bin())


# Global settings instance
settings = Settings()

# Global upscaler config, replaced through POST /api/config
config_store = ConfigStore(initial_upscaler_config(settings))
