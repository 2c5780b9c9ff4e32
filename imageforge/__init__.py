"""ImageForge - batch upscale, normalize and tag images as JPEGs."""

__version__ = "1.0.0"
