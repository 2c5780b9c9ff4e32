"""
Image Processing Pipeline

Per-image stages, run strictly in order:
1. Upscale - optional 4x pass through the Upscayl executable
2. Optimize - EXIF auto-rotate, sRGB, metadata strip, tagged JPEG encode
3. Cleanup - drop the temp file and the processed input
"""
