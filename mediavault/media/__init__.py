"""
Media layer: stored images, Pillow processing and Claude classification.

The handlers in handlers.py are what the job scheduler runs for each
JobKind.
"""

from mediavault.media.analysis import AIAnalysisResult, ImageAnalyzer
from mediavault.media.handlers import build_handlers
from mediavault.media.imaging import (
    ImageMetadata,
    Orientation,
    create_thumbnail,
    extract_image_metadata,
)
from mediavault.media.library import AIStatus, DeletedImage, ImageRecord, MediaLibrary

__all__ = [
    "AIAnalysisResult",
    "AIStatus",
    "DeletedImage",
    "ImageAnalyzer",
    "ImageMetadata",
    "ImageRecord",
    "MediaLibrary",
    "Orientation",
    "build_handlers",
    "create_thumbnail",
    "extract_image_metadata",
]
