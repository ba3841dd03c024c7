"""
Job handlers for post-upload image work.

Each handler takes an image id, does its blocking work in a worker thread
and updates the image record. Raising marks the job failed.
"""

import asyncio
from typing import Dict, Optional

from mediavault.core.config import Config
from mediavault.core.exceptions import ImageNotFoundError
from mediavault.core.jobs.models import JobKind, utcnow
from mediavault.core.jobs.scheduler import JobHandler
from mediavault.core.logging import get_logger
from mediavault.media.analysis import AIAnalysisResult, ImageAnalyzer
from mediavault.media.imaging import create_thumbnail, extract_image_metadata
from mediavault.media.library import AIStatus, ImageRecord, MediaLibrary

logger = get_logger(__name__)


def process_metadata_and_thumbnail(
    library: MediaLibrary, config: Config, image_id: str
) -> ImageRecord:
    """Read dimensions and (re)write the thumbnail for one image."""
    record = library.get_record(image_id)
    original = library.original_path(record)
    if not original.exists():
        raise ImageNotFoundError(f"Original not found for image {image_id}")

    metadata = extract_image_metadata(original, record.file_size, record.mime_type)
    thumbnail_rel = library.thumbnail_relpath(record.filepath)
    create_thumbnail(
        original,
        library.resolve(thumbnail_rel),
        max_width=config.media.thumbnail_max_width,
        quality=config.media.thumbnail_quality,
    )

    def _apply(current: ImageRecord) -> None:
        current.metadata = metadata.to_dict()
        current.thumbnail_path = thumbnail_rel

    return library.update_record(image_id, _apply)


def process_ai_analysis(
    library: MediaLibrary, analyzer: ImageAnalyzer, image_id: str
) -> AIAnalysisResult:
    """
    Classify one image and store the result on its record.

    ai_status moves to processing first, then to complete or failed. The
    original error is re-raised after the failed status is saved.
    """
    record = library.set_ai_status(image_id, AIStatus.PROCESSING)

    try:
        result = analyzer.analyze(library.original_path(record))
    except Exception:
        logger.exception("AI analysis failed", image_id=image_id)
        library.set_ai_status(image_id, AIStatus.FAILED)
        raise

    def _apply(current: ImageRecord) -> None:
        current.ai = result.to_dict()
        current.ai_status = AIStatus.COMPLETE
        current.ai_processed_at = utcnow().isoformat()

    library.update_record(image_id, _apply)
    logger.info("AI analysis complete", image_id=image_id)
    return result


def build_handlers(
    library: MediaLibrary,
    config: Config,
    analyzer: Optional[ImageAnalyzer] = None,
) -> Dict[JobKind, JobHandler]:
    """
    Handlers for every JobKind, bound to one library.

    Args:
        library: Media library the handlers read and update.
        config: Thumbnail settings and AI credentials.
        analyzer: Claude analyzer. Built from config if omitted.

    Returns:
        Map of job kind to async handler.
    """
    analyzer = analyzer or ImageAnalyzer.from_config(config)

    async def metadata_and_thumbnail(image_id: str) -> None:
        await asyncio.to_thread(
            process_metadata_and_thumbnail, library, config, image_id
        )

    async def ai_analysis(image_id: str) -> None:
        await asyncio.to_thread(process_ai_analysis, library, analyzer, image_id)

    return {
        JobKind.METADATA_AND_THUMBNAIL: metadata_and_thumbnail,
        JobKind.AI_ANALYSIS: ai_analysis,
    }
