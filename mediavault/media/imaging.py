"""Image metadata extraction and thumbnail generation.

Blocking Pillow calls. Job handlers run these through asyncio.to_thread."""

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from PIL import Image, ImageOps, UnidentifiedImageError

from mediavault.core.exceptions import ImageProcessingError
from mediavault.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_THUMBNAIL_WIDTH = 400
DEFAULT_THUMBNAIL_QUALITY = 80


class Orientation(str, Enum):
    LANDSCAPE = "LANDSCAPE"
    PORTRAIT = "PORTRAIT"
    SQUARE = "SQUARE"


def get_orientation(width: int, height: int) -> Orientation:
    if width > height:
        return Orientation.LANDSCAPE
    if height > width:
        return Orientation.PORTRAIT
    return Orientation.SQUARE


@dataclass
class ImageMetadata:
    """Dimensions and file info for one stored original."""

    width: int
    height: int
    aspect_ratio: float
    orientation: Orientation
    file_size: int
    mime_type: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["orientation"] = self.orientation.value
        return data


def extract_image_metadata(path: Path, file_size: int, mime_type: str) -> ImageMetadata:
    """Read image dimensions.

    Args:
        path: Image file on disk
        file_size: Size in bytes as received from the upload
        mime_type: Content type as received from the upload

    Returns:
        ImageMetadata for the file

    Raises:
        ImageProcessingError: If the file cannot be decoded
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
    except (OSError, UnidentifiedImageError) as e:
        raise ImageProcessingError(f"Cannot read image {path.name}: {e}") from e

    aspect_ratio = width / height if height else 0.0
    return ImageMetadata(
        width=width,
        height=height,
        aspect_ratio=aspect_ratio,
        orientation=get_orientation(width, height),
        file_size=file_size,
        mime_type=mime_type,
    )


def create_thumbnail(
    input_path: Path,
    output_path: Path,
    max_width: int = DEFAULT_THUMBNAIL_WIDTH,
    quality: int = DEFAULT_THUMBNAIL_QUALITY,
) -> Path:
    """Write a thumbnail no wider than max_width.

    Images narrower than max_width keep their size. PNG and WEBP sources stay
    in their format; everything else is written as JPEG.

    Returns:
        output_path

    Raises:
        ImageProcessingError: If the source cannot be decoded or written
    """
    try:
        with Image.open(input_path) as img:
            source_format = (img.format or "").upper()
            thumb = ImageOps.exif_transpose(img)
            width, height = thumb.size
            if width > max_width:
                new_height = max(1, round(height * max_width / width))
                thumb = thumb.resize((max_width, new_height), Image.Resampling.LANCZOS)

            output_path.parent.mkdir(parents=True, exist_ok=True)
            if source_format == "PNG":
                thumb.save(output_path, format="PNG", optimize=True)
            elif source_format == "WEBP":
                thumb.save(output_path, format="WEBP", quality=quality)
            else:
                if thumb.mode not in ("RGB", "L"):
                    thumb = thumb.convert("RGB")
                thumb.save(output_path, format="JPEG", quality=quality)
    except (OSError, UnidentifiedImageError) as e:
        raise ImageProcessingError(
            f"Cannot create thumbnail for {input_path.name}: {e}"
        ) from e

    logger.debug("Thumbnail written", source=input_path.name, target=str(output_path))
    return output_path
