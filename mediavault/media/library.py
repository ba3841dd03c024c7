"""
Media library: stored originals, thumbnails and per-image records.

Layout
------
    <media_dir>/originals/YYYY/MM/<id><ext>     uploaded file
    <media_dir>/thumbnails/YYYY/MM/<id><ext>    generated thumbnail
    <data_dir>/images/<id>.json                 ImageRecord

Records are plain JSON files so the queue handlers, the API and the CLI can
share them without a database. Writes go through a temp file and a rename,
and read-modify-write updates are serialized by a lock because handlers for
the same image can run in parallel worker threads.
"""

import json
import os
import secrets
import tempfile
import threading
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional

from mediavault.core.exceptions import ImageNotFoundError
from mediavault.core.jobs.models import utcnow
from mediavault.core.logging import get_logger

logger = get_logger(__name__)

ORIGINALS_DIR = "originals"
THUMBNAILS_DIR = "thumbnails"
RECORDS_DIR = "images"


class AIStatus:
    """Values of ImageRecord.ai_status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


def generate_image_id() -> str:
    """URL-safe random id, similar in length to a nanoid."""
    return secrets.token_urlsafe(16)


@dataclass
class ImageRecord:
    """
    Everything the library knows about one image.

    Paths are POSIX paths relative to the media directory.
    """

    id: str
    filename: str
    original_name: str
    filepath: str
    thumbnail_path: str
    file_size: int
    mime_type: str
    uploaded_at: str = field(default_factory=lambda: utcnow().isoformat())
    metadata: Optional[Dict[str, Any]] = None
    ai_status: str = AIStatus.PENDING
    ai_processed_at: Optional[str] = None
    ai: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageRecord":
        valid = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid})


@dataclass
class DeletedImage:
    """Which files delete_image() actually removed."""

    image_id: str
    original_deleted: bool
    thumbnail_deleted: bool


class MediaLibrary:
    """File-backed store for uploaded images and their records."""

    def __init__(self, media_path: Path, data_path: Path) -> None:
        self.media_path = Path(media_path)
        self.data_path = Path(data_path)
        self.records_path = self.data_path / RECORDS_DIR
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: Any) -> "MediaLibrary":
        return cls(config.media_path, config.data_path)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def resolve(self, relative: str) -> Path:
        """Absolute path for a media-relative POSIX path."""
        return self.media_path.joinpath(*PurePosixPath(relative).parts)

    def original_path(self, record: ImageRecord) -> Path:
        return self.resolve(record.filepath)

    def thumbnail_path(self, record: ImageRecord) -> Path:
        return self.resolve(record.thumbnail_path)

    @staticmethod
    def thumbnail_relpath(filepath: str) -> str:
        """
        Thumbnail location for an original.

        Keeps the original's YYYY/MM folder. Files outside originals/ land in
        thumbnails/ under their own name.
        """
        parts = PurePosixPath(filepath).parts
        if len(parts) > 1 and parts[0] == ORIGINALS_DIR:
            return str(PurePosixPath(THUMBNAILS_DIR, *parts[1:]))
        return str(PurePosixPath(THUMBNAILS_DIR, PurePosixPath(filepath).name))

    def _record_file(self, image_id: str) -> Path:
        unsafe = "/" in image_id or "\\" in image_id or image_id.startswith(".")
        if not image_id or unsafe:
            raise ImageNotFoundError(f"Image not found: {image_id}")
        return self.records_path / f"{image_id}.json"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store_upload(
        self,
        original_name: str,
        data: bytes,
        mime_type: str,
        now: Optional[datetime] = None,
    ) -> ImageRecord:
        """
        Save an uploaded file under originals/YYYY/MM and create its record.

        Metadata and thumbnail are filled in later by the background job.
        """
        now = now or utcnow()
        image_id = generate_image_id()
        ext = Path(original_name).suffix.lower()
        filename = f"{image_id}{ext}"
        subdir = PurePosixPath(ORIGINALS_DIR, f"{now.year:04d}", f"{now.month:02d}")
        relpath = str(subdir / filename)

        target = self.resolve(relpath)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

        record = ImageRecord(
            id=image_id,
            filename=filename,
            original_name=original_name or filename,
            filepath=relpath,
            thumbnail_path=self.thumbnail_relpath(relpath),
            file_size=len(data),
            mime_type=mime_type,
            uploaded_at=now.isoformat(),
        )
        self.save_record(record)
        logger.info(
            "Image stored", image_id=image_id, filename=filename, size=len(data)
        )
        return record

    def save_record(self, record: ImageRecord) -> None:
        path = self._record_file(record.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record.to_dict(), f, indent=2)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise

    def update_record(
        self, image_id: str, mutate: Callable[[ImageRecord], None]
    ) -> ImageRecord:
        """Apply ``mutate`` to the stored record and save it atomically."""
        with self._lock:
            record = self.get_record(image_id)
            mutate(record)
            self.save_record(record)
            return record

    def set_ai_status(self, image_id: str, status: str) -> ImageRecord:
        def _apply(record: ImageRecord) -> None:
            record.ai_status = status

        return self.update_record(image_id, _apply)

    def delete_image(self, image_id: str) -> "DeletedImage":
        """
        Remove the original, the thumbnail and the record of one image.

        Missing files are logged and skipped; the record is always removed.

        Raises:
            ImageNotFoundError: If no record exists for image_id.
        """
        with self._lock:
            record = self.get_record(image_id)
            original_deleted = self._unlink(self.original_path(record))
            thumbnail_deleted = self._unlink(self.thumbnail_path(record))
            self._record_file(image_id).unlink(missing_ok=True)

        logger.info(
            "Image deleted",
            image_id=image_id,
            original=original_deleted,
            thumbnail=thumbnail_deleted,
        )
        return DeletedImage(image_id, original_deleted, thumbnail_deleted)

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("File already missing", path=path.name)
            return False
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_record(self, image_id: str) -> ImageRecord:
        """
        Load one record.

        Raises:
            ImageNotFoundError: If no record exists for image_id.
        """
        path = self._record_file(image_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ImageNotFoundError(f"Image not found: {image_id}") from None
        return ImageRecord.from_dict(data)

    def exists(self, image_id: str) -> bool:
        try:
            return self._record_file(image_id).exists()
        except ImageNotFoundError:
            return False

    def list_records(self) -> List[ImageRecord]:
        """All records, oldest upload first. Unreadable files are skipped."""
        if not self.records_path.exists():
            return []

        records: List[ImageRecord] = []
        for path in sorted(self.records_path.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    records.append(ImageRecord.from_dict(json.load(f)))
            except (OSError, ValueError, TypeError) as e:
                logger.warning("Skipping unreadable record", path=path.name, error=e)
        records.sort(key=lambda r: r.uploaded_at)
        return records
