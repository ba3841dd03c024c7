"""
Upload API Router.

Endpoints:
- POST /v1/upload - Store images and queue their background processing

Each accepted file is saved to the media library, then two jobs are queued
for it: metadata-and-thumbnail followed by ai-analysis. The response does
not wait for either job.
"""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from mediavault.api.dependencies import get_config, get_library, get_scheduler
from mediavault.core.config import Config
from mediavault.core.exceptions import UnsupportedMediaError
from mediavault.core.jobs import JobKind, JobScheduler
from mediavault.core.logging import get_logger
from mediavault.media.library import MediaLibrary

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["upload"])

UPLOAD_JOB_KINDS = (JobKind.METADATA_AND_THUMBNAIL, JobKind.AI_ANALYSIS)


class UploadResult(BaseModel):
    """Outcome for one uploaded file."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    status: str = Field(..., description="success or error")
    id: Optional[str] = None
    filepath: Optional[str] = None
    thumbnail_path: Optional[str] = Field(default=None, alias="thumbnailPath")
    job_ids: List[str] = Field(default_factory=list, alias="jobIds")
    error: Optional[str] = None


class UploadResponse(BaseModel):
    success: bool
    count: int
    results: List[UploadResult]


def _validate_upload(file: UploadFile, data: bytes, config: Config) -> None:
    """
    Check one uploaded file against the accepted types and size limit.

    Raises:
        UnsupportedMediaError: With the reason the file is rejected.
    """
    content_type = (file.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise UnsupportedMediaError(
            f"Unsupported content type: {content_type or 'unknown'}"
        )
    if content_type not in config.media.allowed_mime_types:
        raise UnsupportedMediaError(f"Unsupported image type: {content_type}")
    max_bytes = int(config.media.max_file_size_mb * 1024 * 1024)
    if len(data) > max_bytes:
        raise UnsupportedMediaError(
            f"File exceeds {config.media.max_file_size_mb:g} MB limit"
        )
    if not data:
        raise UnsupportedMediaError("File is empty")


@router.post(
    "/upload",
    response_model=UploadResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def upload_images(
    files: List[UploadFile] = File(...),
    config: Config = Depends(get_config),
    library: MediaLibrary = Depends(get_library),
    scheduler: JobScheduler = Depends(get_scheduler),
) -> UploadResponse:
    """Store each image and queue its processing. Rejections are per file."""
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded"
        )
    if len(files) > config.media.max_files_per_batch:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {config.media.max_files_per_batch} files per upload",
        )

    results: List[UploadResult] = []
    for file in files:
        filename = file.filename or "unknown"
        data = await file.read()

        try:
            _validate_upload(file, data, config)
        except UnsupportedMediaError as e:
            logger.info("Upload rejected", filename=filename, reason=e.user_message)
            results.append(
                UploadResult(filename=filename, status="error", error=e.user_message)
            )
            continue

        try:
            record = await asyncio.to_thread(
                library.store_upload, filename, data, file.content_type
            )
        except OSError as e:
            logger.error("Failed to store upload", filename=filename, error=e)
            results.append(
                UploadResult(
                    filename=filename, status="error", error="Failed to process file"
                )
            )
            continue

        job_ids = [scheduler.enqueue(record.id, kind) for kind in UPLOAD_JOB_KINDS]
        results.append(
            UploadResult(
                id=record.id,
                filename=record.filename,
                filepath=record.filepath,
                thumbnail_path=record.thumbnail_path,
                status="success",
                job_ids=job_ids,
            )
        )

    return UploadResponse(success=True, count=len(results), results=results)
