"""
Image API Router.

Endpoints:
- GET    /v1/images                    - All image records, newest first
- GET    /v1/images/queue-status       - Aggregate job counts
- POST   /v1/images/queue-status       - Most relevant job per image id
- POST   /v1/images/analyze-batch      - Queue AI analysis for many images
- POST   /v1/images/delete-batch       - Delete many images
- GET    /v1/images/{image_id}         - One image record with AI results
- GET    /v1/images/{image_id}/file    - Original or thumbnail bytes
- DELETE /v1/images/{image_id}         - Delete one image
- POST   /v1/images/{image_id}/analyze - Queue AI analysis for one image

Static paths are registered before ``/{image_id}`` so that they win the match.
"""

import asyncio
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict, Field

from mediavault.api.dependencies import get_library, get_scheduler
from mediavault.core.exceptions import ImageNotFoundError
from mediavault.core.jobs import JobKind, JobScheduler
from mediavault.core.logging import get_logger
from mediavault.media.analysis import media_type_for
from mediavault.media.library import ImageRecord, MediaLibrary

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/images", tags=["images"])

ImageId = Annotated[str, Field(min_length=1)]

# Stored files are never rewritten under the same URL
_FILE_CACHE_CONTROL = "private, max-age=31536000, immutable"


class QueueStatusResponse(BaseModel):
    """Counts over every job the queue currently tracks."""

    pending: int = Field(..., description="Jobs waiting for a slot")
    processing: int = Field(..., description="Jobs running now")
    completed: int = Field(..., description="Retained completed jobs")
    failed: int = Field(..., description="Retained failed jobs")
    total: int = Field(..., description="Sum of the four counts")


class ImageIdsRequest(BaseModel):
    """Body carrying a list of non-empty image ids."""

    model_config = ConfigDict(populate_by_name=True)

    image_ids: List[ImageId] = Field(..., alias="imageIds")


class JobLookupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_id: str = Field(..., alias="resourceId")
    status: str = Field(
        ..., description="pending, processing, complete, failed or not-found"
    )
    error: Optional[str] = None
    kind: Optional[str] = None


class JobLookupListResponse(BaseModel):
    jobs: List[JobLookupResponse]


class AnalyzeBatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    count: int
    job_ids: List[str] = Field(..., alias="jobIds")


class AnalyzeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    image_id: str = Field(..., alias="imageId")
    job_id: str = Field(..., alias="jobId")


class ImageResponse(BaseModel):
    """Stored image record as served to the gallery."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    filename: str
    original_name: str = Field(..., alias="originalName")
    filepath: str
    thumbnail_path: str = Field(..., alias="thumbnailPath")
    file_size: int = Field(..., alias="fileSize")
    mime_type: str = Field(..., alias="mimeType")
    uploaded_at: str = Field(..., alias="uploadedAt")
    metadata: Optional[Dict[str, Any]] = None
    ai_status: str = Field(..., alias="aiStatus")
    ai_processed_at: Optional[str] = Field(default=None, alias="aiProcessedAt")
    ai: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, record: ImageRecord) -> "ImageResponse":
        return cls(**record.to_dict())


class DeleteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    image_id: str = Field(..., alias="imageId")


class DeletionDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files_deleted: int = Field(0, alias="filesDeleted")
    thumbnails_deleted: int = Field(0, alias="thumbnailsDeleted")
    records_deleted: int = Field(0, alias="recordsDeleted")
    errors: List[str] = Field(default_factory=list)


class DeleteBatchResponse(BaseModel):
    success: bool
    message: str
    details: DeletionDetails


def _require_ids(request: ImageIdsRequest) -> List[str]:
    if not request.image_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="imageIds must be a non-empty array",
        )
    return request.image_ids


def _delete_many(library: MediaLibrary, image_ids: List[str]) -> DeletionDetails:
    """Delete every known id. Unknown ids are skipped."""
    details = DeletionDetails()
    for image_id in dict.fromkeys(image_ids):
        try:
            deleted = library.delete_image(image_id)
        except ImageNotFoundError:
            continue
        details.records_deleted += 1
        if deleted.original_deleted:
            details.files_deleted += 1
        else:
            details.errors.append(f"Failed to delete file for image {image_id}")
        if deleted.thumbnail_deleted:
            details.thumbnails_deleted += 1
    return details


# ----------------------------------------------------------------------
# Collection and static paths
# ----------------------------------------------------------------------


@router.get("", response_model=List[ImageResponse], response_model_by_alias=True)
async def list_images(
    library: MediaLibrary = Depends(get_library),
) -> List[ImageResponse]:
    records = await asyncio.to_thread(library.list_records)
    return [ImageResponse.from_record(record) for record in reversed(records)]


@router.get("/queue-status", response_model=QueueStatusResponse)
async def get_queue_status(
    scheduler: JobScheduler = Depends(get_scheduler),
) -> QueueStatusResponse:
    return QueueStatusResponse(**scheduler.get_queue_status().to_dict())


@router.post(
    "/queue-status",
    response_model=JobLookupListResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def get_jobs_status(
    request: ImageIdsRequest, scheduler: JobScheduler = Depends(get_scheduler)
) -> JobLookupListResponse:
    """
    Look up jobs for the given image ids.

    Returns one entry per requested id, in request order. Unknown ids are
    reported with status "not-found".
    """
    lookups = scheduler.get_jobs_by_resource_ids(request.image_ids)
    return JobLookupListResponse(
        jobs=[JobLookupResponse(**lookup.to_dict()) for lookup in lookups]
    )


@router.post(
    "/analyze-batch", response_model=AnalyzeBatchResponse, response_model_by_alias=True
)
async def analyze_batch(
    request: ImageIdsRequest, scheduler: JobScheduler = Depends(get_scheduler)
) -> AnalyzeBatchResponse:
    """Queue one ai-analysis job per image id."""
    image_ids = _require_ids(request)

    logger.info("Queuing batch AI analysis", count=len(image_ids))
    job_ids = [scheduler.enqueue(image_id, JobKind.AI_ANALYSIS) for image_id in image_ids]
    return AnalyzeBatchResponse(
        success=True,
        message=f"Queued {len(job_ids)} images for AI analysis",
        count=len(job_ids),
        job_ids=job_ids,
    )


@router.post(
    "/delete-batch", response_model=DeleteBatchResponse, response_model_by_alias=True
)
async def delete_batch(
    request: ImageIdsRequest, library: MediaLibrary = Depends(get_library)
) -> DeleteBatchResponse:
    """
    Delete originals, thumbnails and records for the given ids.

    Responds 404 when none of the ids is known. Jobs already queued for a
    deleted image fail when they run.
    """
    image_ids = _require_ids(request)

    logger.info("Batch delete", count=len(image_ids))
    details = await asyncio.to_thread(_delete_many, library, image_ids)
    if not details.records_deleted:
        raise ImageNotFoundError("No images found")

    return DeleteBatchResponse(
        success=True,
        message=f"Deleted {details.records_deleted} images",
        details=details,
    )


# ----------------------------------------------------------------------
# Single image
# ----------------------------------------------------------------------


@router.get(
    "/{image_id}", response_model=ImageResponse, response_model_by_alias=True
)
async def get_image(
    image_id: str, library: MediaLibrary = Depends(get_library)
) -> ImageResponse:
    """One record, including metadata and AI results once their jobs finish."""
    record = await asyncio.to_thread(library.get_record, image_id)
    return ImageResponse.from_record(record)


@router.get("/{image_id}/file", response_class=FileResponse)
async def get_image_file(
    image_id: str,
    variant: str = Query(
        "original", alias="type", pattern="^(original|thumbnail)$"
    ),
    library: MediaLibrary = Depends(get_library),
) -> FileResponse:
    """
    Serve the stored original, or the thumbnail with ``?type=thumbnail``.

    A thumbnail that has not been generated yet falls back to the original.
    """
    record = await asyncio.to_thread(library.get_record, image_id)
    original = library.original_path(record)

    path, media_type = original, record.mime_type
    if variant == "thumbnail":
        thumbnail = library.thumbnail_path(record)
        if thumbnail.exists():
            path, media_type = thumbnail, media_type_for(thumbnail)
        else:
            logger.debug("Thumbnail missing, serving original", image_id=image_id)

    if not path.exists():
        raise ImageNotFoundError(f"File not found for image {image_id}")

    return FileResponse(
        path, media_type=media_type, headers={"Cache-Control": _FILE_CACHE_CONTROL}
    )


@router.delete(
    "/{image_id}", response_model=DeleteResponse, response_model_by_alias=True
)
async def delete_image(
    image_id: str, library: MediaLibrary = Depends(get_library)
) -> DeleteResponse:
    await asyncio.to_thread(library.delete_image, image_id)
    return DeleteResponse(
        success=True, message="Image deleted successfully", image_id=image_id
    )


@router.post(
    "/{image_id}/analyze", response_model=AnalyzeResponse, response_model_by_alias=True
)
async def analyze_image(
    image_id: str, scheduler: JobScheduler = Depends(get_scheduler)
) -> AnalyzeResponse:
    """Queue AI analysis for one image. An unknown id fails the job, not the call."""
    job_id = scheduler.enqueue(image_id, JobKind.AI_ANALYSIS)
    return AnalyzeResponse(
        success=True,
        message="AI analysis queued",
        image_id=image_id,
        job_id=job_id,
    )
