"""
Centralized Exception Hierarchy for MediaVault.

All custom exceptions inherit from MediaVaultError so callers (the API
exception handler, the CLI) can catch one base class.

Each exception carries:
- error_code: Unique identifier for documentation lookup (e.g., "MV-JOB-001")
- why_it_happened: Explanation of the root cause
- how_to_fix: Actionable steps to resolve the issue

Exception Hierarchy
-------------------
    MediaVaultError (base)
    ├── ConfigurationError
    │   └── ConfigValidationError
    ├── JobQueueError
    │   ├── UnknownJobKindError
    │   └── InvalidJobTransitionError
    ├── MediaError
    │   ├── ImageNotFoundError
    │   ├── UnsupportedMediaError
    │   └── ImageProcessingError
    └── AnalysisError
        └── AnalysisResponseError

Handler failures inside the job queue never propagate as exceptions: the
scheduler converts them into failed job records. The classes here are raised
by handlers, configuration loading and the HTTP layer.
"""

import re
from typing import List, Optional


def sanitize_path(path: str) -> str:
    """Replace user home directories in a path with a placeholder.

    Args:
        path: Original file path

    Returns:
        Sanitized path
    """
    if not path:
        return path

    patterns = [
        (r"[A-Za-z]:\\Users\\[^\\]+", r"<user-home>"),
        (r"/(?:home|Users)/[^/]+", r"<user-home>"),
    ]

    result = path
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)

    return result


def sanitize_message(message: str) -> str:
    """Mask API keys, bearer tokens and home paths in an error message.

    Args:
        message: Original error message

    Returns:
        Sanitized message
    """
    if not message:
        return message

    result = message

    patterns = [
        (r"(sk-ant-|sk-)[a-zA-Z0-9_-]{20,}", r"\1<api-key>"),
        (r"(ANTHROPIC_API_KEY|API_KEY)[=:]\s*[^\s]+", r"\1=<hidden>"),
        (r"Bearer\s+[a-zA-Z0-9_.-]+", r"Bearer <token>"),
        (r"/(?:home|Users)/[^\s\"']+", lambda m: sanitize_path(m.group(0))),
    ]

    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)

    return result


class MediaVaultError(Exception):
    """
    Base exception for all MediaVault errors.

    Example
    -------
        try:
            library.get_record(image_id)
        except MediaVaultError as e:
            logger.error(f"Lookup failed: {e}", code=e.error_code)
    """

    error_code: str = "MV-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        """Initialize MediaVaultError with helpful information.

        Args:
            message: Human-readable error message
            error_code: Unique identifier (e.g., "MV-MEDIA-001")
            why_it_happened: Explanation of root cause
            how_to_fix: List of actionable fix suggestions
        """
        super().__init__(sanitize_message(message))

        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix

    @property
    def user_message(self) -> str:
        """Get the user-friendly error message."""
        return str(self)


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(MediaVaultError):
    """Raised when configuration is missing or cannot be used."""

    error_code = "MV-CFG-000"
    why_it_happened = "A required setting is missing or unusable"
    how_to_fix = [
        "Check config.yaml in the project directory",
        "Check MEDIAVAULT_* environment variables",
    ]


class ConfigValidationError(ConfigurationError):
    """Raised when a configuration value fails validation."""

    error_code = "MV-CFG-001"
    why_it_happened = "A configuration value is outside its allowed range"
    how_to_fix = ["Fix the value named in the error message"]


# ============================================================================
# Job Queue Exceptions
# ============================================================================


class JobQueueError(MediaVaultError):
    """Base exception for job queue errors."""

    error_code = "MV-JOB-000"
    why_it_happened = "The background job queue rejected an operation"
    how_to_fix = ["Check the job kind and resource id"]


class UnknownJobKindError(JobQueueError):
    """
    Raised when a job kind has no registered handler.

    The scheduler records this as the failure message of the job instead of
    raising it out of the dispatch loop.
    """

    error_code = "MV-JOB-001"
    why_it_happened = "No handler is registered for the job kind"
    how_to_fix = ["Register a handler for every JobKind when building the scheduler"]


class InvalidJobTransitionError(JobQueueError):
    """Raised when a job status would move backwards or skip processing."""

    error_code = "MV-JOB-002"
    why_it_happened = "Job status only moves pending -> processing -> complete/failed"
    how_to_fix = ["Re-enqueue a fresh job instead of reusing a finished one"]


# ============================================================================
# Media Exceptions
# ============================================================================


class MediaError(MediaVaultError):
    """Base exception for media library and image processing errors."""

    error_code = "MV-MEDIA-000"
    why_it_happened = "An image could not be stored or processed"
    how_to_fix = ["Check that the file is a readable image"]


class ImageNotFoundError(MediaError):
    """Raised when an image id has no record or no original file."""

    error_code = "MV-MEDIA-001"
    why_it_happened = "The image id is unknown or its original file was removed"
    how_to_fix = ["Upload the image again", "Check the media directory"]


class UnsupportedMediaError(MediaError):
    """Raised when an upload is not an accepted image type or is too large."""

    error_code = "MV-MEDIA-002"
    why_it_happened = "Only image uploads within the size limit are accepted"
    how_to_fix = [
        "Upload JPEG, PNG, WEBP or GIF files",
        "Raise media.max_file_size_mb if large files are expected",
    ]


class ImageProcessingError(MediaError):
    """Raised when metadata extraction or thumbnail creation fails."""

    error_code = "MV-MEDIA-003"
    why_it_happened = "The image could not be decoded or resized"
    how_to_fix = ["Check that the file is not corrupted"]


# ============================================================================
# AI Analysis Exceptions
# ============================================================================


class AnalysisError(MediaVaultError):
    """Base exception for AI analysis errors."""

    error_code = "MV-AI-000"
    why_it_happened = "The AI classification request failed"
    how_to_fix = [
        "Check ANTHROPIC_API_KEY",
        "Re-enqueue the analysis from the gallery",
    ]


class AnalysisResponseError(AnalysisError):
    """Raised when the model reply contains no parseable JSON object."""

    error_code = "MV-AI-001"
    why_it_happened = "The model did not return the expected JSON structure"
    how_to_fix = ["Re-enqueue the analysis", "Try a different ai.model"]
