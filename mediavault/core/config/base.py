"""
Base configuration classes for project, queue and media settings.

Defines where MediaVault keeps its data and how the background job queue
and the image pipeline behave.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ProjectConfig:
    """Project-level configuration."""

    name: str = "mediavault"
    data_dir: str = ".data"
    media_dir: str = "media"


@dataclass
class QueueConfig:
    """Background job queue configuration."""

    concurrency: int = 3  # Max jobs executing at the same time
    retention_minutes: int = 60  # How long finished jobs stay queryable
    max_finished_jobs: int = 1000  # Hard cap on the finished-job record
    shutdown_grace_sec: float = 30.0  # Wait for running jobs on shutdown


@dataclass
class MediaConfig:
    """Upload and thumbnail configuration."""

    thumbnail_max_width: int = 400
    thumbnail_quality: int = 80
    max_file_size_mb: float = 25.0
    max_files_per_batch: int = 50
    allowed_mime_types: List[str] = field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp", "image/gif"]
    )


@dataclass
class LoggingConfig:
    """Log level and optional log file."""

    level: str = "INFO"
    file: Optional[str] = None
