"""
Main configuration class for MediaVault.

The Config dataclass aggregates all sub-configs and handles validation, path
management and dictionary parsing.

    User's config.yaml
           ↓
    load_config() → Config object
           ↓
    Passed to: create_app(), create_job_scheduler(), MediaLibrary, CLI

Configuration Hierarchy
-----------------------
    Config
    ├── ProjectConfig      # Project name, data and media directories
    ├── QueueConfig        # Concurrency and finished-job retention
    ├── MediaConfig        # Upload limits, thumbnail size
    ├── AIConfig           # Claude model and API key
    ├── APIConfig          # API server settings
    └── LoggingConfig      # Log level and file

Environment Variables
---------------------
Secrets use ${VAR_NAME} or ${VAR_NAME:default} syntax inside YAML:

    ai:
      api_key: ${ANTHROPIC_API_KEY}
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from mediavault.core.config.base import (
    LoggingConfig,
    MediaConfig,
    ProjectConfig,
    QueueConfig,
)
from mediavault.core.config.features import AIConfig, APIConfig
from mediavault.core.exceptions import ConfigValidationError

MAX_CONCURRENCY = 32


@dataclass
class Config:
    """Main MediaVault configuration."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    api: APIConfig = field(default_factory=APIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Runtime paths (set after loading)
    _base_path: Path = field(default_factory=Path.cwd, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """Raise ConfigValidationError for values the application cannot use."""
        queue = self.queue
        if not isinstance(queue.concurrency, int) or isinstance(queue.concurrency, bool):
            raise ConfigValidationError(
                f"queue.concurrency must be an integer, got {queue.concurrency!r}"
            )
        if not 1 <= queue.concurrency <= MAX_CONCURRENCY:
            raise ConfigValidationError(
                f"queue.concurrency must be between 1 and {MAX_CONCURRENCY}, "
                f"got {queue.concurrency}"
            )
        if queue.retention_minutes < 0:
            raise ConfigValidationError("queue.retention_minutes must be >= 0")
        if queue.max_finished_jobs < 1:
            raise ConfigValidationError("queue.max_finished_jobs must be >= 1")

        if self.media.thumbnail_max_width < 1:
            raise ConfigValidationError("media.thumbnail_max_width must be >= 1")
        if not 1 <= self.media.thumbnail_quality <= 100:
            raise ConfigValidationError("media.thumbnail_quality must be 1-100")
        if self.media.max_file_size_mb <= 0:
            raise ConfigValidationError("media.max_file_size_mb must be > 0")

        if self.project.data_dir in ("/", "\\", ""):
            raise ConfigValidationError(
                f"data_dir must not be root or empty: {self.project.data_dir!r}"
            )
        if self.project.media_dir in ("/", "\\", ""):
            raise ConfigValidationError(
                f"media_dir must not be root or empty: {self.project.media_dir!r}"
            )

    @property
    def base_path(self) -> Path:
        return self._base_path

    @property
    def data_path(self) -> Path:
        """Get absolute path to data directory."""
        return self._base_path / self.project.data_dir

    @property
    def media_path(self) -> Path:
        """Get absolute path to media directory."""
        return self._base_path / self.project.media_dir

    @property
    def log_path(self) -> Optional[Path]:
        if not self.logging.file:
            return None
        return self._base_path / self.logging.file

    def ensure_directories(self) -> None:
        """Create data and media directories if they don't exist."""
        for directory in (self.data_path, self.media_path):
            directory.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        result: dict[str, Any] = {}
        for key, value in asdict(self).items():
            if key.startswith("_"):
                continue
            result[key] = value
        return result

    @staticmethod
    def _filter_fields(cls_type: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Filter dict to only keys that match dataclass fields, handling None."""
        if not data:
            return {}
        valid_keys = {f.name for f in fields(cls_type)}
        return {k: v for k, v in data.items() if k in valid_keys}

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_path: Optional[Path] = None
    ) -> "Config":
        """Create Config from dictionary."""
        # Import here to avoid circular dependency
        from mediavault.core.config_loaders import expand_env_vars

        data = expand_env_vars(data or {})

        config = cls(
            project=ProjectConfig(
                **cls._filter_fields(ProjectConfig, data.get("project"))
            ),
            queue=QueueConfig(**cls._filter_fields(QueueConfig, data.get("queue"))),
            media=MediaConfig(**cls._filter_fields(MediaConfig, data.get("media"))),
            ai=AIConfig(**cls._filter_fields(AIConfig, data.get("ai"))),
            api=APIConfig(**cls._filter_fields(APIConfig, data.get("api"))),
            logging=LoggingConfig(
                **cls._filter_fields(LoggingConfig, data.get("logging"))
            ),
        )

        if base_path:
            config._base_path = base_path

        return config
