"""
Configuration Management for MediaVault.

A hierarchy of dataclasses that map to a YAML configuration file, with
environment variable expansion for secrets and deployment-specific values.

    config/
    ├── base.py          # ProjectConfig, QueueConfig, MediaConfig, LoggingConfig
    ├── features.py      # AIConfig, APIConfig
    └── config.py        # Main Config class

Usage Example
-------------
    from mediavault.core.config_loaders import load_config

    config = load_config()
    concurrency = config.queue.concurrency
"""

from mediavault.core.config.base import (
    LoggingConfig,
    MediaConfig,
    ProjectConfig,
    QueueConfig,
)
from mediavault.core.config.config import MAX_CONCURRENCY, Config
from mediavault.core.config.features import AIConfig, APIConfig

__all__ = [
    "Config",
    "MAX_CONCURRENCY",
    "ProjectConfig",
    "QueueConfig",
    "MediaConfig",
    "LoggingConfig",
    "AIConfig",
    "APIConfig",
]
