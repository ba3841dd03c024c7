"""
Configuration Loading and Management Functions.

Handles loading, saving, and applying environment overrides to MediaVault
configuration.

Configuration precedence: 1. Env vars, 2. YAML file, 3. Defaults

Environment Overrides
---------------------
    MEDIAVAULT_QUEUE_CONCURRENCY        queue.concurrency (1-32)
    MEDIAVAULT_QUEUE_RETENTION_MINUTES  queue.retention_minutes
    MEDIAVAULT_QUEUE_SHUTDOWN_GRACE_SEC queue.shutdown_grace_sec
    MEDIAVAULT_API_HOST                 api.host
    MEDIAVAULT_API_PORT                 api.port (1-65535)
    MEDIAVAULT_LOG_LEVEL                logging.level
    ANTHROPIC_API_KEY                   ai.api_key
    CLAUDE_MODEL                        ai.model
    MAX_FILE_SIZE                       media.max_file_size_mb (given in bytes)
    MAX_FILES_PER_BATCH                 media.max_files_per_batch
"""

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml

from mediavault.core.env import (
    LOG_LEVELS,
    get_env_float,
    get_env_int,
    get_env_whitelist,
)
from mediavault.core.logging import get_logger

if TYPE_CHECKING:
    from mediavault.core.config import Config

logger = get_logger(__name__)

CONFIG_FILENAMES = ("config.yaml", "mediavault.yaml")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Handles strings with ${VAR_NAME} or ${VAR_NAME:default} syntax inside
    nested dictionaries and lists.

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _apply_env_overrides(config: "Config") -> "Config":
    """
    Apply environment variable overrides to configuration.

    Environment variables take precedence over config file values.
    """
    _apply_queue_overrides(config)
    _apply_media_overrides(config)
    _apply_ai_overrides(config)
    _apply_api_server_overrides(config)
    _apply_logging_overrides(config)
    return config


def _apply_queue_overrides(config: "Config") -> None:
    """Apply job queue overrides."""
    from mediavault.core.config import MAX_CONCURRENCY

    concurrency = get_env_int(
        "MEDIAVAULT_QUEUE_CONCURRENCY", min_value=1, max_value=MAX_CONCURRENCY
    )
    if concurrency is not None:
        config.queue.concurrency = concurrency

    retention = get_env_int("MEDIAVAULT_QUEUE_RETENTION_MINUTES", min_value=0)
    if retention is not None:
        config.queue.retention_minutes = retention

    grace = get_env_float("MEDIAVAULT_QUEUE_SHUTDOWN_GRACE_SEC", min_value=0.0)
    if grace is not None:
        config.queue.shutdown_grace_sec = grace


def _apply_media_overrides(config: "Config") -> None:
    """Apply upload limit overrides (byte-based, like the upload form parser)."""
    max_bytes = get_env_int("MAX_FILE_SIZE", min_value=1)
    if max_bytes is not None:
        config.media.max_file_size_mb = max_bytes / (1024 * 1024)

    max_files = get_env_int("MAX_FILES_PER_BATCH", min_value=1)
    if max_files is not None:
        config.media.max_files_per_batch = max_files


def _apply_ai_overrides(config: "Config") -> None:
    """Apply Claude API key and model overrides."""
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if api_key:
        config.ai.api_key = api_key

    model = os.environ.get("CLAUDE_MODEL")
    if model:
        config.ai.model = model


def _apply_api_server_overrides(config: "Config") -> None:
    """Apply API server host/port overrides."""
    api_host = os.environ.get("MEDIAVAULT_API_HOST")
    if api_host and re.match(r"^[a-zA-Z0-9.\-:]+$", api_host):
        config.api.host = api_host

    api_port = get_env_int("MEDIAVAULT_API_PORT", min_value=1, max_value=65535)
    if api_port is not None:
        config.api.port = api_port


def _apply_logging_overrides(config: "Config") -> None:
    level = get_env_whitelist("MEDIAVAULT_LOG_LEVEL", LOG_LEVELS)
    if level is not None:
        config.logging.level = level


def _find_config_file(base_path: Path) -> Optional[Path]:
    for filename in CONFIG_FILENAMES:
        candidate = base_path / filename
        if candidate.exists():
            return candidate
    return None


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> "Config":
    """
    Load configuration from YAML file with environment variable overrides.

    An unreadable or malformed file falls back to the defaults with a
    warning. Values that parse but fail validation raise
    ConfigValidationError.

    Args:
        config_path: Path to config file. Defaults to config.yaml in base_path.
        base_path: Base path for the project. Defaults to current directory.

    Returns:
        Config object with all settings.
    """
    from mediavault.core.config import Config

    base_path = base_path or Path.cwd()

    if config_path is None:
        config_path = _find_config_file(base_path)
    if config_path is None or not config_path.exists():
        return _create_default_config(base_path)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(
            "Could not load config, using defaults", path=config_path, error=e
        )
        return _create_default_config(base_path)

    if not isinstance(data, dict):
        logger.warning("Config file is not a mapping, using defaults", path=config_path)
        return _create_default_config(base_path)

    config = Config.from_dict(data, base_path)
    _apply_env_overrides(config)
    config.validate()
    return config


def _create_default_config(base_path: Path) -> "Config":
    """Create default configuration with environment overrides."""
    from mediavault.core.config import Config

    config = Config()
    config._base_path = base_path
    _apply_env_overrides(config)
    config.validate()
    return config


def save_config(config: "Config", config_path: Optional[Path] = None) -> None:
    """Save configuration to YAML file."""
    if config_path is None:
        config_path = config.base_path / CONFIG_FILENAMES[0]

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


__all__ = [
    "expand_env_vars",
    "load_config",
    "save_config",
]
