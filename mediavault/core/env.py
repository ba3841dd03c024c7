"""
Safe environment variable parsing with validation.

Deployment overrides arrive as strings; these helpers turn them into typed
values with bounds checking and whitelist validation so that a typo such as
MEDIAVAULT_QUEUE_CONCURRENCY=0 can never produce an unusable scheduler.

Usage Pattern
-------------
    from mediavault.core.env import get_env_int
    port = get_env_int("MEDIAVAULT_API_PORT", default=8000, min_value=1, max_value=65535)
"""

from __future__ import annotations

import os
from typing import FrozenSet, Optional

from mediavault.core.logging import get_logger

logger = get_logger(__name__)


LOG_LEVELS: FrozenSet[str] = frozenset(
    ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
)


def get_env_int(
    name: str,
    default: Optional[int] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
) -> Optional[int]:
    """
    Get integer from environment variable with bounds validation.

    Args:
        name: Environment variable name.
        default: Default value if not set or invalid.
        min_value: Minimum allowed value (clamped if exceeded).
        max_value: Maximum allowed value (clamped if exceeded).

    Returns:
        Validated integer or default.

    Example:
        >>> # With MEDIAVAULT_QUEUE_CONCURRENCY=99
        >>> get_env_int("MEDIAVAULT_QUEUE_CONCURRENCY", default=3, min_value=1, max_value=32)
        32  # Clamped to max
    """
    value = os.environ.get(name)
    if value is None:
        return default

    try:
        int_value = int(value)
    except ValueError:
        logger.warning(
            f"Invalid integer value for {name}={value}: Returning default {default}"
        )
        return default

    if min_value is not None and int_value < min_value:
        return min_value
    if max_value is not None and int_value > max_value:
        return max_value

    return int_value


def get_env_float(
    name: str,
    default: Optional[float] = None,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> Optional[float]:
    """
    Get float from environment variable with bounds validation.

    Args:
        name: Environment variable name.
        default: Default value if not set or invalid.
        min_value: Minimum allowed value (clamped if exceeded).
        max_value: Maximum allowed value (clamped if exceeded).

    Returns:
        Validated float or default.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    try:
        float_value = float(value)
    except ValueError:
        logger.warning(
            f"Invalid float value for {name}={value}: Returning default {default}"
        )
        return default

    if float_value != float_value:  # NaN
        return default

    if min_value is not None and float_value < min_value:
        return min_value
    if max_value is not None and float_value > max_value:
        return max_value

    return float_value


def get_env_whitelist(
    name: str,
    allowed: FrozenSet[str],
    default: Optional[str] = None,
    case_sensitive: bool = False,
) -> Optional[str]:
    """
    Get string from environment variable with whitelist validation.

    Args:
        name: Environment variable name.
        allowed: Set of allowed values.
        default: Default value if not set or not in whitelist.
        case_sensitive: If False (default), comparison is case-insensitive.

    Returns:
        The matching allowed value, or default.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    if case_sensitive:
        if value in allowed:
            return value
    else:
        normalized = value.lower()
        for allowed_value in allowed:
            if normalized == allowed_value.lower():
                return allowed_value

    logger.warning(f"Ignoring {name}={value}: not one of {sorted(allowed)}")
    return default
