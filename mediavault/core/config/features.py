"""
Feature configuration: AI analysis and the API server.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class AIConfig:
    """Claude image classification settings."""

    model: str = "claude-3-haiku-20240307"
    api_key: str = ""
    max_tokens: int = 2000


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
