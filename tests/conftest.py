"""
Shared pytest fixtures and configuration for MediaVault tests.

Fixture Organization
--------------------
- **config**: Config rooted in a temporary directory
- **library**: MediaLibrary using that config's media and data paths
- **make_image**: Writes a real image file with Pillow
- **clock**: Manually advanced clock for JobStore retention tests
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Tuple

import pytest
from PIL import Image

from mediavault.core.config import Config
from mediavault.media.library import MediaLibrary


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of config tests."""
    for name in (
        "MEDIAVAULT_QUEUE_CONCURRENCY",
        "MEDIAVAULT_QUEUE_RETENTION_MINUTES",
        "MEDIAVAULT_QUEUE_SHUTDOWN_GRACE_SEC",
        "MEDIAVAULT_API_HOST",
        "MEDIAVAULT_API_PORT",
        "MEDIAVAULT_LOG_LEVEL",
        "ANTHROPIC_API_KEY",
        "CLAUDE_MODEL",
        "MAX_FILE_SIZE",
        "MAX_FILES_PER_BATCH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Default config with all paths under tmp_path."""
    cfg = Config()
    cfg._base_path = tmp_path
    return cfg


@pytest.fixture
def library(config: Config) -> MediaLibrary:
    return MediaLibrary.from_config(config)


# ============================================================================
# Image Fixtures
# ============================================================================


@pytest.fixture
def make_image() -> Callable[..., Path]:
    """Factory writing a solid-color image.

    Example:
        def test_resize(make_image, tmp_path):
            path = make_image(tmp_path / "a.png", (800, 600), "PNG")
    """

    def _make(
        path: Path,
        size: Tuple[int, int] = (800, 600),
        fmt: str = "JPEG",
        mode: str = "RGB",
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        color = (200, 120, 40, 255)[: len(mode)] if mode != "L" else 128
        Image.new(mode, size, color).save(path, format=fmt)
        return path

    return _make


@pytest.fixture
def jpeg_bytes(tmp_path: Path, make_image: Callable[..., Path]) -> bytes:
    return make_image(tmp_path / "upload.jpg", (640, 480), "JPEG").read_bytes()


# ============================================================================
# Clock Fixture
# ============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))
