"""Tests for structured logging helpers."""

import logging
from types import SimpleNamespace

import pytest

from mediavault.core.jobs import JobKind
from mediavault.core.logging import JobLogger, StructuredLogger, get_logger


class TestStructuredLogger:
    def test_get_logger_is_cached(self) -> None:
        assert get_logger("mediavault.test.cache") is get_logger("mediavault.test.cache")

    def test_fields_are_appended(self) -> None:
        logger = StructuredLogger("mediavault.test.fields")
        assert logger._format_message("Saved", image_id="abc", size=3) == (
            "Saved | image_id=abc | size=3"
        )

    def test_bind_and_unbind(self) -> None:
        logger = StructuredLogger("mediavault.test.bind")
        logger.bind(request="r1")
        assert logger._format_message("hi") == "hi | request=r1"

        logger.unbind("request")
        assert logger._format_message("hi") == "hi"

    def test_messages_reach_handlers(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("mediavault.test.emit")
        with caplog.at_level(logging.INFO, logger="mediavault.test.emit"):
            logger.warning("Disk low", free_mb=12)
        assert "Disk low | free_mb=12" in caplog.text


class TestJobLogger:
    def _job(self) -> SimpleNamespace:
        return SimpleNamespace(id="job1", kind=JobKind.AI_ANALYSIS, resource_id="img1")

    def test_success_logged_with_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        jlog = JobLogger(self._job())
        with caplog.at_level(logging.INFO, logger="mediavault.jobs"):
            jlog.started()
            jlog.finished()

        assert "Job started" in caplog.text
        assert "Job complete" in caplog.text
        assert "kind=ai-analysis" in caplog.text
        assert "resource_id=img1" in caplog.text

    def test_failure_logged_as_error(self, caplog: pytest.LogCaptureFixture) -> None:
        jlog = JobLogger(self._job())
        with caplog.at_level(logging.INFO, logger="mediavault.jobs"):
            jlog.finished(error="boom")

        (record,) = [r for r in caplog.records if "Job failed" in r.getMessage()]
        assert record.levelno == logging.ERROR
        assert "error=boom" in record.getMessage()
