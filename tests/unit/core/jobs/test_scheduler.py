"""Tests for JobScheduler dispatch, concurrency bound and failure isolation."""

from __future__ import annotations

import asyncio
from typing import Dict, List

import pytest

from mediavault.core.exceptions import ConfigValidationError, UnknownJobKindError
from mediavault.core.jobs import (
    JobKind,
    JobScheduler,
    JobStatus,
    SchedulerState,
)


async def _let_loop_run(cycles: int = 20) -> None:
    """Give the dispatch loop and handler tasks a chance to run."""
    for _ in range(cycles):
        await asyncio.sleep(0)


class GatedHandler:
    """Handler that blocks each resource until released."""

    def __init__(self) -> None:
        self.started: List[str] = []
        self.gates: Dict[str, asyncio.Event] = {}

    def release(self, resource_id: str) -> None:
        self.gates.setdefault(resource_id, asyncio.Event()).set()

    async def __call__(self, resource_id: str) -> None:
        self.started.append(resource_id)
        await self.gates.setdefault(resource_id, asyncio.Event()).wait()


def _status(scheduler: JobScheduler, resource_id: str) -> str:
    return scheduler.get_jobs_by_resource_ids([resource_id])[0].status


class TestConstruction:
    @pytest.mark.parametrize("concurrency", [0, -1, 1.5, "3", True])
    def test_invalid_concurrency_rejected(self, concurrency) -> None:
        with pytest.raises(ConfigValidationError):
            JobScheduler({}, concurrency=concurrency)

    def test_defaults(self) -> None:
        scheduler = JobScheduler({})
        assert scheduler.concurrency == 3
        assert scheduler.default_kind is JobKind.AI_ANALYSIS
        assert scheduler.state is SchedulerState.IDLE


class TestDispatch:
    @pytest.mark.asyncio
    async def test_concurrency_one_is_strict_fifo(self) -> None:
        handler = GatedHandler()
        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler}, concurrency=1)

        scheduler.enqueue("img1")
        scheduler.enqueue("img2")
        await _let_loop_run()

        assert _status(scheduler, "img1") == "processing"
        assert _status(scheduler, "img2") == "pending"

        handler.release("img1")
        await _let_loop_run()

        assert _status(scheduler, "img1") == "complete"
        assert _status(scheduler, "img2") == "processing"

        handler.release("img2")
        assert await scheduler.wait_until_idle(timeout=1)
        assert handler.started == ["img1", "img2"]

    @pytest.mark.asyncio
    async def test_never_exceeds_concurrency(self) -> None:
        running = 0
        peak = 0

        async def handler(resource_id: str) -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler}, concurrency=3)
        ids = [f"img{i}" for i in range(5)]
        for image_id in ids:
            scheduler.enqueue(image_id)

        assert await scheduler.wait_until_idle(timeout=2)

        assert peak == 3
        assert [lk.status for lk in scheduler.get_jobs_by_resource_ids(ids)] == [
            "complete"
        ] * 5
        counts = scheduler.get_queue_status()
        assert counts.completed == 5
        assert counts.total == 5

    @pytest.mark.asyncio
    async def test_enqueue_fills_free_slot_while_loop_waits(self) -> None:
        handler = GatedHandler()
        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler}, concurrency=2)

        scheduler.enqueue("a")
        await _let_loop_run()
        scheduler.enqueue("b")
        await _let_loop_run()

        assert _status(scheduler, "a") == "processing"
        assert _status(scheduler, "b") == "processing"

        handler.release("a")
        handler.release("b")
        assert await scheduler.wait_until_idle(timeout=1)

    @pytest.mark.asyncio
    async def test_enqueue_does_not_wait_for_handler(self) -> None:
        handler = GatedHandler()
        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})

        job_id = scheduler.enqueue("img1")

        assert isinstance(job_id, str) and job_id
        assert scheduler.get_job(job_id).status is JobStatus.PENDING
        handler.release("img1")
        assert await scheduler.wait_until_idle(timeout=1)

    @pytest.mark.asyncio
    async def test_both_kinds_for_same_resource_run(self) -> None:
        calls: List[str] = []

        async def metadata(resource_id: str) -> None:
            calls.append(f"meta:{resource_id}")

        async def analysis(resource_id: str) -> None:
            calls.append(f"ai:{resource_id}")

        scheduler = JobScheduler(
            {JobKind.METADATA_AND_THUMBNAIL: metadata, JobKind.AI_ANALYSIS: analysis}
        )
        scheduler.enqueue("img1", JobKind.METADATA_AND_THUMBNAIL)
        scheduler.enqueue("img1", JobKind.AI_ANALYSIS)

        assert await scheduler.wait_until_idle(timeout=1)

        assert sorted(calls) == ["ai:img1", "meta:img1"]
        assert scheduler.get_queue_status().completed == 2

    @pytest.mark.asyncio
    async def test_state_returns_to_idle(self) -> None:
        handler = GatedHandler()
        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})

        scheduler.enqueue("img1")
        assert scheduler.state is SchedulerState.RUNNING

        handler.release("img1")
        assert await scheduler.wait_until_idle(timeout=1)
        assert scheduler.state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_restarts_after_going_idle(self) -> None:
        seen: List[str] = []

        async def handler(resource_id: str) -> None:
            seen.append(resource_id)

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})
        scheduler.enqueue("first")
        assert await scheduler.wait_until_idle(timeout=1)
        scheduler.enqueue("second")
        assert await scheduler.wait_until_idle(timeout=1)

        assert seen == ["first", "second"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_handler_exception_fails_only_its_job(self) -> None:
        async def handler(resource_id: str) -> None:
            if resource_id == "bad":
                raise RuntimeError("boom")

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})
        scheduler.enqueue("bad")
        scheduler.enqueue("good")

        assert await scheduler.wait_until_idle(timeout=1)

        bad, good = scheduler.get_jobs_by_resource_ids(["bad", "good"])
        assert bad.status == "failed"
        assert bad.error == "boom"
        assert good.status == "complete"

    @pytest.mark.asyncio
    async def test_empty_exception_message_uses_class_name(self) -> None:
        async def handler(resource_id: str) -> None:
            raise KeyError()

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})
        scheduler.enqueue("img1")
        assert await scheduler.wait_until_idle(timeout=1)

        assert scheduler.get_jobs_by_resource_ids(["img1"])[0].error == "KeyError"

    @pytest.mark.asyncio
    async def test_unknown_kind_fails_without_running(self) -> None:
        calls: List[str] = []

        async def analysis(resource_id: str) -> None:
            calls.append(resource_id)

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: analysis})
        scheduler.enqueue("img1", JobKind.METADATA_AND_THUMBNAIL)

        assert await scheduler.wait_until_idle(timeout=1)

        (lookup,) = scheduler.get_jobs_by_resource_ids(["img1"])
        assert lookup.status == "failed"
        assert "No handler registered" in lookup.error
        assert calls == []

    def test_unknown_kind_string_rejected_at_enqueue(self) -> None:
        scheduler = JobScheduler({})
        with pytest.raises(UnknownJobKindError):
            scheduler.enqueue("img1", "resize")

    @pytest.mark.asyncio
    async def test_kind_accepts_wire_value(self) -> None:
        seen: List[str] = []

        async def metadata(resource_id: str) -> None:
            seen.append(resource_id)

        scheduler = JobScheduler({JobKind.METADATA_AND_THUMBNAIL: metadata})
        scheduler.enqueue("img1", "metadata-and-thumbnail")
        assert await scheduler.wait_until_idle(timeout=1)
        assert seen == ["img1"]

    @pytest.mark.asyncio
    async def test_sync_handler_counts_as_success(self) -> None:
        seen: List[str] = []

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: seen.append})
        scheduler.enqueue("img1")
        assert await scheduler.wait_until_idle(timeout=1)

        assert seen == ["img1"]
        assert _status(scheduler, "img1") == "complete"


class TestWaitUntilIdle:
    @pytest.mark.asyncio
    async def test_idle_scheduler_returns_true(self) -> None:
        assert await JobScheduler({}).wait_until_idle(timeout=0.1)

    @pytest.mark.asyncio
    async def test_timeout_returns_false_without_cancelling(self) -> None:
        handler = GatedHandler()
        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})
        scheduler.enqueue("img1")

        assert not await scheduler.wait_until_idle(timeout=0.05)
        assert _status(scheduler, "img1") == "processing"

        handler.release("img1")
        assert await scheduler.wait_until_idle(timeout=1)
        assert _status(scheduler, "img1") == "complete"

    def test_enqueue_without_event_loop_runs_later(self) -> None:
        seen: List[str] = []

        async def handler(resource_id: str) -> None:
            seen.append(resource_id)

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})
        scheduler.enqueue("img1")

        assert scheduler.state is SchedulerState.IDLE
        assert _status(scheduler, "img1") == "pending"

        assert asyncio.run(scheduler.wait_until_idle(timeout=1))
        assert seen == ["img1"]
        assert _status(scheduler, "img1") == "complete"


class TestQueueStatus:
    @pytest.mark.asyncio
    async def test_idle_counts_identical_across_calls(self) -> None:
        async def handler(resource_id: str) -> None:
            return None

        scheduler = JobScheduler({JobKind.AI_ANALYSIS: handler})
        scheduler.enqueue("img1")
        assert await scheduler.wait_until_idle(timeout=1)

        first = scheduler.get_queue_status()
        second = scheduler.get_queue_status()

        assert first == second
        assert first.pending == 0
        assert first.processing == 0

    def test_unknown_id_is_not_found(self) -> None:
        scheduler = JobScheduler({})
        (lookup,) = scheduler.get_jobs_by_resource_ids(["unknown-id"])
        assert lookup.status == "not-found"
