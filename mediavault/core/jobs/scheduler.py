"""
Job scheduler for background post-upload work.

Claims pending jobs in FIFO order and runs up to ``concurrency`` handlers at
once on the running asyncio event loop.

Architecture
------------
    enqueue() ──→ JobStore.pending ──→ dispatch loop ──→ handler task
                        ↑                   │  ↑              │
                        │        wake-up ───┘  └── settled ───┘
                        │                          (complete / failed)
                   status queries

The dispatch loop only exists while there is work. It suspends on
``asyncio.wait(FIRST_COMPLETED)`` over the in-flight handler tasks plus a
wake-up event that ``enqueue()`` sets, so a new job fills a free slot as soon
as it arrives and a finished job frees its slot immediately.

Usage
-----
    scheduler = JobScheduler({JobKind.AI_ANALYSIS: analyze}, concurrency=3)
    job_id = scheduler.enqueue("img-1")
    await scheduler.wait_until_idle()
    scheduler.get_jobs_by_resource_ids(["img-1"])
"""

import asyncio
import inspect
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from mediavault.core.exceptions import ConfigValidationError, UnknownJobKindError
from mediavault.core.jobs.models import Job, JobKind, JobLookup, QueueCounts
from mediavault.core.jobs.status import QueueStatusReporter
from mediavault.core.jobs.store import JobStore
from mediavault.core.logging import JobLogger, get_logger

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 3

# Takes a resource id, returns on success, raises on failure
JobHandler = Callable[[str], Awaitable[None]]


class SchedulerState(Enum):
    """Whether a dispatch loop is currently alive."""

    IDLE = "idle"
    RUNNING = "running"


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def _invoke(handler: Callable[[str], Any], resource_id: str) -> None:
    result = handler(resource_id)
    # Plain functions are accepted; their return value means success
    if inspect.isawaitable(result):
        await result


class JobScheduler:
    """
    Bounded-concurrency dispatcher for queued jobs.

    A handler exception only fails its own job. Nothing raised by a handler
    reaches the caller of enqueue() or stops the loop.
    """

    def __init__(
        self,
        handlers: Mapping[JobKind, JobHandler],
        concurrency: int = DEFAULT_CONCURRENCY,
        store: Optional[JobStore] = None,
        default_kind: JobKind = JobKind.AI_ANALYSIS,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            handlers: Map of job kind to handler coroutine function.
            concurrency: Maximum number of jobs processing at once.
            store: Job store to use. A fresh one is created if omitted.
            default_kind: Kind used when enqueue() is called without one.
        """
        if (
            not isinstance(concurrency, int)
            or isinstance(concurrency, bool)
            or concurrency < 1
        ):
            raise ConfigValidationError(
                f"concurrency must be a positive integer, got {concurrency!r}"
            )

        self.handlers: Dict[JobKind, JobHandler] = dict(handlers)
        self.concurrency = concurrency
        self.store = store if store is not None else JobStore()
        self.reporter = QueueStatusReporter(self.store)
        self.default_kind = default_kind

        self._loop_task: Optional[asyncio.Task[None]] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._active: Dict["asyncio.Task[None]", Tuple[Job, JobLogger]] = {}

    @property
    def state(self) -> SchedulerState:
        if self._loop_task is not None and not self._loop_task.done():
            return SchedulerState.RUNNING
        return SchedulerState.IDLE

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(
        self, resource_id: str, kind: Optional[Union[JobKind, str]] = None
    ) -> str:
        """
        Queue a job and make sure the dispatch loop is running.

        Never suspends and never waits for the job to run.

        Args:
            resource_id: Image id the job operates on.
            kind: Job kind. Defaults to ``default_kind``.

        Returns:
            The new job id.

        Raises:
            UnknownJobKindError: If ``kind`` is a string that names no kind.
            ValueError: If ``resource_id`` is empty.
        """
        job_kind = self._coerce_kind(kind)
        job = self.store.enqueue(resource_id, job_kind)
        logger.debug(
            "Job enqueued",
            job_id=job.id,
            kind=job_kind.value,
            resource_id=resource_id,
        )
        self.start()
        return job.id

    def _coerce_kind(self, kind: Optional[Union[JobKind, str]]) -> JobKind:
        if kind is None:
            return self.default_kind
        if isinstance(kind, JobKind):
            return kind
        try:
            return JobKind(kind)
        except ValueError:
            raise UnknownJobKindError(f"Unknown job kind: {kind}") from None

    def start(self) -> None:
        """
        Ensure a dispatch loop is running if there is work.

        Safe to call any number of times. Outside a running event loop the
        jobs stay pending until start() is called again from inside one.
        """
        if self.state is SchedulerState.RUNNING:
            if self._wakeup is not None:
                self._wakeup.set()
            return

        if not self.store.pending_count:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "No running event loop, jobs stay pending",
                pending=self.store.pending_count,
            )
            return

        self._wakeup = asyncio.Event()
        self._loop_task = loop.create_task(self._run(), name="mediavault-dispatch")

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        logger.debug("Dispatch loop started", concurrency=self.concurrency)
        try:
            while self.store.pending_count or self._active:
                self._fill_slots()
                if not self._active:
                    continue

                wakeup = self._wakeup
                assert wakeup is not None
                wakeup.clear()
                waiter = asyncio.ensure_future(wakeup.wait())
                try:
                    done, _ = await asyncio.wait(
                        set(self._active) | {waiter},
                        return_when=asyncio.FIRST_COMPLETED,
                    )
                finally:
                    if not waiter.done():
                        waiter.cancel()

                for task in done:
                    if task is not waiter:
                        self._settle(task)
        finally:
            # No await between the emptiness check above and this reset
            self._loop_task = None
            self._wakeup = None
            logger.debug("Dispatch loop idle")

    def _fill_slots(self) -> None:
        """Claim pending jobs until every slot is busy or the queue is empty."""
        while len(self._active) < self.concurrency:
            job = self.store.dequeue_next()
            if job is None:
                return

            job_logger = JobLogger(job)
            job_logger.started()

            handler = self.handlers.get(job.kind)
            if handler is None:
                error = str(
                    UnknownJobKindError(
                        f"No handler registered for job kind: {job.kind.value}"
                    )
                )
                self.store.record_finished(job, error)
                job_logger.finished(error)
                continue

            task = asyncio.create_task(
                _invoke(handler, job.resource_id), name=f"job-{job.id}"
            )
            self._active[task] = (job, job_logger)

    def _settle(self, task: "asyncio.Task[None]") -> None:
        job, job_logger = self._active.pop(task)

        error: Optional[str] = None
        if task.cancelled():
            error = "Job cancelled"
        else:
            exc = task.exception()
            if exc is not None:
                error = _error_message(exc)

        self.store.record_finished(job, error)
        job_logger.finished(error)

    async def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no job is pending or processing.

        Never cancels jobs. Starts the loop first if jobs were enqueued while
        no event loop was running.

        Args:
            timeout: Seconds to wait. None waits indefinitely.

        Returns:
            True if the queue drained, False on timeout.
        """
        self.start()
        try:
            async with asyncio.timeout(timeout):
                while self._loop_task is not None and not self._loop_task.done():
                    await asyncio.shield(self._loop_task)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_queue_status(self) -> QueueCounts:
        return self.reporter.get_queue_status()

    def get_jobs_by_resource_ids(self, resource_ids: Iterable[str]) -> List[JobLookup]:
        return self.reporter.get_jobs_by_resource_ids(resource_ids)

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)
