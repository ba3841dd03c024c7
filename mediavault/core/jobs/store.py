"""
In-memory job store for the background queue.

Holds pending jobs in FIFO order, the jobs currently being processed, and a
bounded log of finished jobs kept around for status queries.

The store is owned by a single JobScheduler and is only touched from the
event loop thread, so it needs no locking. Reads never mutate: finished jobs
past the retention window are hidden at query time and physically removed
the next time a job is enqueued or finished.
"""

import uuid
from collections import OrderedDict, deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Iterable, List, Optional

from mediavault.core.jobs.models import (
    Job,
    JobKind,
    JobLookup,
    JobStatus,
    QueueCounts,
    utcnow,
)
from mediavault.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RETENTION = timedelta(minutes=60)
DEFAULT_MAX_FINISHED = 1000

Clock = Callable[[], datetime]


class JobStore:
    """
    Pending queue, in-flight bookkeeping and finished-job record.

    Every job is reachable by id through ``_jobs`` and by resource id through
    ``_by_resource`` until it is evicted.
    """

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        max_finished: int = DEFAULT_MAX_FINISHED,
        clock: Clock = utcnow,
    ) -> None:
        """
        Initialize the store.

        Args:
            retention: How long finished jobs stay queryable.
            max_finished: Upper bound on retained finished jobs.
            clock: Source of the current time (injectable for tests).
        """
        if max_finished < 1:
            raise ValueError("max_finished must be >= 1")
        self.retention = retention
        self.max_finished = max_finished
        self._clock = clock
        self._pending: Deque[Job] = deque()
        self._active: Dict[str, Job] = {}
        self._finished: "OrderedDict[str, Job]" = OrderedDict()
        self._jobs: Dict[str, Job] = {}
        self._by_resource: Dict[str, List[Job]] = {}

    # ------------------------------------------------------------------
    # Mutations (scheduler only)
    # ------------------------------------------------------------------

    def enqueue(self, resource_id: str, kind: JobKind) -> Job:
        """Append a new pending job. Never blocks and has no capacity limit."""
        if not resource_id:
            raise ValueError("resource_id must be a non-empty string")

        self.evict_expired()

        job = Job(
            id=uuid.uuid4().hex,
            kind=kind,
            resource_id=resource_id,
            created_at=self._clock(),
        )
        self._pending.append(job)
        self._jobs[job.id] = job
        self._by_resource.setdefault(resource_id, []).append(job)
        return job

    def dequeue_next(self) -> Optional[Job]:
        """Claim the oldest pending job and mark it processing."""
        if not self._pending:
            return None
        job = self._pending.popleft()
        job.mark_processing(self._clock())
        self._active[job.id] = job
        return job

    def record_finished(self, job: Job, error: Optional[str] = None) -> Job:
        """
        Move a processing job into the finished record.

        Args:
            job: Job previously returned by dequeue_next().
            error: Failure message; None marks the job complete.

        Returns:
            The finished job.
        """
        if self._active.pop(job.id, None) is None:
            raise KeyError(f"Job {job.id} is not being processed")

        now = self._clock()
        if error is None:
            job.mark_complete(now)
        else:
            job.mark_failed(error, now)

        self._finished[job.id] = job
        self.evict_expired(now)
        return job

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        """
        Drop finished jobs past the retention window or over the count cap.

        Returns:
            Number of jobs removed.
        """
        now = now or self._clock()
        cutoff = now - self.retention
        removed = 0

        # _finished is ordered by finish time, oldest first
        while self._finished:
            job_id, job = next(iter(self._finished.items()))
            expired = job.processed_at is not None and job.processed_at <= cutoff
            over_cap = len(self._finished) > self.max_finished
            if not (expired or over_cap):
                break
            del self._finished[job_id]
            self._forget(job)
            removed += 1

        if removed:
            logger.debug("Evicted finished jobs", count=removed)
        return removed

    def _forget(self, job: Job) -> None:
        self._jobs.pop(job.id, None)
        jobs = self._by_resource.get(job.resource_id)
        if jobs is None:
            return
        remaining = [j for j in jobs if j.id != job.id]
        if remaining:
            self._by_resource[job.resource_id] = remaining
        else:
            del self._by_resource[job.resource_id]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def active_count(self) -> int:
        return len(self._active)

    def get(self, job_id: str) -> Optional[Job]:
        """Get a tracked job by id."""
        job = self._jobs.get(job_id)
        if job is None or not self._is_visible(job):
            return None
        return job

    def _is_visible(self, job: Job, now: Optional[datetime] = None) -> bool:
        """Finished jobs past the retention window are treated as gone."""
        if not job.is_terminal or job.processed_at is None:
            return True
        now = now or self._clock()
        return job.processed_at > now - self.retention

    def _most_relevant(self, jobs: Iterable[Job], now: datetime) -> Optional[Job]:
        """
        Pick the job that best describes a resource.

        Processing beats pending (the oldest pending job wins), and live jobs
        beat finished ones. Among finished jobs the most recently created
        wins, so a re-enqueued retry supersedes an earlier failure.
        """
        processing: Optional[Job] = None
        pending: Optional[Job] = None
        finished: Optional[Job] = None
        for job in jobs:
            if job.status is JobStatus.PROCESSING:
                processing = processing or job
            elif job.status is JobStatus.PENDING:
                pending = pending or job
            elif self._is_visible(job, now):
                if finished is None or job.created_at >= finished.created_at:
                    finished = job
        return processing or pending or finished

    def query_by_resource_ids(self, resource_ids: Iterable[str]) -> List[JobLookup]:
        """One lookup per requested id, in request order."""
        now = self._clock()
        results: List[JobLookup] = []
        for resource_id in resource_ids:
            job = self._most_relevant(self._by_resource.get(resource_id, ()), now)
            if job is None:
                results.append(JobLookup.not_found(resource_id))
            else:
                results.append(JobLookup.from_job(job))
        return results

    def snapshot_counts(self) -> QueueCounts:
        """Aggregate counts for operational visibility."""
        now = self._clock()
        completed = 0
        failed = 0
        for job in self._finished.values():
            if not self._is_visible(job, now):
                continue
            if job.status is JobStatus.COMPLETE:
                completed += 1
            else:
                failed += 1
        return QueueCounts(
            pending=len(self._pending),
            processing=len(self._active),
            completed=completed,
            failed=failed,
        )
