"""
Factory functions for creating job stores and schedulers.

Wires the queue settings from Config into the store and scheduler.
"""

from datetime import timedelta
from typing import Mapping, Optional

from mediavault.core.config import Config
from mediavault.core.jobs.models import JobKind
from mediavault.core.jobs.scheduler import JobHandler, JobScheduler
from mediavault.core.jobs.store import JobStore


def create_job_store(config: Optional[Config] = None) -> JobStore:
    """
    Create a job store.

    Args:
        config: Application config. Defaults are used if omitted.

    Returns:
        JobStore with the configured retention window and history cap.
    """
    config = config or Config()
    return JobStore(
        retention=timedelta(minutes=config.queue.retention_minutes),
        max_finished=config.queue.max_finished_jobs,
    )


def create_job_scheduler(
    config: Optional[Config], handlers: Mapping[JobKind, JobHandler]
) -> JobScheduler:
    """
    Create a job scheduler.

    Args:
        config: Application config. Defaults are used if omitted.
        handlers: Map of job kind to handler.

    Returns:
        JobScheduler using queue.concurrency from the config.
    """
    config = config or Config()
    return JobScheduler(
        handlers,
        concurrency=config.queue.concurrency,
        store=create_job_store(config),
    )
