"""
Background Job Queue for MediaVault.

Runs post-upload work (metadata extraction, thumbnails, AI classification)
in the background so uploads return immediately. Jobs live in memory only;
a restart forgets them.

Architecture Context
--------------------
    ┌──────────────────┐     ┌─────────────────┐     ┌─────────────────┐
    │   API / CLI      │────→│   JobStore      │────→│  JobScheduler   │
    │  (enqueue job)   │     │  (in memory)    │     │  (N handlers)   │
    └──────────────────┘     └─────────────────┘     └─────────────────┘
           ↑                          │
           │       status queries     │
           └──────────────────────────┘
"""

# Models
from mediavault.core.jobs.models import (
    NOT_FOUND,
    Job,
    JobKind,
    JobLookup,
    JobStatus,
    QueueCounts,
)

# Store
from mediavault.core.jobs.store import JobStore

# Status
from mediavault.core.jobs.status import QueueStatusReporter

# Scheduler
from mediavault.core.jobs.scheduler import JobHandler, JobScheduler, SchedulerState

# Factory
from mediavault.core.jobs.factory import create_job_scheduler, create_job_store

__all__ = [
    # Enums
    "JobStatus",
    "JobKind",
    "SchedulerState",
    # Models
    "Job",
    "JobLookup",
    "QueueCounts",
    "NOT_FOUND",
    # Store
    "JobStore",
    "QueueStatusReporter",
    # Scheduler
    "JobScheduler",
    # Factory
    "create_job_scheduler",
    "create_job_store",
    # Type aliases
    "JobHandler",
]
