"""
Read-only queue visibility.

Answers "how busy is the queue" and "what happened to these images" without
touching dispatch state.
"""

from typing import Iterable, List

from mediavault.core.jobs.models import JobLookup, QueueCounts
from mediavault.core.jobs.store import JobStore


class QueueStatusReporter:
    """Queries over a JobStore. Calling these never changes the store."""

    def __init__(self, store: JobStore) -> None:
        self.store = store

    def get_queue_status(self) -> QueueCounts:
        return self.store.snapshot_counts()

    def get_jobs_by_resource_ids(self, resource_ids: Iterable[str]) -> List[JobLookup]:
        """
        Look up the most relevant job for each resource id.

        Args:
            resource_ids: Image ids, duplicates allowed.

        Returns:
            One JobLookup per input id in the same order. Ids with no tracked
            job get status "not-found".
        """
        return self.store.query_by_resource_ids(list(resource_ids))
