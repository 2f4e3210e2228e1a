"""Processing progress for a batch.

``progress_summary`` derives counts from a batch snapshot. The
``ProgressTracker`` keeps the latest summary per batch id in memory so
that pollers (the API) can read progress while enrichment runs. Access
is guarded by per-batch locks, since readers may live on other threads.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bulklist.models.batch import Batch
from bulklist.models.group import GroupStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressSummary:
    """Per-status counts for the groups of one batch."""

    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    error: int = 0
    posted: int = 0

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        return int(self.completed / self.total * 100)

    @property
    def is_all_complete(self) -> bool:
        """Whether no group is waiting for or undergoing enrichment."""
        return self.pending == 0 and self.processing == 0

    @property
    def has_errors(self) -> bool:
        return self.error > 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(
            percent=self.percent,
            is_all_complete=self.is_all_complete,
            has_errors=self.has_errors,
        )
        return data


def progress_summary(batch: Batch) -> ProgressSummary:
    """Count the groups of ``batch`` by status."""
    counts: Dict[GroupStatus, int] = defaultdict(int)
    for group in batch.groups:
        counts[group.status] += 1
    return ProgressSummary(
        total=len(batch.groups),
        pending=counts[GroupStatus.PENDING],
        processing=counts[GroupStatus.PROCESSING],
        completed=counts[GroupStatus.COMPLETED],
        error=counts[GroupStatus.ERROR],
        posted=sum(1 for group in batch.groups if group.is_posted),
    )


class ProgressTracker:
    """Thread-safe in-memory store of the last progress per batch."""

    def __init__(self) -> None:
        self._storage: Dict[str, Dict[str, Any]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, batch_id: str) -> threading.Lock:
        with self._registry_lock:
            if batch_id not in self._locks:
                self._locks[batch_id] = threading.Lock()
            return self._locks[batch_id]

    def update(
        self,
        batch_id: str,
        summary: ProgressSummary,
        message: str = "",
    ) -> None:
        """
        Record the latest progress of a batch.

        Args:
            batch_id: Batch the summary belongs to
            summary: Current status counts
            message: Human-readable progress message
        """
        entry = {
            "batch_id": batch_id,
            "progress": summary.to_dict(),
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock_for(batch_id):
            self._storage[batch_id] = entry
        logger.debug(
            f"Updated progress for batch {batch_id}: "
            f"{summary.completed}/{summary.total}"
        )

    def get(self, batch_id: str) -> Optional[Dict[str, Any]]:
        """Last recorded progress for a batch, if any."""
        with self._lock_for(batch_id):
            return self._storage.get(batch_id)

    def forget(self, batch_id: str) -> None:
        with self._lock_for(batch_id):
            self._storage.pop(batch_id, None)
        with self._registry_lock:
            self._locks.pop(batch_id, None)


# Shared tracker used by the API and CLI
progress_tracker = ProgressTracker()
