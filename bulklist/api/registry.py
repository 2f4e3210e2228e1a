"""In-memory registry of running batches."""

import logging
import threading
from typing import Dict, List, Optional

from bulklist.pipeline.controller import BulkListingPipeline

logger = logging.getLogger(__name__)


class BatchRegistry:
    """Pipelines by batch id for the lifetime of the process."""

    def __init__(self) -> None:
        self._pipelines: Dict[str, BulkListingPipeline] = {}
        self._lock = threading.Lock()

    def add(self, pipeline: BulkListingPipeline) -> None:
        with self._lock:
            self._pipelines[pipeline.batch_id] = pipeline
        logger.info(f"Registered batch {pipeline.batch_id}")

    def get(self, batch_id: str) -> Optional[BulkListingPipeline]:
        with self._lock:
            return self._pipelines.get(batch_id)

    def batch_ids(self) -> List[str]:
        with self._lock:
            return list(self._pipelines)


# Global registry used by the API
registry = BatchRegistry()
