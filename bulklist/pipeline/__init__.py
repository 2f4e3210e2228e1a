"""Bulk listing pipeline - stage controller, item lifecycle and commit."""

from .commit import BulkCommitOrchestrator, CommitResult, ItemFailure, apply_commit
from .contracts import Enricher, ListingSaver, SaveResult
from .controller import BulkListingPipeline
from .errors import (
    BatchClosedError,
    EnrichmentError,
    GroupNotFoundError,
    InvalidListingEdit,
    InvalidStatusTransition,
    PersistenceError,
    PipelineError,
    StageTransitionError,
)
from .framework import ConcurrentTaskRunner, PipelineTask, RunResult, TaskRunner
from .progress import ProgressSummary, ProgressTracker, progress_summary, progress_tracker

__all__ = [
    "BatchClosedError",
    "BulkCommitOrchestrator",
    "BulkListingPipeline",
    "CommitResult",
    "ConcurrentTaskRunner",
    "Enricher",
    "EnrichmentError",
    "GroupNotFoundError",
    "InvalidListingEdit",
    "InvalidStatusTransition",
    "ItemFailure",
    "ListingSaver",
    "PersistenceError",
    "PipelineError",
    "PipelineTask",
    "ProgressSummary",
    "ProgressTracker",
    "RunResult",
    "SaveResult",
    "StageTransitionError",
    "TaskRunner",
    "apply_commit",
    "progress_summary",
    "progress_tracker",
]
