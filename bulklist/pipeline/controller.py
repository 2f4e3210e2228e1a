"""
Pipeline stage controller.

``BulkListingPipeline`` owns one batch and moves it through

    upload -> grouping -> processing -> shipping -> review <-> individual-review

Each method checks the current stage, applies reducers from
``bulklist.pipeline.state`` and stores the resulting batch. The batch is
only ever replaced between awaits, so enrichment completions and manual
edits apply as whole-group swaps and never overwrite each other.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from bulklist.analysis.grouping import ChunkSizer, ConfidencePicker, partition_photos
from bulklist.analysis.shipping import estimate_weight, quote, select_default_option
from bulklist.config import settings
from bulklist.models.batch import Batch, PipelineStage
from bulklist.models.group import GroupStatus, PhotoGroup
from bulklist.models.listing import CommitMode

from . import state
from .commit import BulkCommitOrchestrator, CommitProgress, CommitResult, apply_commit
from .contracts import Enricher, ListingSaver
from .errors import EnrichmentError, GroupNotFoundError, StageTransitionError
from .framework import PipelineTask, RunResult, make_runner
from .progress import ProgressSummary, ProgressTracker, progress_summary

logger = logging.getLogger(__name__)

GroupPredicate = Callable[[PhotoGroup], bool]

AFTER_GROUPING = (
    PipelineStage.PROCESSING,
    PipelineStage.SHIPPING,
    PipelineStage.REVIEW,
    PipelineStage.INDIVIDUAL_REVIEW,
)
AFTER_PROCESSING = AFTER_GROUPING[1:]
REVIEW_STAGES = (PipelineStage.REVIEW, PipelineStage.INDIVIDUAL_REVIEW)


class BulkListingPipeline:
    """Drive one batch of photos from upload to committed listings."""

    def __init__(
        self,
        enrich: Enricher,
        save: ListingSaver,
        batch: Optional[Batch] = None,
        concurrency: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        skip_shipping_stage: Optional[bool] = None,
        chunk_size: Optional[ChunkSizer] = None,
        confidence: Optional[ConfidencePicker] = None,
        price_threshold: Optional[float] = None,
        draft_shipping_cost: Optional[float] = None,
        tracker: Optional[ProgressTracker] = None,
    ) -> None:
        """
        Initialize a pipeline.

        Args:
            enrich: Enrichment collaborator
            save: Persistence collaborator
            batch: Existing batch to continue (a new one by default)
            concurrency: Groups enriched at once (1 = one at a time)
            timeout_seconds: Per-group enrichment timeout
            skip_shipping_stage: Go from processing straight to review
            chunk_size: Size source for the initial partition
            confidence: Confidence source for the initial partition
            price_threshold: Price above which priority shipping is the default
            draft_shipping_cost: Shipping cost sent for drafts without a selection
            tracker: Where progress is published for pollers
        """
        self.enrich = enrich
        self.batch = batch or Batch()
        self.concurrency = concurrency or settings.enrichment_concurrency
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.enrichment_timeout_seconds
        )
        self.skip_shipping_stage = (
            skip_shipping_stage
            if skip_shipping_stage is not None
            else settings.skip_shipping_stage
        )
        self.chunk_size = chunk_size
        self.confidence = confidence
        self.price_threshold = price_threshold
        self.tracker = tracker
        self.committer = BulkCommitOrchestrator(save, draft_shipping_cost)
        self._in_flight: Set[str] = set()

    # State access

    @property
    def batch_id(self) -> str:
        return self.batch.id

    @property
    def stage(self) -> PipelineStage:
        return self.batch.stage

    @property
    def groups(self) -> List[PhotoGroup]:
        return self.batch.groups

    def get_group(self, group_id: str) -> PhotoGroup:
        group = self.batch.get_group(group_id)
        if group is None:
            raise GroupNotFoundError(f"Batch {self.batch.id} has no group {group_id}")
        return group

    def progress(self) -> ProgressSummary:
        return progress_summary(self.batch)

    def _apply(self, batch: Batch) -> bool:
        changed = batch is not self.batch
        self.batch = batch
        return changed

    def _publish_progress(self, message: str = "") -> None:
        if self.tracker is not None:
            self.tracker.update(self.batch.id, self.progress(), message)

    # Upload and grouping

    def add_photos(self, photos: Sequence[str]) -> None:
        """Add photo handles to the upload."""
        self._apply(state.set_photos(self.batch, [*self.batch.photos, *photos]))

    def start_grouping(self) -> List[PhotoGroup]:
        """Partition the uploaded photos and enter the grouping stage."""
        state.ensure_stage(self.batch, PipelineStage.UPLOAD)
        if not self.batch.photos:
            raise StageTransitionError("Cannot group an empty photo set")
        groups = partition_photos(self.batch.photos, self.chunk_size, self.confidence)
        batch = state.set_groups(self.batch, groups)
        self._apply(state.set_stage(batch, PipelineStage.GROUPING))
        logger.info(
            f"Batch {self.batch.id}: {len(self.batch.photos)} photos "
            f"in {len(groups)} groups"
        )
        return self.batch.groups

    def create_group(self, name: Optional[str] = None) -> bool:
        state.ensure_stage(self.batch, PipelineStage.GROUPING)
        return self._apply(state.create_group(self.batch, name))

    def delete_group(self, group_id: str) -> bool:
        state.ensure_stage(self.batch, PipelineStage.GROUPING)
        return self._apply(state.delete_group(self.batch, group_id))

    def rename_group(self, group_id: str, name: str) -> bool:
        state.ensure_stage(self.batch, PipelineStage.GROUPING)
        return self._apply(state.rename_group(self.batch, group_id, name))

    def merge_groups(self, group_ids: Sequence[str]) -> bool:
        state.ensure_stage(self.batch, PipelineStage.GROUPING)
        return self._apply(state.merge_groups(self.batch, group_ids))

    def split_group(self, group_id: str) -> bool:
        state.ensure_stage(self.batch, PipelineStage.GROUPING)
        return self._apply(state.split_group(self.batch, group_id))

    def move_photo(self, source_id: str, target_id: str, photo_index: int) -> bool:
        state.ensure_stage(self.batch, PipelineStage.GROUPING)
        return self._apply(
            state.move_photo(self.batch, source_id, target_id, photo_index)
        )

    def confirm_groups(self) -> List[str]:
        """
        Confirm the grouping and enter the processing stage.

        Empty groups are dropped first.

        Returns:
            Group ids in the order enrichment will process them
        """
        state.ensure_stage(self.batch, PipelineStage.GROUPING)
        batch = state.prune_empty_groups(self.batch)
        if not batch.groups:
            raise StageTransitionError("Cannot confirm a batch without photo groups")
        self._apply(state.set_stage(batch, PipelineStage.PROCESSING))
        self._publish_progress("Groups confirmed")
        return self.batch.group_ids

    # Processing

    async def run_processing(self) -> RunResult[str]:
        """
        Enrich every pending group in batch order.

        A failed group ends in error and the run continues. When no group
        is left pending or processing the batch moves on to shipping (or
        straight to review when the shipping stage is skipped).

        Returns:
            Per-group results of the run
        """
        state.ensure_stage(self.batch, PipelineStage.PROCESSING)
        order = [g.id for g in self.batch.groups if g.status == GroupStatus.PENDING]

        task: PipelineTask[str] = PipelineTask(
            name="enrichment",
            process=self._enrich_group,
            max_concurrency=self.concurrency,
        )
        result = await make_runner(task).run(order)
        self._advance_after_processing()
        return result

    async def _call_enricher(self, photos: List[str]) -> Any:
        if self.timeout_seconds:
            return await asyncio.wait_for(self.enrich(photos), self.timeout_seconds)
        return await self.enrich(photos)

    async def _enrich_group(self, group_id: str, resume_stuck: bool = False) -> str:
        group = self.get_group(group_id)
        self._apply(state.begin_processing(self.batch, group_id, resume_stuck))
        self._in_flight.add(group_id)
        self._publish_progress(f"Analyzing {group.name}")

        try:
            guess = await self._call_enricher(list(group.photos))
        except asyncio.TimeoutError:
            message = f"Analysis timed out after {self.timeout_seconds} seconds"
            self._fail(group_id, message)
            raise EnrichmentError(message)
        except Exception as e:
            self._fail(group_id, f"Analysis failed: {e}")
            raise
        finally:
            self._in_flight.discard(group_id)

        if guess is None:
            message = "Analysis returned no usable result"
            self._fail(group_id, message)
            raise EnrichmentError(message)

        self._apply(state.complete_enrichment(self.batch, group_id, guess))
        self._publish_progress(f"Analyzed {group.name}")
        return self.get_group(group_id).name

    def _fail(self, group_id: str, message: str) -> None:
        logger.warning(f"Batch {self.batch.id}: group {group_id} failed: {message}")
        self._apply(state.fail_enrichment(self.batch, group_id, message))
        self._publish_progress(message)

    def _advance_after_processing(self) -> None:
        if self.batch.stage != PipelineStage.PROCESSING:
            return
        summary = self.progress()
        if not summary.is_all_complete:
            logger.info(
                f"Batch {self.batch.id}: {summary.pending + summary.processing} "
                f"groups still pending, staying in processing"
            )
            return
        if self.skip_shipping_stage:
            self._apply(state.set_stage(self.batch, PipelineStage.REVIEW))
        else:
            self._apply(state.set_stage(self.batch, PipelineStage.SHIPPING))
            self.prepare_shipping()

    async def retry_group(self, group_id: str) -> bool:
        """
        Re-run enrichment for a failed group or one stuck in processing.

        Returns:
            True when the group completed, False when it was not retried
            or failed again
        """
        state.ensure_stage(self.batch, *AFTER_GROUPING)
        group = self.get_group(group_id)
        stuck = group.status == GroupStatus.PROCESSING and group_id not in self._in_flight
        if group.is_posted or not (group.status == GroupStatus.ERROR or stuck):
            logger.warning(
                f"Batch {self.batch.id}: refused retry of group {group_id} "
                f"({group.status.value})"
            )
            return False

        try:
            await self._enrich_group(group_id, resume_stuck=stuck)
        except Exception as e:
            logger.warning(f"Batch {self.batch.id}: retry of {group_id} failed: {e}")
            return False

        if self.batch.stage in AFTER_PROCESSING and not self.skip_shipping_stage:
            self._prepare_group_shipping(self.get_group(group_id))
        self._advance_after_processing()
        return True

    # Shipping

    def _prepare_group_shipping(self, group: PhotoGroup) -> None:
        if group.status != GroupStatus.COMPLETED or group.is_posted:
            return
        data = group.listing_data
        options = group.shipping_options
        if not options:
            weight = data.weight
            if weight is None:
                weight = estimate_weight(data.category, data.title)
            options = quote(weight, data.measurements.dimensions())
        selected = group.selected_shipping or select_default_option(
            options, data.price, self.price_threshold
        )
        self._apply(state.assign_shipping(self.batch, group.id, options, selected))

    def prepare_shipping(self) -> None:
        """Quote and pre-select shipping for every completed group."""
        state.ensure_stage(self.batch, PipelineStage.SHIPPING)
        for group in list(self.batch.groups):
            self._prepare_group_shipping(group)

    def select_shipping(self, group_id: str, option_id: str) -> bool:
        state.ensure_stage(self.batch, *AFTER_PROCESSING)
        self.get_group(group_id)
        return self._apply(state.select_shipping(self.batch, group_id, option_id))

    def apply_shipping_to_matching(
        self, option_id: str, predicate: Optional[GroupPredicate] = None
    ) -> int:
        """
        Select ``option_id`` on every completed, unposted group matching
        ``predicate`` (all such groups by default).

        Returns:
            Number of groups whose selection changed
        """
        state.ensure_stage(self.batch, *AFTER_PROCESSING)
        changed = 0
        for group in list(self.batch.groups):
            if group.status != GroupStatus.COMPLETED or group.is_posted:
                continue
            if predicate is not None and not predicate(group):
                continue
            if self._apply(state.select_shipping(self.batch, group.id, option_id)):
                changed += 1
        logger.info(f"Batch {self.batch.id}: applied {option_id} to {changed} groups")
        return changed

    def complete_shipping(self) -> None:
        self._apply(state.set_stage(self.batch, PipelineStage.REVIEW))

    # Review

    def edit_listing(self, group_id: str, changes: Dict[str, Any]) -> bool:
        """Apply manual edits to a group's listing data."""
        state.ensure_stage(self.batch, *AFTER_GROUPING)
        self.get_group(group_id)
        return self._apply(state.edit_listing(self.batch, group_id, changes))

    @property
    def current_item(self) -> Optional[PhotoGroup]:
        if self.batch.stage != PipelineStage.INDIVIDUAL_REVIEW:
            return None
        return self.batch.review_group

    def open_item(self, index: int) -> bool:
        """Enter single-item review at ``index``."""
        state.ensure_stage(self.batch, *REVIEW_STAGES)
        if not 0 <= index < len(self.batch.groups):
            return False
        batch = state.set_review_index(self.batch, index)
        if batch.stage == PipelineStage.REVIEW:
            batch = state.set_stage(batch, PipelineStage.INDIVIDUAL_REVIEW)
        self._apply(batch)
        return True

    def close_review(self) -> None:
        """Return from single-item review to the batch review."""
        self._apply(state.set_stage(self.batch, PipelineStage.REVIEW))

    def _move_review(self, step: int) -> Optional[PhotoGroup]:
        state.ensure_stage(self.batch, PipelineStage.INDIVIDUAL_REVIEW)
        index = self.batch.review_index + step
        if not 0 <= index < len(self.batch.groups):
            self.close_review()
            return None
        self._apply(state.set_review_index(self.batch, index))
        return self.batch.review_group

    def next_item(self) -> Optional[PhotoGroup]:
        """Advance to the next group; None once the end was passed."""
        return self._move_review(1)

    def previous_item(self) -> Optional[PhotoGroup]:
        return self._move_review(-1)

    def skip_item(self) -> Optional[PhotoGroup]:
        return self._move_review(1)

    def approve_item(self, changes: Optional[Dict[str, Any]] = None) -> Optional[PhotoGroup]:
        """Apply ``changes`` to the current group and move on."""
        state.ensure_stage(self.batch, PipelineStage.INDIVIDUAL_REVIEW)
        group = self.batch.review_group
        if group is not None and changes:
            self._apply(state.edit_listing(self.batch, group.id, changes))
        return self._move_review(1)

    def reject_item(self, reason: str = "Rejected during review") -> Optional[PhotoGroup]:
        """Put the current group into error with ``reason`` and move on."""
        state.ensure_stage(self.batch, PipelineStage.INDIVIDUAL_REVIEW)
        group = self.batch.review_group
        if group is not None:
            self._apply(state.reject_group(self.batch, group.id, reason))
            logger.info(f"Batch {self.batch.id}: rejected group {group.id}: {reason}")
        return self._move_review(1)

    # Commit

    async def commit(
        self,
        mode: CommitMode,
        on_progress: Optional[CommitProgress] = None,
    ) -> CommitResult:
        """Save every eligible group as a draft or active listing."""
        state.ensure_stage(self.batch, *REVIEW_STAGES)
        result = await self.committer.run(self.batch.groups, mode, on_progress)
        self._apply(apply_commit(self.batch, result))
        self._publish_progress(result.message)
        return result

    async def commit_item(self, group_id: str, mode: CommitMode) -> CommitResult:
        """Save a single group through the same gate as the bulk commit."""
        state.ensure_stage(self.batch, *REVIEW_STAGES)
        group = self.get_group(group_id)
        result = await self.committer.run([group], mode)
        self._apply(apply_commit(self.batch, result))
        return result

    def finish(self) -> Batch:
        """Close the batch; every later operation raises BatchClosedError."""
        self._apply(state.close(self.batch))
        self._publish_progress("Finished")
        return self.batch
