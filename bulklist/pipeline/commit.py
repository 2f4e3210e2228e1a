"""
Bulk commit orchestrator.

Saves every eligible group of a batch through the listing store, one
group at a time in batch order. A group that fails to save is logged
and reported, and the remaining groups are still attempted. Groups are
only marked as posted (or as saved drafts) after the loop has finished.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from bulklist.analysis.validation import check_for_mode
from bulklist.config import settings
from bulklist.models.batch import Batch
from bulklist.models.group import PhotoGroup
from bulklist.models.listing import CommitMode, ListingData

from . import state
from .contracts import ListingSaver
from .errors import InvalidStatusTransition, PersistenceError
from .framework import PipelineTask, TaskRunner

logger = logging.getLogger(__name__)

# on_progress(attempted, total, group_id, succeeded)
CommitProgress = Callable[[int, int, str, bool], None]


@dataclass(frozen=True)
class ItemFailure:
    """Why one group was skipped or failed to save."""

    group_id: str
    name: str
    reasons: List[str]


@dataclass
class CommitResult:
    """Aggregate outcome of a commit."""

    mode: CommitMode
    attempted: int = 0
    succeeded: int = 0
    listing_ids: Dict[str, Optional[str]] = field(default_factory=dict)
    failures: List[ItemFailure] = field(default_factory=list)
    skipped: List[ItemFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.succeeded > 0

    @property
    def no_eligible_items(self) -> bool:
        return self.attempted == 0

    @property
    def message(self) -> str:
        if self.no_eligible_items:
            action = "post" if self.mode == CommitMode.ACTIVE else "save as draft"
            reasons = sorted({r for item in self.skipped for r in item.reasons})
            detail = f": {'; '.join(reasons)}" if reasons else ""
            return f"No items are ready to {action}{detail}"
        if self.succeeded == 0:
            return f"All {self.attempted} items failed to save"
        return f"{self.succeeded} of {self.attempted} succeeded"


class BulkCommitOrchestrator:
    """Commit the ready groups of a batch through a listing saver."""

    def __init__(
        self,
        save: ListingSaver,
        default_draft_shipping_cost: Optional[float] = None,
    ) -> None:
        """
        Args:
            save: Persistence collaborator
            default_draft_shipping_cost: Shipping cost sent for drafts
                without a selected shipping option
        """
        self.save = save
        self.default_draft_shipping_cost = (
            default_draft_shipping_cost
            if default_draft_shipping_cost is not None
            else settings.default_draft_shipping_cost
        )

    def eligible(
        self, groups: Sequence[PhotoGroup], mode: CommitMode
    ) -> Tuple[List[PhotoGroup], List[ItemFailure]]:
        """Split groups into (eligible, skipped) for ``mode``."""
        ready: List[PhotoGroup] = []
        skipped: List[ItemFailure] = []
        for group in groups:
            check = check_for_mode(group, mode)
            if check.is_valid:
                ready.append(group)
            else:
                skipped.append(ItemFailure(group.id, group.name, check.errors))
        return ready, skipped

    def shipping_cost(self, group: PhotoGroup) -> float:
        if group.selected_shipping is not None:
            return group.selected_shipping.cost
        return self.default_draft_shipping_cost

    async def run(
        self,
        groups: Sequence[PhotoGroup],
        mode: CommitMode,
        on_progress: Optional[CommitProgress] = None,
    ) -> CommitResult:
        """
        Save every eligible group, sequentially and in order.

        Args:
            groups: Groups in batch order
            mode: Draft or active
            on_progress: Optional callback after each attempted group

        Returns:
            CommitResult; groups themselves are not modified here
        """
        ready, skipped = self.eligible(groups, mode)
        result = CommitResult(mode=mode, skipped=skipped)

        if not ready:
            logger.warning(f"Commit ({mode.value}): {result.message}")
            return result

        by_id = {group.id: group for group in ready}
        attempted = 0

        async def _save(group_id: str) -> Optional[str]:
            group = by_id[group_id]
            data = (group.listing_data or ListingData()).replace(
                photos=list(group.photos)
            )
            saved = await self.save(
                data, self.shipping_cost(group), mode, group.listing_id
            )
            if not saved.success:
                raise PersistenceError(saved.error or "Save failed")
            return saved.listing_id

        def _done(group_id: str, succeeded: bool) -> None:
            nonlocal attempted
            attempted += 1
            if on_progress is not None:
                on_progress(attempted, len(ready), group_id, succeeded)

        task: PipelineTask[str] = PipelineTask(
            name=f"commit-{mode.value}",
            process=_save,
            on_item_done=_done,
        )
        run = await TaskRunner(task).run([group.id for group in ready])

        result.attempted = run.total_items
        result.succeeded = run.success_count
        result.listing_ids = dict(run.results)
        for error in run.errors:
            group = by_id[error["item"]]
            result.failures.append(ItemFailure(group.id, group.name, [error["error"]]))

        logger.info(f"Commit ({mode.value}) finished: {result.message}")
        return result


def apply_commit(batch: Batch, result: CommitResult) -> Batch:
    """Mark the groups saved by ``result`` on the batch.

    Each group is applied on its own. A group changed during the commit so
    that it can no longer be posted keeps the returned listing id, so a
    later save updates that listing instead of creating another one.
    """
    for group_id, listing_id in result.listing_ids.items():
        if result.mode == CommitMode.ACTIVE:
            try:
                batch = state.mark_posted(batch, group_id, listing_id)
            except InvalidStatusTransition as e:
                logger.warning(f"Saved listing {listing_id} not marked posted: {e}")
                batch = state.update_group(
                    batch, group_id, PhotoGroup.replace, listing_id=listing_id
                )
        else:
            batch = state.record_draft(batch, group_id, listing_id)
    return batch
