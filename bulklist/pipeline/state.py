"""Reducers over the batch state.

Every change to a batch goes through one of these functions. Each takes
a Batch and returns a Batch; a group is changed by swapping in an
updated copy, never by assigning its fields. An operation that was
refused returns the input batch object itself.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from bulklist.analysis import grouping
from bulklist.models.batch import Batch, PipelineStage
from bulklist.models.group import PhotoGroup
from bulklist.models.listing import ListingData
from bulklist.models.shipping import ShippingOption

from . import items
from .errors import BatchClosedError, StageTransitionError

logger = logging.getLogger(__name__)

STAGE_TRANSITIONS: Dict[PipelineStage, Set[PipelineStage]] = {
    PipelineStage.UPLOAD: {PipelineStage.GROUPING},
    PipelineStage.GROUPING: {PipelineStage.PROCESSING},
    PipelineStage.PROCESSING: {PipelineStage.SHIPPING, PipelineStage.REVIEW},
    PipelineStage.SHIPPING: {PipelineStage.REVIEW},
    PipelineStage.REVIEW: {PipelineStage.INDIVIDUAL_REVIEW},
    PipelineStage.INDIVIDUAL_REVIEW: {PipelineStage.REVIEW},
}


# Guards


def ensure_open(batch: Batch) -> None:
    if batch.is_closed:
        raise BatchClosedError(f"Batch {batch.id} is finished")


def ensure_stage(batch: Batch, *stages: PipelineStage) -> None:
    """Raise unless the batch is open and in one of ``stages``."""
    ensure_open(batch)
    if batch.stage not in stages:
        allowed = ", ".join(stage.value for stage in stages)
        raise StageTransitionError(
            f"Batch {batch.id} is in stage {batch.stage.value}, expected {allowed}"
        )


# Batch-level reducers


def set_stage(batch: Batch, stage: PipelineStage) -> Batch:
    """Move to ``stage`` if the transition is allowed."""
    ensure_open(batch)
    if stage not in STAGE_TRANSITIONS.get(batch.stage, set()):
        raise StageTransitionError(
            f"Cannot move batch {batch.id} from {batch.stage.value} to {stage.value}"
        )
    logger.info(f"Batch {batch.id}: {batch.stage.value} -> {stage.value}")
    return batch.replace(stage=stage)


def set_photos(batch: Batch, photos: Sequence[str]) -> Batch:
    ensure_stage(batch, PipelineStage.UPLOAD)
    return batch.replace(photos=list(photos))


def set_groups(batch: Batch, groups: List[PhotoGroup]) -> Batch:
    ensure_open(batch)
    if groups is batch.groups:
        return batch
    return batch.replace(groups=groups)


def set_review_index(batch: Batch, index: int) -> Batch:
    ensure_open(batch)
    if index == batch.review_index:
        return batch
    return batch.replace(review_index=index)


def close(batch: Batch) -> Batch:
    ensure_open(batch)
    logger.info(f"Batch {batch.id} finished")
    return batch.replace(is_closed=True)


# Group reducers


def replace_group(batch: Batch, group: PhotoGroup) -> Batch:
    """Swap in ``group`` for the group with the same id."""
    ensure_open(batch)
    index = batch.index_of(group.id)
    if index < 0 or batch.groups[index] is group:
        return batch
    groups = list(batch.groups)
    groups[index] = group
    return batch.replace(groups=groups)


def update_group(
    batch: Batch,
    group_id: str,
    update: Callable[..., PhotoGroup],
    *args: Any,
    **kwargs: Any,
) -> Batch:
    """Apply ``update(group, *args, **kwargs)`` to one group."""
    ensure_open(batch)
    group = batch.get_group(group_id)
    if group is None:
        logger.debug(f"Batch {batch.id} has no group {group_id}")
        return batch
    return replace_group(batch, update(group, *args, **kwargs))


def _regroup(batch: Batch, operation: str, *args: Any) -> Batch:
    ensure_open(batch)
    function = getattr(grouping, operation)
    groups = function(batch.groups, *args)
    if groups is batch.groups:
        logger.warning(f"Batch {batch.id}: refused {operation} {args}")
        return batch
    return batch.replace(groups=groups)


def create_group(batch: Batch, name: Optional[str] = None) -> Batch:
    return _regroup(batch, "create_group", name)


def delete_group(batch: Batch, group_id: str) -> Batch:
    return _regroup(batch, "delete_group", group_id)


def rename_group(batch: Batch, group_id: str, name: str) -> Batch:
    return _regroup(batch, "rename_group", group_id, name)


def merge_groups(batch: Batch, group_ids: Sequence[str]) -> Batch:
    return _regroup(batch, "merge_groups", list(group_ids))


def split_group(batch: Batch, group_id: str) -> Batch:
    return _regroup(batch, "split_group", group_id)


def move_photo(batch: Batch, source_id: str, target_id: str, photo_index: int) -> Batch:
    return _regroup(batch, "move_photo", source_id, target_id, photo_index)


def prune_empty_groups(batch: Batch) -> Batch:
    ensure_open(batch)
    return set_groups(batch, grouping.prune_empty_groups(batch.groups))


# Item status reducers


def begin_processing(batch: Batch, group_id: str, resume_stuck: bool = False) -> Batch:
    return update_group(batch, group_id, items.begin_processing, resume_stuck)


def complete_enrichment(batch: Batch, group_id: str, guess: ListingData) -> Batch:
    return update_group(batch, group_id, items.complete_enrichment, guess)


def fail_enrichment(batch: Batch, group_id: str, message: str) -> Batch:
    return update_group(batch, group_id, items.fail_enrichment, message)


def reject_group(batch: Batch, group_id: str, reason: str) -> Batch:
    return update_group(batch, group_id, items.reject, reason)


# Edit reducers


def edit_listing(batch: Batch, group_id: str, changes: Dict[str, Any]) -> Batch:
    return update_group(batch, group_id, items.edit_listing, changes)


def select_shipping(batch: Batch, group_id: str, option_id: str) -> Batch:
    return update_group(batch, group_id, items.select_shipping, option_id)


def assign_shipping(
    batch: Batch,
    group_id: str,
    options: List[ShippingOption],
    selected: Optional[ShippingOption] = None,
) -> Batch:
    return update_group(batch, group_id, items.assign_shipping, options, selected)


def mark_posted(batch: Batch, group_id: str, listing_id: Optional[str]) -> Batch:
    return update_group(batch, group_id, items.mark_posted, listing_id)


def record_draft(batch: Batch, group_id: str, listing_id: Optional[str]) -> Batch:
    return update_group(batch, group_id, items.record_draft, listing_id)
