"""Batches API router - drives a bulk listing pipeline over HTTP."""

import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from ...db import init_db
from ...models.batch import Batch
from ...models.group import PhotoGroup
from ...models.listing import CommitMode
from ...pipeline.commit import CommitResult
from ...pipeline.controller import BulkListingPipeline
from ...pipeline.progress import progress_tracker
from ...services.enrichment import SimulatedEnricher
from ...services.persistence import ListingStore
from ..registry import BatchRegistry, registry

logger = logging.getLogger(__name__)

router = APIRouter()

PipelineFactory = Callable[[], BulkListingPipeline]


def default_pipeline_factory() -> BulkListingPipeline:
    """Pipeline wired to the simulated enricher and the SQL listing store."""
    init_db()
    return BulkListingPipeline(
        SimulatedEnricher(),
        ListingStore(),
        tracker=progress_tracker,
    )


def get_registry() -> BatchRegistry:
    return registry


def get_pipeline_factory() -> PipelineFactory:
    return default_pipeline_factory


def get_pipeline(
    batch_id: str, batches: BatchRegistry = Depends(get_registry)
) -> BulkListingPipeline:
    pipeline = batches.get(batch_id)
    if pipeline is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return pipeline


def _require(applied: bool, detail: str) -> None:
    if not applied:
        raise HTTPException(status_code=409, detail=detail)


# Request / response models


class BatchCreateRequest(BaseModel):
    """New batch with its uploaded photo handles."""

    photos: List[str] = []


class BatchResponse(BaseModel):
    """Batch state plus review statistics."""

    batch: Batch
    progress: Dict[str, Any]
    high_confidence_count: int
    needs_review_count: int


class GroupCreateRequest(BaseModel):
    name: Optional[str] = None


class GroupRenameRequest(BaseModel):
    name: str


class MergeRequest(BaseModel):
    group_ids: List[str]


class MoveRequest(BaseModel):
    source_id: str
    target_id: str
    photo_index: int


class ListingEditRequest(BaseModel):
    changes: Dict[str, Any]


class ShippingSelectRequest(BaseModel):
    option_id: str


class ShippingApplyRequest(BaseModel):
    """Apply one option to every completed group priced at least ``min_price``."""

    option_id: str
    min_price: Optional[float] = None


class ReviewOpenRequest(BaseModel):
    index: int


class ApproveRequest(BaseModel):
    changes: Dict[str, Any] = {}


class RejectRequest(BaseModel):
    reason: str = "Rejected during review"


class CommitRequest(BaseModel):
    mode: CommitMode = CommitMode.DRAFT


class ItemFailureResponse(BaseModel):
    group_id: str
    name: str
    reasons: List[str]


class CommitResponse(BaseModel):
    """Outcome of a commit."""

    success: bool
    message: str
    mode: CommitMode
    attempted: int
    succeeded: int
    listing_ids: Dict[str, Optional[str]]
    failures: List[ItemFailureResponse]
    skipped: List[ItemFailureResponse]


class ReviewResponse(BaseModel):
    """Current single-item review position."""

    stage: str
    review_index: int
    group: Optional[PhotoGroup] = None


def _batch_response(pipeline: BulkListingPipeline) -> BatchResponse:
    batch = pipeline.batch
    return BatchResponse(
        batch=batch,
        progress=pipeline.progress().to_dict(),
        high_confidence_count=batch.high_confidence_count,
        needs_review_count=batch.needs_review_count,
    )


def _commit_response(result: CommitResult) -> CommitResponse:
    return CommitResponse(
        success=result.success,
        message=result.message,
        mode=result.mode,
        attempted=result.attempted,
        succeeded=result.succeeded,
        listing_ids=result.listing_ids,
        failures=[ItemFailureResponse(**asdict(item)) for item in result.failures],
        skipped=[ItemFailureResponse(**asdict(item)) for item in result.skipped],
    )


def _review_response(
    pipeline: BulkListingPipeline, group: Optional[PhotoGroup]
) -> ReviewResponse:
    return ReviewResponse(
        stage=pipeline.stage.value,
        review_index=pipeline.batch.review_index,
        group=group,
    )


# Batch lifecycle


@router.post("", response_model=BatchResponse, status_code=201)
async def create_batch(
    request: BatchCreateRequest,
    batches: BatchRegistry = Depends(get_registry),
    factory: PipelineFactory = Depends(get_pipeline_factory),
):
    """Start a batch from uploaded photo handles."""
    pipeline = factory()
    pipeline.add_photos(request.photos)
    batches.add(pipeline)
    return _batch_response(pipeline)


@router.get("")
async def list_batches(batches: BatchRegistry = Depends(get_registry)):
    """Ids of the batches held by this process."""
    return {"batch_ids": batches.batch_ids()}


@router.get("/{batch_id}", response_model=BatchResponse)
async def get_batch(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    """Get batch state."""
    return _batch_response(pipeline)


@router.get("/{batch_id}/progress")
async def get_progress(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    """Processing progress of a batch."""
    last = progress_tracker.get(pipeline.batch_id) or {}
    return {
        "batch_id": pipeline.batch_id,
        "stage": pipeline.stage.value,
        "progress": pipeline.progress().to_dict(),
        "message": last.get("message", ""),
    }


@router.post("/{batch_id}/finish", response_model=BatchResponse)
async def finish_batch(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    """Close a batch; it stays readable but accepts no more operations."""
    pipeline.finish()
    return _batch_response(pipeline)


# Grouping


@router.post("/{batch_id}/grouping", response_model=BatchResponse)
async def start_grouping(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    """Partition the uploaded photos into groups."""
    pipeline.start_grouping()
    return _batch_response(pipeline)


@router.post("/{batch_id}/groups", response_model=BatchResponse, status_code=201)
async def create_group(
    request: GroupCreateRequest,
    pipeline: BulkListingPipeline = Depends(get_pipeline),
):
    """Add an empty group."""
    pipeline.create_group(request.name)
    return _batch_response(pipeline)


@router.post("/{batch_id}/groups/merge", response_model=BatchResponse)
async def merge_groups(
    request: MergeRequest, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Merge groups in selection order."""
    _require(
        pipeline.merge_groups(request.group_ids),
        "Merge needs at least two known, unposted groups",
    )
    return _batch_response(pipeline)


@router.post("/{batch_id}/groups/move", response_model=BatchResponse)
async def move_photo(
    request: MoveRequest, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Move one photo between groups."""
    _require(
        pipeline.move_photo(request.source_id, request.target_id, request.photo_index),
        "Photo could not be moved",
    )
    return _batch_response(pipeline)


@router.patch("/{batch_id}/groups/{group_id}", response_model=BatchResponse)
async def rename_group(
    group_id: str,
    request: GroupRenameRequest,
    pipeline: BulkListingPipeline = Depends(get_pipeline),
):
    """Rename a group."""
    _require(pipeline.rename_group(group_id, request.name), "Group was not renamed")
    return _batch_response(pipeline)


@router.delete("/{batch_id}/groups/{group_id}", response_model=BatchResponse)
async def delete_group(
    group_id: str, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Delete a group together with its photos."""
    _require(pipeline.delete_group(group_id), "Group was not deleted")
    return _batch_response(pipeline)


@router.post("/{batch_id}/groups/{group_id}/split", response_model=BatchResponse)
async def split_group(
    group_id: str, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Split a group at its midpoint."""
    _require(pipeline.split_group(group_id), "Split needs a group with two or more photos")
    return _batch_response(pipeline)


@router.post("/{batch_id}/confirm", response_model=BatchResponse)
async def confirm_groups(
    background_tasks: BackgroundTasks,
    pipeline: BulkListingPipeline = Depends(get_pipeline),
):
    """Confirm the grouping; enrichment runs in the background."""
    pipeline.confirm_groups()
    background_tasks.add_task(pipeline.run_processing)
    return _batch_response(pipeline)


# Processing and editing


@router.post("/{batch_id}/groups/{group_id}/retry", response_model=BatchResponse)
async def retry_group(
    group_id: str, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Re-run enrichment for a failed or stuck group."""
    await pipeline.retry_group(group_id)
    return _batch_response(pipeline)


@router.patch("/{batch_id}/groups/{group_id}/listing", response_model=BatchResponse)
async def edit_listing(
    group_id: str,
    request: ListingEditRequest,
    pipeline: BulkListingPipeline = Depends(get_pipeline),
):
    """Edit listing fields of a group."""
    _require(
        pipeline.edit_listing(group_id, request.changes),
        "Group cannot be edited right now",
    )
    return _batch_response(pipeline)


# Shipping


@router.put("/{batch_id}/groups/{group_id}/shipping", response_model=BatchResponse)
async def select_shipping(
    group_id: str,
    request: ShippingSelectRequest,
    pipeline: BulkListingPipeline = Depends(get_pipeline),
):
    """Select one of a group's shipping options."""
    group = pipeline.get_group(group_id)
    if group.selected_shipping is None or group.selected_shipping.id != request.option_id:
        _require(
            pipeline.select_shipping(group_id, request.option_id),
            f"Shipping option {request.option_id} is not available",
        )
    return _batch_response(pipeline)


@router.post("/{batch_id}/shipping/apply")
async def apply_shipping(
    request: ShippingApplyRequest,
    pipeline: BulkListingPipeline = Depends(get_pipeline),
):
    """Select one shipping option on many groups at once."""
    predicate = None
    if request.min_price is not None:
        min_price = request.min_price
        predicate = lambda group: group.price >= min_price  # noqa: E731
    updated = pipeline.apply_shipping_to_matching(request.option_id, predicate)
    return {"updated": updated, "batch": _batch_response(pipeline)}


@router.post("/{batch_id}/shipping/complete", response_model=BatchResponse)
async def complete_shipping(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    """Finish the shipping stage and enter review."""
    pipeline.complete_shipping()
    return _batch_response(pipeline)


# Review


@router.post("/{batch_id}/review/open", response_model=ReviewResponse)
async def open_item(
    request: ReviewOpenRequest, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Start single-item review at an index."""
    _require(pipeline.open_item(request.index), f"No group at index {request.index}")
    return _review_response(pipeline, pipeline.current_item)


@router.post("/{batch_id}/review/close", response_model=ReviewResponse)
async def close_review(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    """Return to the batch review."""
    pipeline.close_review()
    return _review_response(pipeline, None)


@router.post("/{batch_id}/review/next", response_model=ReviewResponse)
async def next_item(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    return _review_response(pipeline, pipeline.next_item())


@router.post("/{batch_id}/review/previous", response_model=ReviewResponse)
async def previous_item(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    return _review_response(pipeline, pipeline.previous_item())


@router.post("/{batch_id}/review/skip", response_model=ReviewResponse)
async def skip_item(pipeline: BulkListingPipeline = Depends(get_pipeline)):
    return _review_response(pipeline, pipeline.skip_item())


@router.post("/{batch_id}/review/approve", response_model=ReviewResponse)
async def approve_item(
    request: ApproveRequest, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Apply edits to the current group and move on."""
    return _review_response(pipeline, pipeline.approve_item(request.changes))


@router.post("/{batch_id}/review/reject", response_model=ReviewResponse)
async def reject_item(
    request: RejectRequest, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Reject the current group and move on."""
    return _review_response(pipeline, pipeline.reject_item(request.reason))


# Commit


@router.post("/{batch_id}/commit", response_model=CommitResponse)
async def commit_batch(
    request: CommitRequest, pipeline: BulkListingPipeline = Depends(get_pipeline)
):
    """Save every eligible group as a draft or active listing."""
    result = await pipeline.commit(request.mode)
    return _commit_response(result)


@router.post("/{batch_id}/groups/{group_id}/commit", response_model=CommitResponse)
async def commit_item(
    group_id: str,
    request: CommitRequest,
    pipeline: BulkListingPipeline = Depends(get_pipeline),
):
    """Save a single group."""
    result = await pipeline.commit_item(group_id, request.mode)
    return _commit_response(result)
