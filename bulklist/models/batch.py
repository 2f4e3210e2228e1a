"""Batch model - the root state of one bulk upload session."""

import uuid as uuid_module
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import DomainModel
from .group import PhotoGroup


class PipelineStage(str, Enum):
    """Stage of the bulk listing pipeline."""

    UPLOAD = "upload"
    GROUPING = "grouping"
    PROCESSING = "processing"
    SHIPPING = "shipping"
    REVIEW = "review"
    INDIVIDUAL_REVIEW = "individual-review"


class Batch(DomainModel):
    """Groups of one upload session plus the current pipeline stage.

    A batch is never persisted; only its listings are, through the
    commit orchestrator.
    """

    id: str = Field(default_factory=lambda: str(uuid_module.uuid4()))
    photos: List[str] = Field(default_factory=list)
    groups: List[PhotoGroup] = Field(default_factory=list)
    stage: PipelineStage = PipelineStage.UPLOAD
    review_index: int = 0
    is_closed: bool = False

    def get_group(self, group_id: str) -> Optional[PhotoGroup]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def index_of(self, group_id: str) -> int:
        for index, group in enumerate(self.groups):
            if group.id == group_id:
                return index
        return -1

    @property
    def group_ids(self) -> List[str]:
        return [group.id for group in self.groups]

    @property
    def review_group(self) -> Optional[PhotoGroup]:
        """Group under single-item review, if the index is in range."""
        if 0 <= self.review_index < len(self.groups):
            return self.groups[self.review_index]
        return None

    @property
    def high_confidence_count(self) -> int:
        return sum(1 for group in self.groups if not group.needs_review)

    @property
    def needs_review_count(self) -> int:
        return sum(1 for group in self.groups if group.needs_review)
