"""Domain and persistence models for bulklist."""

from .base import DomainModel, TimestampMixin
from .batch import Batch, PipelineStage
from .group import Confidence, GroupStatus, PhotoGroup, new_group_id
from .listing import CommitMode, Listing, ListingData, Measurements
from .shipping import LOCAL_PICKUP_ID, ShippingKind, ShippingOption

__all__ = [
    "Batch",
    "CommitMode",
    "Confidence",
    "DomainModel",
    "GroupStatus",
    "LOCAL_PICKUP_ID",
    "Listing",
    "ListingData",
    "Measurements",
    "PhotoGroup",
    "PipelineStage",
    "ShippingKind",
    "ShippingOption",
    "TimestampMixin",
    "new_group_id",
]
