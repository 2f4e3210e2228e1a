"""PhotoGroup model - the photos of one physical item plus derived listing data."""

import uuid as uuid_module
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from .base import DomainModel
from .listing import ListingData
from .shipping import ShippingOption


class GroupStatus(str, Enum):
    """Enrichment lifecycle of a group."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class Confidence(str, Enum):
    """How certain grouping is that the photos show one item."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def new_group_id() -> str:
    """Generate a group id that is never reused within a process."""
    return f"grp-{uuid_module.uuid4().hex}"


class PhotoGroup(DomainModel):
    """One candidate item in a batch."""

    id: str = Field(default_factory=new_group_id)
    photos: List[str] = Field(default_factory=list)
    name: str = ""
    confidence: Confidence = Confidence.MEDIUM
    status: GroupStatus = GroupStatus.PENDING
    status_message: Optional[str] = None
    listing_data: Optional[ListingData] = None
    shipping_options: Optional[List[ShippingOption]] = None
    selected_shipping: Optional[ShippingOption] = None
    is_posted: bool = False
    listing_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "PhotoGroup":
        if self.status == GroupStatus.COMPLETED and self.listing_data is None:
            raise ValueError("completed group requires listing_data")
        if self.selected_shipping is not None and not self.offers(
            self.selected_shipping.id
        ):
            raise ValueError("selected_shipping must be one of shipping_options")
        if self.is_posted and (
            self.status != GroupStatus.COMPLETED or self.selected_shipping is None
        ):
            raise ValueError("posted group must be completed with shipping selected")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.photos

    @property
    def title(self) -> Optional[str]:
        return self.listing_data.title if self.listing_data else None

    @property
    def price(self) -> float:
        if self.listing_data and self.listing_data.price:
            return self.listing_data.price
        return 0.0

    @property
    def needs_review(self) -> bool:
        return self.confidence != Confidence.HIGH

    def offers(self, option_id: str) -> Optional[ShippingOption]:
        """Return the shipping option with ``option_id`` if this group offers it."""
        for option in self.shipping_options or []:
            if option.id == option_id:
                return option
        return None
