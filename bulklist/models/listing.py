"""Listing models - structured listing data and its persisted record."""

import re
import uuid as uuid_module
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import Field as PydanticField
from pydantic import field_validator
from sqlalchemy import JSON, Text
from sqlmodel import Column, Field

from .base import DomainModel, TimestampMixin

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


class CommitMode(str, Enum):
    """How a listing is persisted."""

    DRAFT = "draft"
    ACTIVE = "active"


class Measurements(DomainModel):
    """Physical attributes of an item (inches and pounds)."""

    length: Optional[float] = PydanticField(default=None, ge=0)
    width: Optional[float] = PydanticField(default=None, ge=0)
    height: Optional[float] = PydanticField(default=None, ge=0)
    weight: Optional[float] = PydanticField(default=None, ge=0)

    @field_validator("length", "width", "height", "weight", mode="before")
    @classmethod
    def _parse_number(cls, value: Any) -> Any:
        # Enrichment often answers with strings such as "1.5lb" or "12 in"
        if value is None or isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            match = _NUMBER.search(value)
            return float(match.group()) if match else None
        return value

    def dimensions(self) -> Tuple[float, float, float]:
        """Length, width and height with unknown values as 0."""
        return (self.length or 0.0, self.width or 0.0, self.height or 0.0)

    def merged_with(self, other: "Measurements") -> "Measurements":
        """Overlay the known values of ``other`` onto these measurements."""
        return self.replace(**other.model_dump(exclude_none=True))


class ListingData(DomainModel):
    """Listing fields produced by enrichment and edited by the user."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    category_id: Optional[str] = None
    condition: Optional[str] = None
    measurements: Measurements = PydanticField(default_factory=Measurements)
    keywords: List[str] = PydanticField(default_factory=list)
    photos: List[str] = PydanticField(default_factory=list)
    price_research: Optional[str] = None

    # Provenance
    purchase_price: Optional[float] = None
    purchase_date: Optional[date] = None
    source_location: Optional[str] = None
    source_type: Optional[str] = None

    # Consignment
    is_consignment: bool = False
    consignment_percentage: Optional[float] = None
    consignor_name: Optional[str] = None
    consignor_contact: Optional[str] = None

    # Apparel
    clothing_size: Optional[str] = None
    shoe_size: Optional[str] = None
    gender: Optional[str] = None
    age_group: Optional[str] = None

    features: List[str] = PydanticField(default_factory=list)
    includes: List[str] = PydanticField(default_factory=list)
    defects: List[str] = PydanticField(default_factory=list)

    @property
    def weight(self) -> Optional[float]:
        return self.measurements.weight

    def merged_with(self, guess: "ListingData") -> "ListingData":
        """Merge an enrichment guess into this data.

        Only fields the guess explicitly set to a non-None value override
        the current ones; measurements merge value by value.
        """
        explicit = guess.model_fields_set - {"measurements"}
        updates = {
            name: getattr(guess, name)
            for name in explicit
            if getattr(guess, name) is not None
        }
        if "measurements" in guess.model_fields_set:
            updates["measurements"] = self.measurements.merged_with(
                guess.measurements
            )
        return self.replace(**updates)

    def net_profit(self) -> Optional[float]:
        """Listing price minus purchase price, when both are known."""
        if self.price is None or self.purchase_price is None:
            return None
        return round(self.price - self.purchase_price, 2)

    def profit_margin(self) -> Optional[float]:
        """Net profit as a percentage of the purchase price."""
        profit = self.net_profit()
        if profit is None:
            return None
        if not self.purchase_price:
            return 0.0
        return round(profit / self.purchase_price * 100, 2)


class Listing(TimestampMixin, table=True):
    """Persisted listing record written by the listing store."""

    __tablename__ = "listings"

    id: str = Field(
        default_factory=lambda: str(uuid_module.uuid4()),
        primary_key=True,
    )
    status: str = Field(default=CommitMode.DRAFT.value, max_length=20)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    price: Optional[float] = None
    category: Optional[str] = Field(default=None, max_length=255)
    category_id: Optional[str] = Field(default=None, max_length=100)
    condition: Optional[str] = Field(default=None, max_length=100)
    measurements: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, default={})
    )
    keywords: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, default=[])
    )
    photos: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, default=[])
    )
    price_research: Optional[str] = None
    purchase_price: Optional[float] = None
    purchase_date: Optional[date] = None
    source_location: Optional[str] = None
    source_type: Optional[str] = None
    is_consignment: bool = False
    consignment_percentage: Optional[float] = None
    consignor_name: Optional[str] = None
    consignor_contact: Optional[str] = None
    details: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, default={})
    )
    shipping_cost: float = 0.0
    cost_basis: float = 0.0
    net_profit: Optional[float] = None
    profit_margin: Optional[float] = None
    listed_date: Optional[date] = None
