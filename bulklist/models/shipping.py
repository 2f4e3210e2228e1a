"""Shipping option model - one offer computed by the shipping engine."""

from enum import Enum

from pydantic import Field

from .base import DomainModel

LOCAL_PICKUP_ID = "local-pickup"


class ShippingKind(str, Enum):
    """Kind of shipping offer."""

    LOCAL_PICKUP = "local_pickup"
    CARRIER = "carrier"


class ShippingOption(DomainModel):
    """A priced shipping offer for a single item."""

    id: str
    name: str
    cost: float = Field(ge=0)
    kind: ShippingKind = ShippingKind.CARRIER
    days: str = ""
    description: str = ""

    @property
    def is_local_pickup(self) -> bool:
        return self.kind == ShippingKind.LOCAL_PICKUP
