"""Pure functions for shipping cost calculation.

Turns an item's physical attributes into an ordered list of shipping
offers. Local pickup is always offered first at zero cost; carrier tiers
follow in declared order, each priced from a base rate plus a surcharge
for every unit of billable weight above the first.
"""

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import List, Optional, Sequence, Tuple

from bulklist.config import settings
from bulklist.models.shipping import LOCAL_PICKUP_ID, ShippingKind, ShippingOption

GROUND_ID = "usps-ground"
PRIORITY_ID = "usps-priority"
EXPRESS_ID = "usps-express"

QUARTER = Decimal("0.25")

Dimensions = Tuple[Optional[float], Optional[float], Optional[float]]


@dataclass(frozen=True)
class ServiceTier:
    """A carrier service level and its rate card."""

    id: str
    name: str
    base_rate: Decimal
    per_unit_rate: Decimal
    days: str
    description: str = ""


SERVICE_TIERS: Tuple[ServiceTier, ...] = (
    ServiceTier(
        id=GROUND_ID,
        name="USPS Ground Advantage",
        base_rate=Decimal("5.75"),
        per_unit_rate=Decimal("1.25"),
        days="3-5 business days",
        description="Reliable ground shipping with tracking",
    ),
    ServiceTier(
        id=PRIORITY_ID,
        name="USPS Priority Mail",
        base_rate=Decimal("9.25"),
        per_unit_rate=Decimal("2.00"),
        days="1-3 business days",
        description="Faster delivery with priority handling",
    ),
    ServiceTier(
        id=EXPRESS_ID,
        name="USPS Priority Mail Express",
        base_rate=Decimal("26.50"),
        per_unit_rate=Decimal("3.50"),
        days="1-2 business days",
        description="Fastest delivery option available",
    ),
)

LOCAL_PICKUP = ShippingOption(
    id=LOCAL_PICKUP_ID,
    name="Local Pickup",
    cost=0.0,
    kind=ShippingKind.LOCAL_PICKUP,
    days="Same day",
    description="Buyer picks up item in person - no shipping required",
)


def _non_negative(value: Optional[float]) -> float:
    if value is None or value != value:  # None or NaN
        return 0.0
    return max(0.0, float(value))


def dimensional_weight(
    length: Optional[float],
    width: Optional[float],
    height: Optional[float],
    divisor: Optional[float] = None,
) -> float:
    """Volume divided by the dimensional divisor; unknown sides count as 0."""
    divisor = divisor if divisor is not None else settings.dimensional_divisor
    if divisor <= 0:
        raise ValueError("Dimensional divisor must be positive")
    volume = _non_negative(length) * _non_negative(width) * _non_negative(height)
    return volume / divisor


def billable_weight(
    weight: Optional[float],
    dimensions: Optional[Dimensions] = None,
    divisor: Optional[float] = None,
) -> float:
    """The greater of actual and dimensional weight."""
    length, width, height = dimensions or (None, None, None)
    return max(
        _non_negative(weight),
        dimensional_weight(length, width, height, divisor),
    )


def round_up_to_quarter(amount: Decimal) -> Decimal:
    """Round a currency amount up to the next 0.25."""
    return (amount / QUARTER).to_integral_value(rounding=ROUND_CEILING) * QUARTER


def tier_cost(tier: ServiceTier, billable: float) -> float:
    """Price one tier for the given billable weight."""
    cost = tier.base_rate
    if billable > 1:
        cost += tier.per_unit_rate * (Decimal(str(billable)) - 1)
    return float(round_up_to_quarter(cost))


def quote(
    weight: Optional[float],
    dimensions: Optional[Dimensions] = None,
    tiers: Sequence[ServiceTier] = SERVICE_TIERS,
    divisor: Optional[float] = None,
) -> List[ShippingOption]:
    """Compute shipping offers for an item.

    Args:
        weight: Actual weight in pounds (None or negative counts as 0)
        dimensions: (length, width, height) in inches, any may be None
        tiers: Carrier tiers to price, in display order
        divisor: Dimensional weight divisor (defaults to settings)

    Returns:
        Local pickup followed by one option per tier
    """
    billable = billable_weight(weight, dimensions, divisor)
    options = [LOCAL_PICKUP]
    for tier in tiers:
        options.append(
            ShippingOption(
                id=tier.id,
                name=tier.name,
                cost=tier_cost(tier, billable),
                kind=ShippingKind.CARRIER,
                days=tier.days,
                description=tier.description,
            )
        )
    return options


def select_default_option(
    options: Sequence[ShippingOption],
    price: Optional[float],
    threshold: Optional[float] = None,
) -> Optional[ShippingOption]:
    """Pick a shipping option on the seller's behalf.

    Items priced above the threshold default to priority, everything else
    to ground. Falls back to the first carrier option, then to whatever
    is offered.
    """
    if not options:
        return None
    threshold = threshold if threshold is not None else settings.priority_price_threshold
    preferred = PRIORITY_ID if (price or 0) > threshold else GROUND_ID
    for option in options:
        if option.id == preferred:
            return option
    return options[1] if len(options) > 1 else options[0]


def shipping_warning(option: ShippingOption, item_price: Optional[float]) -> Optional[str]:
    """Flag shipping that is expensive relative to the item price.

    Returns:
        "high" above 40% of the price, "medium" above 25%, otherwise None
    """
    if not item_price or item_price <= 0:
        return None
    percentage = option.cost / item_price * 100
    if percentage > 40:
        return "high"
    if percentage > 25:
        return "medium"
    return None


def estimate_weight(category: Optional[str] = None, title: Optional[str] = None) -> float:
    """Rough weight in pounds for an item with no measured weight."""
    category = (category or "").lower()
    title = (title or "").lower()

    if "clothing" in category or "shirt" in title or "dress" in title:
        return 0.5
    if "shoes" in category or "shoe" in title:
        return 2.0
    if "electronics" in category:
        return 3.0
    if "books" in category:
        return 1.0
    return 1.0
