"""Item state machine - status lifecycle of one photo group.

    pending -> processing -> completed | error
    error -> processing          (retry)
    pending | completed -> error (rejected during review)

Status changes outside these edges raise InvalidStatusTransition. Edits
and shipping selection never change status; they are refused (the same
group object is returned) while the group is processing or posted.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import ValidationError

from bulklist.analysis.shipping import quote
from bulklist.models.group import GroupStatus, PhotoGroup
from bulklist.models.listing import ListingData
from bulklist.models.shipping import ShippingOption

from .errors import InvalidListingEdit, InvalidStatusTransition

logger = logging.getLogger(__name__)

Quoter = Callable[..., List[ShippingOption]]

TRANSITIONS: Dict[GroupStatus, Set[GroupStatus]] = {
    GroupStatus.PENDING: {GroupStatus.PROCESSING, GroupStatus.ERROR},
    GroupStatus.PROCESSING: {GroupStatus.COMPLETED, GroupStatus.ERROR},
    GroupStatus.ERROR: {GroupStatus.PROCESSING},
    GroupStatus.COMPLETED: {GroupStatus.ERROR},
}


def can_transition(current: GroupStatus, target: GroupStatus) -> bool:
    return target in TRANSITIONS.get(current, set())


def _transition(group: PhotoGroup, target: GroupStatus, **changes: Any) -> PhotoGroup:
    if group.is_posted:
        raise InvalidStatusTransition(f"Group {group.id} is posted and immutable")
    if not can_transition(group.status, target):
        raise InvalidStatusTransition(
            f"Group {group.id} cannot go from {group.status.value} to {target.value}"
        )
    return group.replace(status=target, **changes)


def is_editable(group: PhotoGroup) -> bool:
    """Whether manual edits may be applied to the group right now."""
    return not group.is_posted and group.status != GroupStatus.PROCESSING


def begin_processing(group: PhotoGroup, resume_stuck: bool = False) -> PhotoGroup:
    """Enter processing; existing listing data is kept as a fallback.

    Args:
        group: Group to process
        resume_stuck: Allow restarting a group left in processing by an
            enrichment call that never came back
    """
    if resume_stuck and group.status == GroupStatus.PROCESSING and not group.is_posted:
        return group.replace(status_message="Analyzing photos...")
    return _transition(
        group, GroupStatus.PROCESSING, status_message="Analyzing photos..."
    )


def _reprice_selection(
    selected: Optional[ShippingOption], options: List[ShippingOption]
) -> Optional[ShippingOption]:
    if selected is None:
        return None
    for option in options:
        if option.id == selected.id:
            return option
    return None


def shipping_for(
    group: PhotoGroup, data: ListingData, quoter: Quoter = quote
) -> Dict[str, Any]:
    """Shipping fields for ``data``; recomputed only when the weight is known."""
    if data.weight is None:
        return {
            "shipping_options": group.shipping_options,
            "selected_shipping": group.selected_shipping,
        }
    options = quoter(data.weight, data.measurements.dimensions())
    return {
        "shipping_options": options,
        "selected_shipping": _reprice_selection(group.selected_shipping, options),
    }


def complete_enrichment(
    group: PhotoGroup, guess: ListingData, quoter: Quoter = quote
) -> PhotoGroup:
    """Merge an enrichment guess and compute shipping options."""
    merged = (group.listing_data or ListingData()).merged_with(guess)
    return _transition(
        group,
        GroupStatus.COMPLETED,
        listing_data=merged,
        name=merged.title or group.name,
        status_message=f"Analysis complete: {merged.title or group.name}",
        **shipping_for(group, merged, quoter),
    )


def fail_enrichment(group: PhotoGroup, message: str = "Analysis failed") -> PhotoGroup:
    """Mark enrichment as failed without touching listing data."""
    return _transition(group, GroupStatus.ERROR, status_message=message)


def reject(group: PhotoGroup, reason: str = "Rejected during review") -> PhotoGroup:
    """Reject a group during review; shares the error status with failures."""
    if group.status == GroupStatus.ERROR and not group.is_posted:
        return group.replace(status_message=reason)
    return _transition(group, GroupStatus.ERROR, status_message=reason)


def edit_listing(
    group: PhotoGroup, changes: Dict[str, Any], quoter: Quoter = quote
) -> PhotoGroup:
    """Apply manual listing edits.

    ``measurements`` may be a partial mapping; it is merged into the
    existing measurements. Shipping options are recomputed when the
    edited data carries a weight.
    """
    if not is_editable(group):
        logger.warning(f"Refusing edit of group {group.id} ({group.status.value})")
        return group
    if not changes:
        return group

    current = group.listing_data or ListingData()
    values = current.model_dump()
    for key, value in changes.items():
        if key == "measurements" and isinstance(value, dict):
            values["measurements"] = {**values["measurements"], **value}
        else:
            values[key] = value
    try:
        data = ListingData.model_validate(values)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise InvalidListingEdit(
            f"Invalid listing edit for group {group.id}: {', '.join(fields)}"
        ) from e

    shipping: Dict[str, Any] = {}
    if data.measurements != current.measurements or group.shipping_options is None:
        shipping = shipping_for(group, data, quoter)
    return group.replace(listing_data=data, **shipping)


def select_shipping(group: PhotoGroup, option_id: str) -> PhotoGroup:
    """Select one of the group's shipping options by id."""
    if not is_editable(group):
        return group
    option = group.offers(option_id)
    if option is None:
        logger.warning(f"Group {group.id} has no shipping option {option_id}")
        return group
    if group.selected_shipping == option:
        return group
    return group.replace(selected_shipping=option)


def assign_shipping(
    group: PhotoGroup,
    options: List[ShippingOption],
    selected: Optional[ShippingOption] = None,
) -> PhotoGroup:
    """Set shipping options, keeping the selection only if still offered."""
    if not is_editable(group):
        return group
    if selected is not None and all(o.id != selected.id for o in options):
        selected = None
    return group.replace(shipping_options=options, selected_shipping=selected)


def mark_posted(group: PhotoGroup, listing_id: Optional[str]) -> PhotoGroup:
    """Flag a group as posted with its external listing id.

    Raises:
        InvalidStatusTransition: the group is no longer completed with a
            shipping selection (changed while its save was in flight)
    """
    if group.status != GroupStatus.COMPLETED or group.selected_shipping is None:
        raise InvalidStatusTransition(
            f"Group {group.id} cannot be posted from {group.status.value}"
        )
    return group.replace(
        is_posted=True,
        listing_id=listing_id,
        status_message="Posted",
    )


def record_draft(group: PhotoGroup, listing_id: Optional[str]) -> PhotoGroup:
    """Remember the listing id of a saved draft so later saves update it."""
    return group.replace(
        listing_id=listing_id or group.listing_id,
        status_message="Saved as draft",
    )
