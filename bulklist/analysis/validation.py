"""Pure readiness checks for saving or posting a photo group.

Both checks report every missing requirement instead of stopping at the
first one, so callers can show actionable errors per item.
"""

from dataclasses import dataclass, field
from typing import List

from bulklist.models.group import GroupStatus, PhotoGroup
from bulklist.models.listing import CommitMode

TITLE_REQUIRED = "Title is required"
PRICE_REQUIRED = "Valid price is required"
CATEGORY_REQUIRED = "Category is required"
CONDITION_REQUIRED = "Condition is required"
SHIPPING_REQUIRED = "Shipping option is required"
NOT_COMPLETED = "Item processing is not complete"
ALREADY_POSTED = "Item is already posted"
STILL_PROCESSING = "Item is still processing"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a readiness check."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _has_text(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def check_draft(group: PhotoGroup) -> ValidationResult:
    """A draft only needs a title."""
    errors: List[str] = []
    if group.is_posted:
        errors.append(ALREADY_POSTED)
    if group.status == GroupStatus.PROCESSING:
        errors.append(STILL_PROCESSING)
    if not _has_text(group.title):
        errors.append(TITLE_REQUIRED)
    return ValidationResult(is_valid=not errors, errors=errors)


def check_post(group: PhotoGroup) -> ValidationResult:
    """An active listing needs title, price, category, condition and shipping."""
    errors: List[str] = []
    data = group.listing_data

    if group.is_posted:
        errors.append(ALREADY_POSTED)
    if group.status != GroupStatus.COMPLETED:
        errors.append(NOT_COMPLETED)
    if data is None or not _has_text(data.title):
        errors.append(TITLE_REQUIRED)
    if data is None or not data.price or data.price <= 0:
        errors.append(PRICE_REQUIRED)
    if data is None or not _has_text(data.category):
        errors.append(CATEGORY_REQUIRED)
    if data is None or not _has_text(data.condition):
        errors.append(CONDITION_REQUIRED)
    if group.selected_shipping is None:
        errors.append(SHIPPING_REQUIRED)

    return ValidationResult(is_valid=not errors, errors=errors)


def check_for_mode(group: PhotoGroup, mode: CommitMode) -> ValidationResult:
    """Run the check that matches a commit mode."""
    if mode == CommitMode.ACTIVE:
        return check_post(group)
    return check_draft(group)


def is_draft_eligible(group: PhotoGroup) -> bool:
    return check_draft(group).is_valid


def is_post_eligible(group: PhotoGroup) -> bool:
    return check_post(group).is_valid
