"""Collaborator contracts consumed by the pipeline.

The pipeline never knows how enrichment or persistence work; it only
awaits these callables.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from bulklist.models.listing import CommitMode, ListingData


@dataclass(frozen=True)
class SaveResult:
    """Response of the listing store for one save."""

    success: bool
    listing_id: Optional[str] = None
    error: Optional[str] = None


# enrich(photos) -> guess, or None when nothing usable came back.
# May also raise; callers treat both as an enrichment failure.
Enricher = Callable[[List[str]], Awaitable[Optional[ListingData]]]

# save(listing_data, shipping_cost, mode, existing_id) -> SaveResult
ListingSaver = Callable[
    [ListingData, float, CommitMode, Optional[str]], Awaitable[SaveResult]
]
