"""Simulated enrichment oracle.

Stands in for photo analysis: it produces a placeholder listing guess
that the seller is expected to review. Randomness comes from a seeded
``random.Random`` owned by the instance, so runs are reproducible.
"""

import asyncio
import logging
import random
from pathlib import PurePath
from typing import List, Optional

from bulklist.models.listing import ListingData, Measurements

logger = logging.getLogger(__name__)


def title_from_photo(photo: str) -> str:
    """Readable title from a photo handle such as ``uploads/red_lamp-2.jpg``."""
    stem = PurePath(photo).stem
    words = stem.replace("_", " ").replace("-", " ").split()
    words = [word for word in words if not word.isdigit()]
    return " ".join(words).title() or "Untitled Item"


class SimulatedEnricher:
    """Async enrichment collaborator returning placeholder listing data."""

    def __init__(
        self,
        seed: Optional[int] = None,
        failure_rate: float = 0.0,
        delay_seconds: float = 0.0,
    ) -> None:
        """
        Args:
            seed: Seed for the random source
            failure_rate: Probability (0-1) that a call returns no result
            delay_seconds: Simulated analysis time per call
        """
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        self.rng = random.Random(seed)
        self.failure_rate = failure_rate
        self.delay_seconds = delay_seconds
        self.calls = 0

    async def __call__(self, photos: List[str]) -> Optional[ListingData]:
        self.calls += 1
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        if not photos or self.rng.random() < self.failure_rate:
            logger.debug(f"Simulated enrichment returned nothing for {photos[:1]}")
            return None

        title = title_from_photo(photos[0])
        return ListingData(
            title=title,
            description=(
                f"Please add description for: {title}. "
                "Review and update all details before posting."
            ),
            price=float(self.rng.randint(15, 150)),
            category="Uncategorized",
            condition="Good",
            measurements=Measurements(
                length=12.0,
                width=8.0,
                height=4.0,
                weight=round(self.rng.uniform(0.5, 5.0), 1),
            ),
            price_research=(
                "Please research comparable items and update pricing accordingly"
            ),
            gender="Unisex",
            age_group="Adult",
        )
