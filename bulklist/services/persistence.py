"""SQL-backed listing store implementing the listing saver contract."""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from bulklist.db.connection import get_db_context
from bulklist.db.repositories import ListingRepository
from bulklist.models.base import utc_now
from bulklist.models.listing import CommitMode, Listing, ListingData
from bulklist.pipeline.contracts import SaveResult

logger = logging.getLogger(__name__)

DETAIL_FIELDS = (
    "clothing_size",
    "shoe_size",
    "gender",
    "age_group",
    "features",
    "includes",
    "defects",
)


def listing_fields(
    data: ListingData, shipping_cost: float, mode: CommitMode
) -> Dict[str, Any]:
    """Column values for a listing row built from listing data."""
    return {
        "status": mode.value,
        "title": data.title or "Untitled Item",
        "description": data.description,
        "price": data.price,
        "category": data.category,
        "category_id": data.category_id,
        "condition": data.condition,
        "measurements": data.measurements.model_dump(exclude_none=True),
        "keywords": list(data.keywords),
        "photos": list(data.photos),
        "price_research": data.price_research,
        "purchase_price": data.purchase_price,
        "purchase_date": data.purchase_date,
        "source_location": data.source_location,
        "source_type": data.source_type,
        "is_consignment": data.is_consignment,
        "consignment_percentage": data.consignment_percentage,
        "consignor_name": data.consignor_name,
        "consignor_contact": data.consignor_contact,
        "details": data.model_dump(include=set(DETAIL_FIELDS), exclude_none=True),
        "shipping_cost": shipping_cost,
        "cost_basis": data.purchase_price or 0.0,
        "net_profit": data.net_profit(),
        "profit_margin": data.profit_margin(),
        "listed_date": date.today() if mode == CommitMode.ACTIVE else None,
    }


class ListingStore:
    """Save listings to the database as drafts or active listings."""

    def __init__(self, engine: Optional[Engine] = None):
        """
        Args:
            engine: Engine to write to (the shared engine by default)
        """
        self.engine = engine

    async def save(
        self,
        data: ListingData,
        shipping_cost: float,
        mode: CommitMode,
        existing_id: Optional[str] = None,
    ) -> SaveResult:
        """
        Insert a listing, or update ``existing_id`` when given.

        Database work runs in a worker thread so the event loop stays free.

        Returns:
            SaveResult with the listing id, or the error on failure
        """
        return await asyncio.to_thread(
            self._save, data, shipping_cost, mode, existing_id
        )

    def _save(
        self,
        data: ListingData,
        shipping_cost: float,
        mode: CommitMode,
        existing_id: Optional[str],
    ) -> SaveResult:
        with get_db_context(self.engine) as session:
            repo = ListingRepository(session)
            try:
                fields = listing_fields(data, shipping_cost, mode)
                if existing_id:
                    listing = repo.get(existing_id)
                    if listing is None:
                        return SaveResult(
                            success=False, error=f"Listing {existing_id} not found"
                        )
                    for name, value in fields.items():
                        setattr(listing, name, value)
                    listing.updated_at = utc_now()
                    repo.update(listing)
                else:
                    listing = repo.add(Listing(**fields))
                listing_id = listing.id
                repo.commit()
            except SQLAlchemyError as e:
                repo.rollback()
                logger.warning(f"Failed to save listing {data.title!r}: {e}")
                return SaveResult(success=False, error=str(e))

        logger.debug(f"Saved {mode.value} listing {listing_id}")
        return SaveResult(success=True, listing_id=listing_id)

    async def __call__(
        self,
        data: ListingData,
        shipping_cost: float,
        mode: CommitMode,
        existing_id: Optional[str] = None,
    ) -> SaveResult:
        return await self.save(data, shipping_cost, mode, existing_id)
