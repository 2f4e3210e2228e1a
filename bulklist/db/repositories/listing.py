"""Listing repository."""

from typing import List, Optional

from sqlmodel import Session, select

from bulklist.models.listing import Listing

from .base import BaseRepository


class ListingRepository(BaseRepository[Listing]):
    """Repository for persisted listings."""

    def __init__(self, session: Session):
        super().__init__(session, Listing)

    def by_status(
        self, status: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[Listing]:
        """Listings, newest first, optionally filtered by status.

        Args:
            status: "draft" or "active"; all listings when None
            limit: Maximum number of listings
            offset: Number of listings to skip
        """
        stmt = select(Listing)
        if status:
            stmt = stmt.where(Listing.status == status)
        stmt = stmt.order_by(Listing.created_at.desc()).offset(offset).limit(limit)
        return list(self.session.exec(stmt).all())
