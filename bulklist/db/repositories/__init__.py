"""Database repositories for data access."""

from .base import BaseRepository
from .listing import ListingRepository

__all__ = ["BaseRepository", "ListingRepository"]
