"""Concrete collaborators for the pipeline."""

from .enrichment import SimulatedEnricher
from .persistence import ListingStore

__all__ = ["ListingStore", "SimulatedEnricher"]
