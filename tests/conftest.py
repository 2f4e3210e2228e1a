"""Shared fixtures: sample groups, fake collaborators and an in-memory store."""

from typing import Any, Dict, Generator, List, Optional, Set

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from bulklist.analysis.shipping import quote
from bulklist.models import (
    CommitMode,
    GroupStatus,
    ListingData,
    Measurements,
    PhotoGroup,
)
from bulklist.pipeline import BulkListingPipeline, SaveResult

_DEFAULT: Any = object()


class FakeEnricher:
    """Enricher answering from a table keyed by a group's first photo.

    Table values may be ListingData, None (no usable result) or an
    exception instance to raise. Unknown photos get a complete guess.
    """

    def __init__(self) -> None:
        self.results: Dict[str, Any] = {}
        self.calls: List[List[str]] = []

    async def __call__(self, photos: List[str]) -> Optional[ListingData]:
        self.calls.append(list(photos))
        outcome = self.results.get(photos[0], _DEFAULT)
        if outcome is _DEFAULT:
            return ListingData(
                title=f"Item from {photos[0]}",
                price=20.0,
                category="Home",
                condition="Good",
                measurements=Measurements(weight=1.0),
            )
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeSaver:
    """Listing saver that fails for selected titles."""

    def __init__(self) -> None:
        self.fail_titles: Set[str] = set()
        self.calls: List[Dict[str, Any]] = []

    async def __call__(
        self,
        data: ListingData,
        shipping_cost: float,
        mode: CommitMode,
        existing_id: Optional[str] = None,
    ) -> SaveResult:
        self.calls.append(
            {
                "data": data,
                "shipping_cost": shipping_cost,
                "mode": mode,
                "existing_id": existing_id,
            }
        )
        if data.title in self.fail_titles:
            return SaveResult(success=False, error=f"Could not save {data.title}")
        return SaveResult(
            success=True, listing_id=existing_id or f"listing-{len(self.calls)}"
        )


@pytest.fixture
def listing_data() -> ListingData:
    """Listing data that satisfies every posting requirement."""
    return ListingData(
        title="Vintage Brass Lamp",
        description="Working lamp with original shade",
        price=45.0,
        category="Home & Garden",
        condition="Used - Good",
        measurements=Measurements(length=10, width=8, height=6, weight=2.0),
        purchase_price=15.0,
    )


@pytest.fixture
def make_group(listing_data: ListingData):
    """Factory for groups; completed with ground shipping selected by default."""

    def _make(
        photos: Optional[List[str]] = None,
        status: GroupStatus = GroupStatus.COMPLETED,
        data: Any = _DEFAULT,
        shipped: bool = True,
        **fields: Any,
    ) -> PhotoGroup:
        if data is _DEFAULT:
            data = listing_data
        options = None
        selected = None
        if shipped and data is not None:
            options = quote(data.weight, data.measurements.dimensions())
            selected = options[1]
        return PhotoGroup(
            photos=photos or ["front.jpg", "back.jpg"],
            status=status,
            listing_data=data,
            shipping_options=options,
            selected_shipping=selected,
            **fields,
        )

    return _make


@pytest.fixture
def enricher() -> FakeEnricher:
    return FakeEnricher()


@pytest.fixture
def saver() -> FakeSaver:
    return FakeSaver()


@pytest.fixture
def photos() -> List[str]:
    return [f"photo_{n:02d}.jpg" for n in range(1, 10)]


@pytest.fixture
def pipeline(enricher: FakeEnricher, saver: FakeSaver) -> BulkListingPipeline:
    """Pipeline chunking photos in threes with fake collaborators."""
    return BulkListingPipeline(
        enricher,
        saver,
        concurrency=1,
        timeout_seconds=1.0,
        skip_shipping_stage=False,
        chunk_size=lambda: 3,
        price_threshold=100.0,
        draft_shipping_cost=9.95,
    )


@pytest.fixture
def sqlite_engine():  # type: ignore[no-untyped-def]
    """In-memory SQLite engine shared across threads and sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(sqlite_engine) -> Generator[Session, None, None]:  # type: ignore[no-untyped-def]
    with Session(sqlite_engine) as session:
        yield session
