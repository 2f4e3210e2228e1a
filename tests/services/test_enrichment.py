"""Tests for the simulated enricher."""

import asyncio

import pytest

from bulklist.services.enrichment import SimulatedEnricher, title_from_photo


@pytest.mark.parametrize(
    "photo,expected",
    [
        ("uploads/red_lamp-2.jpg", "Red Lamp"),
        ("brass-teapot.png", "Brass Teapot"),
        ("IMG_0042.jpg", "Img"),
        ("1234.jpg", "Untitled Item"),
    ],
)
def test_title_from_photo(photo, expected):
    """Titles come from the photo name without numbers."""
    assert title_from_photo(photo) == expected


def test_guess_is_complete_placeholder():
    """A guess should carry every field a seller reviews."""
    enricher = SimulatedEnricher(seed=7)

    data = asyncio.run(enricher(["wool_scarf_1.jpg", "wool_scarf_2.jpg"]))

    assert data.title == "Wool Scarf"
    assert "Wool Scarf" in data.description
    assert 15 <= data.price <= 150
    assert data.category == "Uncategorized"
    assert data.condition == "Good"
    assert data.measurements.dimensions() == (12.0, 8.0, 4.0)
    assert 0.5 <= data.weight <= 5.0
    assert data.gender == "Unisex"
    assert enricher.calls == 1


def test_seeded_runs_are_reproducible():
    """The same seed should give the same guesses."""
    first = SimulatedEnricher(seed=42)
    second = SimulatedEnricher(seed=42)

    a = asyncio.run(first(["lamp.jpg"]))
    b = asyncio.run(second(["lamp.jpg"]))

    assert a.price == b.price
    assert a.weight == b.weight


def test_failure_rate():
    """A certain failure rate should return nothing."""
    enricher = SimulatedEnricher(failure_rate=1.0)

    assert asyncio.run(enricher(["lamp.jpg"])) is None


def test_empty_photos_return_nothing():
    """No photos, no guess."""
    assert asyncio.run(SimulatedEnricher(seed=1)([])) is None


def test_invalid_failure_rate():
    """Rates outside 0-1 are rejected."""
    with pytest.raises(ValueError):
        SimulatedEnricher(failure_rate=1.5)
