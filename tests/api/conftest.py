"""Pytest configuration for API tests."""

import pytest
from fastapi.testclient import TestClient

from bulklist.api.registry import BatchRegistry
from bulklist.pipeline import BulkListingPipeline


@pytest.fixture
def batch_registry() -> BatchRegistry:
    return BatchRegistry()


@pytest.fixture
def client(batch_registry, enricher, saver):
    """Test client whose batches use the fake collaborators."""
    from bulklist.api.app import app
    from bulklist.api.routers.batches import get_pipeline_factory, get_registry

    def make_pipeline() -> BulkListingPipeline:
        return BulkListingPipeline(
            enricher,
            saver,
            concurrency=1,
            timeout_seconds=1.0,
            skip_shipping_stage=False,
            chunk_size=lambda: 2,
            price_threshold=100.0,
        )

    app.dependency_overrides[get_registry] = lambda: batch_registry
    app.dependency_overrides[get_pipeline_factory] = lambda: make_pipeline

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def upload():
    return [f"upload_{n}.jpg" for n in range(1, 7)]
