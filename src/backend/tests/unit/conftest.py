"""
Unit test fixtures

Engine wiring over the in-memory fakes. Unit tests never touch the network.
"""

import pytest

from mytrip.services.listing.engine import ListingAggregationEngine
from mytrip.services.listing.resolution import AnnotationResolver
from mytrip.services.sources.annotation_store import InMemoryAnnotationStore


@pytest.fixture
def build_engine():
    """
    Factory: build_engine(catalog, store=None, detail=None, page_size=20)
    """
    def _build(catalog, store=None, detail=None, page_size=20):
        resolver = AnnotationResolver(store or InMemoryAnnotationStore(), detail_source=detail)
        return ListingAggregationEngine(catalog, resolver, page_size=page_size)

    return _build
