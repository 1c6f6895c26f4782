"""
Listing Factory

Wires the engine, resolver, keyword matcher and continuation driver from
ListingSettings so callers don't assemble them by hand.

Usage:
    settings = get_config_service().get_listing_settings()
    catalog = await create_tour_api_client(settings)
    engine = create_listing_engine(settings, catalog, InMemoryAnnotationStore(), detail_source=catalog)
    driver = create_continuation_driver(engine, settings)

    await engine.configure(ListingQuery(keyword="반려견 카페"))
"""

import logging
from typing import Optional

import httpx

from ..config.settings import ListingSettings
from ..sources.base import AnnotationStore, CatalogSource, DetailSource
from ..sources.response_cache import create_response_cache
from ..sources.tour_api import TourApiClient
from .continuation import ContinuationDriver
from .engine import ListingAggregationEngine
from .keywords import KeywordMatcher
from .resolution import AnnotationResolver

logger = logging.getLogger(__name__)


def create_listing_engine(
    settings: ListingSettings,
    catalog: CatalogSource,
    store: AnnotationStore,
    detail_source: Optional[DetailSource] = None,
) -> ListingAggregationEngine:
    resolver = AnnotationResolver(
        store=store,
        detail_source=detail_source,
        positive_values=settings.annotation.positive_detail_values,
        bulk_fetch_limit=settings.annotation.bulk_fetch_limit,
    )
    return ListingAggregationEngine(
        catalog=catalog,
        resolver=resolver,
        matcher=KeywordMatcher(settings.annotation.keywords),
        page_size=settings.pagination.page_size,
    )


def create_continuation_driver(engine: ListingAggregationEngine, settings: ListingSettings) -> ContinuationDriver:
    return ContinuationDriver(
        engine,
        eager_threshold=settings.continuation.eager_threshold,
        eager_delay=settings.continuation.eager_delay_seconds,
    )


async def create_tour_api_client(
    settings: ListingSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> TourApiClient:
    """Build the HTTP catalog client, with the Redis response cache when enabled"""
    cache = await create_response_cache(ttl=settings.catalog.cache_ttl_seconds)
    return TourApiClient(settings.catalog, client=client, cache=cache)
