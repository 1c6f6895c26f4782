"""Listing aggregation core"""

from .continuation import ContinuationDriver
from .engine import ListingAggregationEngine
from .factory import create_continuation_driver, create_listing_engine, create_tour_api_client
from .keywords import KeywordMatcher
from .page_state import PageState, compute_more_available, merge_unique
from .resolution import (
    AnnotationResolver,
    DetailFallback,
    ResolutionPlan,
    StoreBacked,
    is_positive_detail_value,
    satisfies_filter,
)
from .sorting import order_display, partition_annotated, sort_items

__all__ = [
    "AnnotationResolver",
    "ContinuationDriver",
    "DetailFallback",
    "KeywordMatcher",
    "ListingAggregationEngine",
    "PageState",
    "ResolutionPlan",
    "StoreBacked",
    "compute_more_available",
    "create_continuation_driver",
    "create_listing_engine",
    "create_tour_api_client",
    "is_positive_detail_value",
    "merge_unique",
    "order_display",
    "partition_annotated",
    "satisfies_filter",
    "sort_items",
]
