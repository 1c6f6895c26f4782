"""Adapters for the catalog, annotation store and detail sources"""

from .annotation_store import InMemoryAnnotationStore, transform_annotation_row
from .base import AnnotationStore, CatalogSource, DetailSource
from .response_cache import ResponseCache, create_response_cache
from .tour_api import TourApiClient

__all__ = [
    "AnnotationStore",
    "CatalogSource",
    "DetailSource",
    "InMemoryAnnotationStore",
    "ResponseCache",
    "TourApiClient",
    "create_response_cache",
    "transform_annotation_row",
]
