"""Data models for listing aggregation and statistics."""

from .listing import (
    AggregatedItem,
    AnnotationFilter,
    AnnotationFilterMode,
    AnnotationRecord,
    AnnotationSource,
    CatalogPage,
    ListingQuery,
    ListingSnapshot,
    LoadMode,
    PetFriendlyStatus,
    PetSizeLimit,
    RawItem,
    SortMode,
)
from .stats import RegionStats, StatsData, StatsSummary, TypeStats

__all__ = [
    "AggregatedItem",
    "AnnotationFilter",
    "AnnotationFilterMode",
    "AnnotationRecord",
    "AnnotationSource",
    "CatalogPage",
    "ListingQuery",
    "ListingSnapshot",
    "LoadMode",
    "PetFriendlyStatus",
    "PetSizeLimit",
    "RawItem",
    "SortMode",
    "RegionStats",
    "StatsData",
    "StatsSummary",
    "TypeStats",
]
