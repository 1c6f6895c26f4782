"""
Statistics Service

Per-region and per-content-type catalog counts for the statistics dashboard.
Counts come from the catalog's ``totalCount`` with a one-row page request,
issued concurrently. A failing region or type counts as zero.
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ...exceptions import CatalogError
from ...models.listing import ListingQuery
from ...models.stats import (
    RankedRegion,
    RankedType,
    RegionStats,
    StatsData,
    StatsSummary,
    TypeStats,
)
from ..config.settings import DEFAULT_CONTENT_TYPES
from ..sources.base import CatalogSource

logger = logging.getLogger(__name__)

TOP_N = 3


def _round_percentage(count: int, total: int) -> float:
    # Half-up to one decimal
    if total <= 0:
        return 0.0
    return math.floor(count / total * 1000 + 0.5) / 10


class StatsService:
    """Builds dashboard statistics from a CatalogSource"""

    def __init__(self, catalog: CatalogSource, content_types: Optional[Dict[str, str]] = None):
        """
        Args:
            catalog: Catalog used for counting
            content_types: Content type code -> label (defaults to the built-in eight)
        """
        self.catalog = catalog
        self.content_types = dict(content_types or DEFAULT_CONTENT_TYPES)

    async def _count(self, query: ListingQuery, label: str) -> int:
        try:
            page = await self.catalog.list_items(query, 1, 1)
        except CatalogError as e:
            logger.warning(f"Count failed for {label}, using 0: {e}")
            return 0
        return page.total_count

    async def region_stats(self) -> List[RegionStats]:
        """
        Item counts per region, largest first; regions with no items are dropped.

        Raises:
            CatalogError: If the region code list itself cannot be fetched
        """
        areas = await self.catalog.area_codes()
        counts = await asyncio.gather(*(
            self._count(ListingQuery(region=area["code"]), f"region {area['code']}")
            for area in areas
        ))

        stats = [
            RegionStats(area_code=area["code"], area_name=area["name"], count=count)
            for area, count in zip(areas, counts)
            if count > 0
        ]
        stats.sort(key=lambda s: s.count, reverse=True)
        logger.info(f"Region stats: {len(stats)} regions with items")
        return stats

    async def type_stats(self) -> List[TypeStats]:
        """Item counts per content type with their share of the total, largest first"""
        codes = list(self.content_types)
        counts = await asyncio.gather(*(
            self._count(ListingQuery(categories=[code]), f"type {code}")
            for code in codes
        ))

        total = sum(counts)
        stats = [
            TypeStats(
                content_type_id=code,
                type_name=self.content_types[code],
                count=count,
                percentage=_round_percentage(count, total),
            )
            for code, count in zip(codes, counts)
        ]
        stats.sort(key=lambda s: s.count, reverse=True)
        logger.info(f"Type stats: {total} items across {len(stats)} types")
        return stats

    async def summary(
        self,
        region_stats: Optional[List[RegionStats]] = None,
        type_stats: Optional[List[TypeStats]] = None,
    ) -> StatsSummary:
        """
        Grand total (sum of type counts) and the top three regions and types.

        Missing inputs are fetched concurrently.
        """
        regions_task = self._or_fetch(region_stats, self.region_stats)
        types_task = self._or_fetch(type_stats, self.type_stats)
        regions, types = await asyncio.gather(regions_task, types_task)

        return StatsSummary(
            total_count=sum(t.count for t in types),
            top_regions=[
                RankedRegion(area_code=r.area_code, area_name=r.area_name, count=r.count)
                for r in regions[:TOP_N]
            ],
            top_types=[
                RankedType(content_type_id=t.content_type_id, type_name=t.type_name, count=t.count)
                for t in types[:TOP_N]
            ],
            last_updated=datetime.now(timezone.utc),
        )

    @staticmethod
    async def _or_fetch(value, fetch):
        if value is not None:
            return value
        return await fetch()

    async def all_stats(self) -> StatsData:
        region_stats, type_stats = await asyncio.gather(self.region_stats(), self.type_stats())
        summary = await self.summary(region_stats, type_stats)
        return StatsData(region_stats=region_stats, type_stats=type_stats, summary=summary)
