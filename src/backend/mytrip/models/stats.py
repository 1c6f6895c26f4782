"""
Statistics Data Models

Aggregated catalog counts for the statistics dashboard.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class RegionStats(BaseModel):
    """Item count for one region"""
    area_code: str
    area_name: str
    count: int = 0


class TypeStats(BaseModel):
    """Item count for one content type and its share of the total"""
    content_type_id: str
    type_name: str
    count: int = 0
    percentage: float = 0.0


class RankedRegion(BaseModel):
    area_code: str
    area_name: str
    count: int


class RankedType(BaseModel):
    content_type_id: str
    type_name: str
    count: int


class StatsSummary(BaseModel):
    """Headline figures: grand total and the top three regions and types"""
    total_count: int = 0
    top_regions: List[RankedRegion] = Field(default_factory=list)
    top_types: List[RankedType] = Field(default_factory=list)
    last_updated: datetime


class StatsData(BaseModel):
    region_stats: List[RegionStats] = Field(default_factory=list)
    type_stats: List[TypeStats] = Field(default_factory=list)
    summary: StatsSummary
