"""
Listing Settings

Typed view over listing_config.json. Defaults mirror the shipped config so
the engine can run without a config directory (e.g. in tests).
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_PAGE_SIZE = 20
DEFAULT_EAGER_THRESHOLD = 100
DEFAULT_EAGER_DELAY_SECONDS = 0.5
DEFAULT_PET_KEYWORDS = ["반려동물", "펫", "애완동물", "반려견", "반려묘", "pet", "애완"]
DEFAULT_POSITIVE_DETAIL_VALUES = ["가능", "Y", "possible"]
DEFAULT_BULK_FETCH_LIMIT = 1000

DEFAULT_CONTENT_TYPES = {
    "12": "관광지",
    "14": "문화시설",
    "15": "축제/행사",
    "25": "여행코스",
    "28": "레포츠",
    "32": "숙박",
    "38": "쇼핑",
    "39": "음식점",
}


class PaginationSettings(BaseModel):
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)


class ContinuationSettings(BaseModel):
    eager_threshold: int = Field(default=DEFAULT_EAGER_THRESHOLD, ge=0)
    eager_delay_seconds: float = Field(default=DEFAULT_EAGER_DELAY_SECONDS, ge=0)


class AnnotationSettings(BaseModel):
    keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_PET_KEYWORDS))
    positive_detail_values: List[str] = Field(
        default_factory=lambda: list(DEFAULT_POSITIVE_DETAIL_VALUES)
    )
    bulk_fetch_limit: int = Field(default=DEFAULT_BULK_FETCH_LIMIT, ge=1)


class CatalogSettings(BaseModel):
    base_url: str = "https://apis.data.go.kr/B551011/KorService2"
    api_key: Optional[str] = None
    mobile_os: str = "ETC"
    mobile_app: str = "MyTrip"
    timeout_seconds: float = 10.0
    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    retryable_status_codes: List[int] = Field(default_factory=lambda: [429, 502, 503, 504])
    cache_ttl_seconds: int = Field(default=3600, ge=0)
    area_code_rows: int = Field(default=25, ge=1)


class ListingSettings(BaseModel):
    """All listing engine settings"""
    version: str = "1.0"
    pagination: PaginationSettings = Field(default_factory=PaginationSettings)
    continuation: ContinuationSettings = Field(default_factory=ContinuationSettings)
    annotation: AnnotationSettings = Field(default_factory=AnnotationSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    content_types: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_CONTENT_TYPES))
