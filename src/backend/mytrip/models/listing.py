"""
Listing Data Models

Shared models for the listing engine: the query value, raw catalog items
and pages, pet-friendliness annotations and the merged display items.
Every model here is immutable; state changes produce new instances.
"""

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.ids import normalize_content_id


class SortMode(str, Enum):
    """Plain sort modes; values double as the catalog ``arrange`` codes"""
    BY_NAME = "O"
    BY_RECENCY = "Q"


class LoadMode(str, Enum):
    """Whether a page load starts over or extends the accumulated list"""
    REPLACE = "replace"
    APPEND = "append"


class AnnotationFilterMode(str, Enum):
    """User setting for the pet-friendliness filter"""
    ANY = "any"            # don't care (keyword may still activate the filter)
    REQUIRED = "required"
    EXCLUDED = "excluded"  # explicit opt-out, never overridden by keywords


class PetSizeLimit(str, Enum):
    """Largest pet size a place accepts, ordered smallest to largest"""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    UNLIMITED = "unlimited"

    @property
    def rank(self) -> int:
        return _SIZE_ORDER.index(self)


_SIZE_ORDER = [PetSizeLimit.SMALL, PetSizeLimit.MEDIUM, PetSizeLimit.LARGE, PetSizeLimit.UNLIMITED]

PET_SIZE_LIMIT_LABELS = {
    PetSizeLimit.SMALL: "소형",
    PetSizeLimit.MEDIUM: "중형",
    PetSizeLimit.LARGE: "대형",
    PetSizeLimit.UNLIMITED: "제한없음",
}


class AnnotationSource(str, Enum):
    """Where an annotation record came from"""
    STORE = "store"
    DETAIL = "detail"


class PetFriendlyStatus(str, Enum):
    ALLOWED = "allowed"
    NOT_ALLOWED = "not_allowed"
    CONDITIONAL = "conditional"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class AnnotationFilter(BaseModel):
    """
    Pet-friendliness filter with optional sub-constraints.

    Attributes:
        mode: any / required / excluded
        pet_size: Pet size the visitor brings; places must accept at least this size
        min_pet_count: Number of pets the visitor brings; places must allow at least this many
    """
    model_config = ConfigDict(frozen=True)

    mode: AnnotationFilterMode = AnnotationFilterMode.ANY
    pet_size: Optional[PetSizeLimit] = None
    min_pet_count: Optional[int] = Field(default=None, ge=1)

    @property
    def is_required(self) -> bool:
        return self.mode == AnnotationFilterMode.REQUIRED

    @property
    def is_excluded(self) -> bool:
        return self.mode == AnnotationFilterMode.EXCLUDED


class ListingQuery(BaseModel):
    """
    Immutable listing request.

    Changing any field means a new query: accumulated state is discarded
    and pagination restarts at page 1.
    """
    model_config = ConfigDict(frozen=True)

    keyword: Optional[str] = None
    region: Optional[str] = None
    categories: FrozenSet[str] = Field(default_factory=frozenset)
    sort_mode: SortMode = SortMode.BY_NAME
    annotation_filter: AnnotationFilter = Field(default_factory=AnnotationFilter)
    prioritize_annotated: bool = False

    @field_validator("keyword", "region", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("categories", mode="before")
    @classmethod
    def _coerce_categories(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, (str, int)):
            value = [value]
        return frozenset(str(v).strip() for v in value if str(v).strip())

    @property
    def has_keyword(self) -> bool:
        return bool(self.keyword)

    @property
    def upstream_category(self) -> Optional[str]:
        """Category sent to the catalog; unions of several are filtered locally"""
        if len(self.categories) == 1:
            return next(iter(self.categories))
        return None

    def fingerprint(self) -> str:
        """Short stable identifier used in logs and cache keys"""
        parts = [
            self.keyword or "",
            self.region or "",
            ",".join(sorted(self.categories)),
            self.sort_mode.value,
            self.annotation_filter.mode.value,
            self.annotation_filter.pet_size.value if self.annotation_filter.pet_size else "",
            str(self.annotation_filter.min_pet_count or ""),
            "1" if self.prioritize_annotated else "0",
        ]
        return hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:12]


class RawItem(BaseModel):
    """
    Single catalog item as returned upstream.

    ``contentid`` is kept as delivered; use ``normalized_id`` for comparisons.
    Unknown upstream fields are preserved.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    contentid: Union[str, int, float]
    title: str = ""
    contenttypeid: Optional[str] = None
    areacode: Optional[str] = None
    addr1: Optional[str] = None
    addr2: Optional[str] = None
    mapx: Optional[str] = None
    mapy: Optional[str] = None
    firstimage: Optional[str] = None
    tel: Optional[str] = None
    modifiedtime: Optional[str] = None

    @field_validator(
        "contenttypeid", "areacode", "addr1", "addr2", "mapx", "mapy",
        "firstimage", "tel", "modifiedtime", mode="before"
    )
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return _blank_to_none(str(value))

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def normalized_id(self) -> str:
        return normalize_content_id(self.contentid)

    @property
    def modified_at(self) -> Optional[datetime]:
        """Parse ``modifiedtime`` (YYYYMMDDHHMMSS); None when absent or malformed"""
        if not self.modifiedtime:
            return None
        text = self.modifiedtime
        for fmt, width in (("%Y%m%d%H%M%S", 14), ("%Y-%m-%dT%H:%M:%S", 19), ("%Y%m%d", 8)):
            try:
                return datetime.strptime(text[:width], fmt)
            except ValueError:
                continue
        return None


class CatalogPage(BaseModel):
    """One catalog response: raw items plus the query-wide total count"""
    model_config = ConfigDict(frozen=True)

    items: Tuple[RawItem, ...] = ()
    page_number: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)
    total_count: int = Field(default=0, ge=0)

    @property
    def raw_size(self) -> int:
        return len(self.items)


class AnnotationRecord(BaseModel):
    """
    Pet-friendliness annotation for one catalog item.

    Records built from the detail fallback only carry ``is_pet_allowed``.
    """
    model_config = ConfigDict(frozen=True)

    content_id: str
    is_pet_allowed: bool = False
    pet_policy: Optional[str] = None
    pet_fee: Optional[float] = None
    pet_size_limit: Optional[str] = None
    pet_count_limit: Optional[int] = None
    notes: Optional[str] = None
    source: AnnotationSource = AnnotationSource.STORE

    @field_validator("content_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return normalize_content_id(value)

    @field_validator("pet_policy", "pet_size_limit", "notes", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def size_class(self) -> Optional[PetSizeLimit]:
        if not self.pet_size_limit:
            return None
        try:
            return PetSizeLimit(self.pet_size_limit.lower())
        except ValueError:
            return None

    def status(self) -> PetFriendlyStatus:
        if not self.is_pet_allowed:
            return PetFriendlyStatus.NOT_ALLOWED
        if self.pet_policy or self.pet_fee or self.pet_size_limit or self.pet_count_limit:
            return PetFriendlyStatus.CONDITIONAL
        return PetFriendlyStatus.ALLOWED

    def format_policy(self) -> str:
        """Human readable one-line policy summary"""
        parts = []
        if self.pet_policy:
            parts.append(self.pet_policy)
        if self.pet_fee and self.pet_fee > 0:
            parts.append(f"추가 요금: {self.pet_fee:,.0f}원")
        if self.pet_count_limit and self.pet_count_limit > 0:
            parts.append(f"최대 {self.pet_count_limit}마리")
        if self.pet_size_limit:
            size = self.size_class
            label = PET_SIZE_LIMIT_LABELS[size] if size else self.pet_size_limit
            parts.append(f"크기 제한: {label}")

        if not parts:
            return "반려동물 동반 가능" if self.is_pet_allowed else "반려동물 동반 불가"
        return ", ".join(parts)


class AggregatedItem(BaseModel):
    """A catalog item merged with at most one annotation"""
    model_config = ConfigDict(frozen=True)

    item: RawItem
    annotation: Optional[AnnotationRecord] = None

    @property
    def identifier(self) -> str:
        return self.item.normalized_id

    @property
    def is_annotated(self) -> bool:
        """True when a positive pet-friendliness annotation is attached"""
        return self.annotation is not None and self.annotation.is_pet_allowed


class ListingSnapshot(BaseModel):
    """Read-only view handed to consumers"""
    model_config = ConfigDict(frozen=True)

    display_list: Tuple[AggregatedItem, ...] = ()
    more_available: bool = False
    is_loading: bool = False
    error: Optional[str] = None
    total_count: int = 0
    last_page: int = 0
