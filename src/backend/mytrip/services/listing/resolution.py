"""
Annotation Resolution

Attaches pet-friendliness annotations to catalog items with one of two
strategies, chosen once per query scope:

- StoreBacked: the annotation store has coverage; look items up by id.
- DetailFallback: the store has nothing; ask the detail endpoint per item
  and treat a small set of literal ``chkpet`` values as positive.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

from ...exceptions import AnnotationStoreError
from ...models.listing import (
    AnnotationFilter,
    AnnotationRecord,
    AnnotationSource,
    RawItem,
)
from ...utils.logging_context import log_performance
from ..config.settings import DEFAULT_BULK_FETCH_LIMIT, DEFAULT_POSITIVE_DETAIL_VALUES
from ..sources.base import AnnotationStore, DetailSource

logger = logging.getLogger(__name__)

DETAIL_SIGNAL_FIELD = "chkpet"


@dataclass(frozen=True)
class StoreBacked:
    """Store has coverage: resolve by normalized id"""
    lookup: Mapping[str, AnnotationRecord] = field(default_factory=dict)


@dataclass(frozen=True)
class DetailFallback:
    """Store has no coverage: resolve through per-item detail lookups"""
    reason: str = "empty"


ResolutionPlan = Union[StoreBacked, DetailFallback]


def is_positive_detail_value(value: object, accepted: Iterable[str] = DEFAULT_POSITIVE_DETAIL_VALUES) -> bool:
    """True when a raw detail field spells one of the accepted positive literals"""
    if not isinstance(value, str):
        return False
    text = value.strip().casefold()
    if not text:
        return False
    return text in {a.strip().casefold() for a in accepted}


def satisfies_filter(record: Optional[AnnotationRecord], annotation_filter: AnnotationFilter) -> bool:
    """
    Check a record against the filter's sub-constraints.

    - Only positive records pass.
    - Size: the place's limit must be at least the requested size. No limit
      recorded means no restriction; an unrecognized label fails.
    - Count: a recorded count limit must be at least the requested count.
    """
    if record is None or not record.is_pet_allowed:
        return False

    wanted_size = annotation_filter.pet_size
    if wanted_size is not None and record.pet_size_limit:
        size = record.size_class
        if size is None or size.rank < wanted_size.rank:
            return False

    wanted_count = annotation_filter.min_pet_count
    if wanted_count and record.pet_count_limit and record.pet_count_limit < wanted_count:
        return False

    return True


class AnnotationResolver:
    """
    Resolves annotations for catalog items.

    Store and detail failures never propagate: a failing store counts as
    zero coverage and a failing detail lookup as "no annotation".
    """

    def __init__(
        self,
        store: AnnotationStore,
        detail_source: Optional[DetailSource] = None,
        positive_values: Sequence[str] = DEFAULT_POSITIVE_DETAIL_VALUES,
        bulk_fetch_limit: int = DEFAULT_BULK_FETCH_LIMIT,
    ):
        self.store = store
        self.detail_source = detail_source
        self.positive_values = tuple(positive_values)
        self.bulk_fetch_limit = bulk_fetch_limit

    async def plan(self) -> ResolutionPlan:
        """
        Bulk-fetch the store once and pick the strategy.

        The lookup includes negative records so they can still be displayed;
        the fallback is chosen when no positive record exists at all.
        """
        try:
            records = await self.store.get_all(allowed_only=False, limit=self.bulk_fetch_limit)
        except AnnotationStoreError as e:
            logger.warning(f"Annotation store unavailable, using detail fallback: {e}")
            return DetailFallback(reason="store_error")
        except Exception as e:
            logger.warning(f"Unexpected annotation store failure, using detail fallback: {e}", exc_info=True)
            return DetailFallback(reason="store_error")

        lookup = {r.content_id: r for r in records if r.content_id}
        if not any(r.is_pet_allowed for r in lookup.values()):
            logger.info(f"Annotation store has no positive records ({len(lookup)} total), using detail fallback")
            return DetailFallback(reason="empty")

        logger.info(f"Annotation store covers {len(lookup)} items")
        return StoreBacked(lookup=lookup)

    async def resolve(
        self,
        plan: ResolutionPlan,
        items: Sequence[RawItem],
        needed: bool = True,
    ) -> Dict[str, AnnotationRecord]:
        """
        Resolve annotations for one page of items.

        Args:
            plan: Strategy from ``plan()``
            items: Raw items of the current page
            needed: Whether annotations affect filtering or ordering; detail
                lookups are skipped when they don't

        Returns:
            Mapping of normalized id to record, only for items that resolved
        """
        if isinstance(plan, StoreBacked):
            resolved = {}
            for item in items:
                record = plan.lookup.get(item.normalized_id)
                if record is not None:
                    resolved[item.normalized_id] = record
            return resolved

        if not needed or self.detail_source is None:
            return {}

        return await self._resolve_from_details(items)

    async def _resolve_from_details(self, items: Sequence[RawItem]) -> Dict[str, AnnotationRecord]:
        unique: Dict[str, RawItem] = {}
        for item in items:
            if item.normalized_id and item.normalized_id not in unique:
                unique[item.normalized_id] = item

        if not unique:
            return {}

        ids = list(unique)
        with log_performance("detail_fallback"):
            results = await asyncio.gather(
                *(self.detail_source.get_detail(cid, unique[cid].contenttypeid) for cid in ids),
                return_exceptions=True,
            )

        resolved: Dict[str, AnnotationRecord] = {}
        failures = 0
        for cid, result in zip(ids, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.debug(f"Detail lookup failed for {cid}: {result}")
                continue
            if is_positive_detail_value(result.get(DETAIL_SIGNAL_FIELD), self.positive_values):
                resolved[cid] = AnnotationRecord(
                    content_id=cid,
                    is_pet_allowed=True,
                    source=AnnotationSource.DETAIL,
                )

        logger.info(
            f"Detail fallback checked {len(ids)} items: "
            f"{len(resolved)} positive, {failures} failed"
        )
        return resolved
