"""
Display ordering

Plain sorts (by title or by recency) and the annotated-first partition.
All functions are stable and return new lists.
"""

import unicodedata
from datetime import datetime
from typing import Iterable, List

from ...models.listing import AggregatedItem, SortMode


def title_key(title: str) -> str:
    """Collation key for titles: NFC-composed and casefolded"""
    return unicodedata.normalize("NFC", title or "").casefold()


def sort_items(items: Iterable[AggregatedItem], mode: SortMode) -> List[AggregatedItem]:
    if mode == SortMode.BY_RECENCY:
        # Newest first; items without a timestamp sink to the end
        return sorted(items, key=lambda a: a.item.modified_at or datetime.min, reverse=True)
    return sorted(items, key=lambda a: title_key(a.item.title))


def partition_annotated(items: Iterable[AggregatedItem]) -> List[AggregatedItem]:
    """Annotated items first, each group keeping its relative order"""
    items = list(items)
    return [a for a in items if a.is_annotated] + [a for a in items if not a.is_annotated]


def order_display(items: Iterable[AggregatedItem], mode: SortMode, prioritize: bool) -> List[AggregatedItem]:
    if prioritize:
        return partition_annotated(items)
    return sort_items(items, mode)
