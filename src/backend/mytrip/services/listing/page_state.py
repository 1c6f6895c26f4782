"""
Page State

Immutable per-query pagination state. Every transition returns a new
PageState; the engine owns the current value and consumers only ever see
snapshots of it.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from ...models.listing import AggregatedItem, CatalogPage, ListingQuery, ListingSnapshot


def compute_more_available(raw_size: int, page_size: int, raw_fetched: int, total_count: int) -> bool:
    """
    Whether another catalog page should be requested.

    Based only on raw catalog figures: a full page and fewer raw items fetched
    than the catalog reports for the query. Filtering never enters here.
    """
    return raw_size == page_size and raw_fetched < total_count


def merge_unique(
    existing: Iterable[AggregatedItem],
    incoming: Iterable[AggregatedItem],
) -> Tuple[AggregatedItem, ...]:
    """Append ``incoming`` to ``existing``, skipping identifiers already present"""
    merged = list(existing)
    seen = {a.identifier for a in merged}
    for aggregated in incoming:
        if aggregated.identifier in seen:
            continue
        seen.add(aggregated.identifier)
        merged.append(aggregated)
    return tuple(merged)


@dataclass(frozen=True)
class PageState:
    """
    Attributes:
        query: Query this state belongs to
        generation: Engine generation token captured when the query became active
        pages: Raw catalog pages fetched so far, in load order
        aggregated: Every merged item (deduplicated, unfiltered) in arrival order
        display: Filtered and ordered items shown to consumers
        last_page: Last page number applied (0 before the first load)
        raw_fetched: Raw items received across all pages
        total_count: Catalog-reported total for the query
        more_available: Continuation signal
        in_flight_page: Page currently being loaded, if any
        error: Message of the last failed load
        failed_page: Page number of the last failed load
    """
    query: ListingQuery
    generation: int = 0
    pages: Tuple[CatalogPage, ...] = ()
    aggregated: Tuple[AggregatedItem, ...] = ()
    display: Tuple[AggregatedItem, ...] = ()
    last_page: int = 0
    raw_fetched: int = 0
    total_count: int = 0
    more_available: bool = False
    in_flight_page: Optional[int] = None
    error: Optional[str] = None
    failed_page: Optional[int] = None

    @classmethod
    def initial(cls, query: ListingQuery, generation: int = 0) -> "PageState":
        return cls(query=query, generation=generation)

    @property
    def is_loading(self) -> bool:
        return self.in_flight_page is not None

    @property
    def next_page(self) -> int:
        return self.last_page + 1

    def begin_request(self, page_number: int) -> "PageState":
        if self.in_flight_page is not None:
            raise RuntimeError(f"Page {self.in_flight_page} is already in flight")
        return replace(self, in_flight_page=page_number)

    def apply_page(
        self,
        page: CatalogPage,
        aggregated: Tuple[AggregatedItem, ...],
        display: Tuple[AggregatedItem, ...],
        page_size: int,
    ) -> "PageState":
        """
        Record a successfully loaded page.

        Args:
            page: Raw catalog page
            aggregated: Accumulated items including this page (already deduplicated)
            display: Display list derived from ``aggregated``
            page_size: Raw page size that was requested
        """
        raw_fetched = self.raw_fetched + page.raw_size
        return replace(
            self,
            pages=self.pages + (page,),
            aggregated=aggregated,
            display=display,
            last_page=page.page_number,
            raw_fetched=raw_fetched,
            total_count=page.total_count,
            more_available=compute_more_available(page.raw_size, page_size, raw_fetched, page.total_count),
            in_flight_page=None,
            error=None,
            failed_page=None,
        )

    def fail(self, error: str, page_number: Optional[int] = None) -> "PageState":
        """Record a failed load; accumulated items stay untouched"""
        return replace(
            self,
            in_flight_page=None,
            error=error,
            failed_page=page_number if page_number is not None else self.in_flight_page,
        )

    def abort(self) -> "PageState":
        """Clear the in-flight guard without recording an error (cancelled load)"""
        return replace(self, in_flight_page=None)

    def snapshot(self) -> ListingSnapshot:
        return ListingSnapshot(
            display_list=self.display,
            more_available=self.more_available,
            is_loading=self.is_loading,
            error=self.error,
            total_count=self.total_count,
            last_page=self.last_page,
        )
