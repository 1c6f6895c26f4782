"""
Listing Aggregation Engine

Turns a ListingQuery into an incrementally growing display list by combining
the paginated catalog with pet-friendliness annotations.

Flow per page load:
1. Fetch the raw catalog page (failure -> error on state, items kept)
2. Derive the effective annotation filter (keyword activation)
3. Resolve annotations (store lookup, or per-item detail fallback)
4. Merge, deduplicate, filter and order the accumulated list
5. Compute ``more_available`` from raw catalog figures only

Only one page load is in flight at a time. Results of a load whose query was
replaced while it was running are discarded.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from ...exceptions import CatalogError
from ...models.listing import (
    AggregatedItem,
    AnnotationFilter,
    CatalogPage,
    ListingQuery,
    ListingSnapshot,
    LoadMode,
    RawItem,
)
from ...utils.logging_context import bind_query_context, log_context
from ..config.settings import DEFAULT_PAGE_SIZE
from ..sources.base import CatalogSource
from .keywords import KeywordMatcher
from .page_state import PageState, merge_unique
from .resolution import AnnotationResolver, ResolutionPlan, satisfies_filter
from .sorting import order_display

logger = logging.getLogger(__name__)

Subscriber = Callable[[ListingSnapshot], None]


class ListingAggregationEngine:
    """
    Owns the PageState for the active query.

    Consumers call ``configure`` / ``request_next_page`` / ``retry`` and observe
    changes through ``subscribe``. State is never mutated outside this class.
    """

    def __init__(
        self,
        catalog: CatalogSource,
        resolver: AnnotationResolver,
        matcher: Optional[KeywordMatcher] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Args:
            catalog: Primary paginated source
            resolver: Annotation resolver (store + detail fallback)
            matcher: Keyword matcher; default vocabulary when omitted
            page_size: Raw catalog page size
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        self.catalog = catalog
        self.resolver = resolver
        self.matcher = matcher or KeywordMatcher()
        self.page_size = page_size

        self._state: Optional[PageState] = None
        self._generation = 0
        self._plan: Optional[ResolutionPlan] = None
        self._plan_generation = -1
        self._subscribers: List[Subscriber] = []

        logger.info(f"ListingAggregationEngine initialized (page_size: {page_size})")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> Optional[PageState]:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> ListingSnapshot:
        if self._state is None:
            return ListingSnapshot()
        return self._state.snapshot()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set_state(self, state: PageState):
        self._state = state
        snapshot = state.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Listing subscriber raised")

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def _activate(self, query: ListingQuery):
        self._generation += 1
        self._plan = None
        self._plan_generation = -1
        bind_query_context(query)
        logger.info(f"Query activated (generation {self._generation})")
        self._set_state(PageState.initial(query, self._generation))

    async def configure(self, query: ListingQuery) -> PageState:
        """
        Make ``query`` the active query and load its first page.

        Re-configuring with an equal query keeps the current state.
        """
        if self._state is not None and self._state.query == query:
            return self._state

        self._activate(query)
        return await self.load_page(query, 1, LoadMode.REPLACE)

    async def request_next_page(self) -> Optional[PageState]:
        """
        Load ``last_page + 1`` when more items are available and nothing is in flight.

        Returns:
            New state, or None when the request was skipped
        """
        state = self._state
        if state is None or state.is_loading or not state.more_available:
            return None
        return await self.load_page(state.query, state.next_page, LoadMode.APPEND)

    async def retry(self) -> Optional[PageState]:
        """Re-issue the last failed page load, if any"""
        state = self._state
        if state is None or state.failed_page is None or state.is_loading:
            return None
        mode = LoadMode.REPLACE if state.failed_page == 1 else LoadMode.APPEND
        logger.info(f"Retrying page {state.failed_page}")
        return await self.load_page(state.query, state.failed_page, mode)

    async def load_page(self, query: ListingQuery, page_number: int, mode: LoadMode = LoadMode.APPEND) -> PageState:
        """
        Load one catalog page for ``query``.

        A query different from the active one is activated first (replacing
        all accumulated state). When a load is already in flight the call is
        a no-op and returns the current state.

        Returns:
            The resulting state; for a superseded load, the state of the
            query that replaced it
        """
        if page_number < 1:
            raise ValueError("page_number must be >= 1")

        if self._state is None or self._state.query != query:
            self._activate(query)

        if self._state.is_loading:
            logger.debug(f"Page {self._state.in_flight_page} already in flight, skipping page {page_number}")
            return self._state

        generation = self._generation
        # Guard is set before the first suspension point
        self._set_state(self._state.begin_request(page_number))

        with log_context(page=page_number, load_mode=mode.value):
            try:
                return await self._load(query, page_number, mode, generation)
            except asyncio.CancelledError:
                if self._is_current(generation):
                    self._set_state(self._state.abort())
                raise

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _load(self, query: ListingQuery, page_number: int, mode: LoadMode, generation: int) -> PageState:
        try:
            page = await self.catalog.fetch_page(query, page_number, self.page_size)
        except CatalogError as e:
            return self._fail(generation, page_number, str(e))
        except Exception as e:
            logger.exception(f"Unexpected catalog failure on page {page_number}")
            return self._fail(generation, page_number, str(e) or e.__class__.__name__)

        if not self._is_current(generation):
            logger.info(f"Discarding stale page {page_number} (generation {generation})")
            return self._state

        logger.info(f"Catalog page {page_number}: {page.raw_size} raw items / {page.total_count} total")

        try:
            return await self._apply(query, page, page_number, mode, generation)
        except Exception as e:
            logger.exception(f"Failed to process page {page_number}")
            return self._fail(generation, page_number, str(e) or e.__class__.__name__)

    async def _apply(
        self, query: ListingQuery, page: CatalogPage, page_number: int, mode: LoadMode, generation: int
    ) -> PageState:
        """Resolve annotations for a fetched page and merge it into the state"""
        annotation_filter, prioritize = self.matcher.effective_filter(query)
        candidates = self._local_candidates(query, page.items)

        plan = await self._plan_for(generation)
        if not self._is_current(generation):
            logger.info(f"Discarding stale page {page_number} after store lookup")
            return self._state

        needed = annotation_filter.is_required or prioritize
        annotations = await self.resolver.resolve(plan, candidates, needed=needed)
        if not self._is_current(generation):
            logger.info(f"Discarding stale page {page_number} after annotation resolution")
            return self._state

        incoming = [AggregatedItem(item=item, annotation=annotations.get(item.normalized_id)) for item in candidates]

        if mode == LoadMode.REPLACE:
            base = PageState.initial(query, generation)
        else:
            base = self._state

        aggregated = merge_unique(base.aggregated, incoming)
        display = tuple(self._derive_display(aggregated, query, annotation_filter, prioritize))

        new_state = base.apply_page(page, aggregated, display, self.page_size)
        self._set_state(new_state)

        logger.info(
            f"Page {page_number} applied: {len(display)} displayed / {len(aggregated)} accumulated, "
            f"more_available={new_state.more_available}"
        )
        return new_state

    def _fail(self, generation: int, page_number: int, message: str) -> PageState:
        if not self._is_current(generation):
            logger.info(f"Ignoring failure of stale page {page_number}: {message}")
            return self._state
        logger.warning(f"Page {page_number} failed: {message}")
        self._set_state(self._state.fail(message, page_number))
        return self._state

    async def _plan_for(self, generation: int) -> ResolutionPlan:
        # One strategy decision per query scope
        if self._plan is not None and self._plan_generation == generation:
            return self._plan
        plan = await self.resolver.plan()
        if self._is_current(generation):
            self._plan = plan
            self._plan_generation = generation
        return plan

    @staticmethod
    def _local_candidates(query: ListingQuery, items: Sequence[RawItem]) -> List[RawItem]:
        """Items eligible for display: identified, and inside a multi-category union"""
        candidates = []
        for item in items:
            if not item.normalized_id:
                logger.debug(f"Skipping catalog item without identifier: {item.title!r}")
                continue
            if len(query.categories) > 1 and item.contenttypeid not in query.categories:
                continue
            candidates.append(item)
        return candidates

    @staticmethod
    def _derive_display(
        aggregated: Sequence[AggregatedItem],
        query: ListingQuery,
        annotation_filter: AnnotationFilter,
        prioritize: bool,
    ) -> List[AggregatedItem]:
        if annotation_filter.is_required:
            visible = [a for a in aggregated if satisfies_filter(a.annotation, annotation_filter)]
        else:
            visible = list(aggregated)
        return order_display(visible, query.sort_mode, prioritize)

