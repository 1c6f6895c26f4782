"""
Keyword-driven filter activation

A search keyword that mentions pets (any configured synonym, matched as a
case-insensitive substring) turns the pet-friendliness filter on and enables
annotated-first ordering. An explicit user opt-out always wins.
"""

import logging
from typing import Iterable, Optional, Tuple

from ...models.listing import AnnotationFilter, AnnotationFilterMode, ListingQuery
from ..config.settings import DEFAULT_PET_KEYWORDS

logger = logging.getLogger(__name__)


class KeywordMatcher:
    """Substring matcher over the pet keyword vocabulary"""

    def __init__(self, vocabulary: Optional[Iterable[str]] = None):
        terms = DEFAULT_PET_KEYWORDS if vocabulary is None else vocabulary
        self.vocabulary = tuple(t.strip().casefold() for t in terms if t and t.strip())

    def matches(self, keyword: Optional[str]) -> bool:
        if not keyword:
            return False
        lowered = keyword.casefold()
        return any(term in lowered for term in self.vocabulary)

    def effective_filter(self, query: ListingQuery) -> Tuple[AnnotationFilter, bool]:
        """
        Derive the filter actually applied to a query.

        Returns:
            (filter, priority_active): the possibly promoted filter, and whether
            annotated items should be ordered first
        """
        user_filter = query.annotation_filter
        keyword_hit = self.matches(query.keyword)

        if keyword_hit and user_filter.mode == AnnotationFilterMode.ANY:
            logger.debug(f"Keyword '{query.keyword}' activates the pet filter")
            effective = user_filter.model_copy(update={"mode": AnnotationFilterMode.REQUIRED})
        else:
            effective = user_filter

        keyword_priority = keyword_hit and not user_filter.is_excluded
        return effective, keyword_priority or query.prioritize_annotated
