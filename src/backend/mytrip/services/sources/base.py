"""
External Source Interfaces

Abstract interfaces for the three collaborators the listing engine pulls from:
the paginated catalog, the annotation store and the per-item detail endpoint.
Concrete adapters (HTTP, in-memory, database) implement these.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ...models.listing import AnnotationRecord, CatalogPage, ListingQuery


class CatalogSource(ABC):
    """
    Primary paginated item source.

    ``total_count`` on returned pages describes the whole query, not the page.
    Implementations raise ``CatalogError`` on any failure.
    """

    @abstractmethod
    async def search(self, query: ListingQuery, page: int, page_size: int) -> CatalogPage:
        """
        Keyword search.

        Args:
            query: Listing query; ``query.keyword`` must be set
            page: 1-based page number
            page_size: Number of raw items requested

        Returns:
            CatalogPage with raw items and the query-wide total count
        """
        pass

    @abstractmethod
    async def list_items(self, query: ListingQuery, page: int, page_size: int) -> CatalogPage:
        """Filter-only listing (region / category), no keyword."""
        pass

    @abstractmethod
    async def area_codes(self) -> List[Dict[str, str]]:
        """Region codes as ``{"code": ..., "name": ...}`` dicts."""
        pass

    async def fetch_page(self, query: ListingQuery, page: int, page_size: int) -> CatalogPage:
        """Route to ``search`` or ``list_items`` depending on the keyword."""
        if query.has_keyword:
            return await self.search(query, page, page_size)
        return await self.list_items(query, page, page_size)


class AnnotationStore(ABC):
    """
    Keyed store of pet-friendliness annotations.

    Coverage is not guaranteed: a store may hold nothing for items that do
    accept pets. Implementations raise ``AnnotationStoreError`` on failure.
    """

    @abstractmethod
    async def get_all(
        self,
        allowed_only: bool = True,
        limit: int = 1000,
        offset: int = 0
    ) -> List[AnnotationRecord]:
        """
        Bulk listing.

        Args:
            allowed_only: Only records with ``is_pet_allowed`` set
            limit: Maximum number of records
            offset: Pagination offset
        """
        pass

    @abstractmethod
    async def get_one(self, content_id: Any) -> Optional[AnnotationRecord]:
        """Single record by (un-normalized) identifier; None when absent."""
        pass

    @abstractmethod
    async def upsert(self, content_id: Any, fields: Dict[str, Any]) -> AnnotationRecord:
        """Create or update the record for ``content_id``."""
        pass


class DetailSource(ABC):
    """Per-item detail endpoint exposing the raw ``chkpet`` signal."""

    @abstractmethod
    async def get_detail(self, content_id: str, category_hint: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch the detail payload for one item.

        Raises:
            DetailLookupError: If the item cannot be looked up
        """
        pass
