"""
Pytest configuration and shared fixtures
Provides fakes for the catalog, detail and annotation sources
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pytest
import pytest_asyncio

# Add backend directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakeredis import aioredis as fakeredis_aioredis

from mytrip.exceptions import CatalogError, DetailLookupError
from mytrip.models.listing import CatalogPage, ListingQuery, RawItem
from mytrip.services.sources.annotation_store import InMemoryAnnotationStore
from mytrip.services.sources.base import CatalogSource, DetailSource


def build_items(count: int, start: int = 1, content_type: str = "12", prefix: str = "장소") -> List[RawItem]:
    """Numbered catalog items with ids 1000+n and zero-padded titles"""
    return [
        RawItem(
            contentid=str(1000 + n),
            title=f"{prefix} {n:03d}",
            contenttypeid=content_type,
            areacode="1",
            modifiedtime=f"202401{(n % 28) + 1:02d}120000",
        )
        for n in range(start, start + count)
    ]


class FakeCatalog(CatalogSource):
    """
    Scripted catalog.

    ``items`` is either one list for every query or a dict keyed by region.
    ``hold()`` returns an event the next call waits on before answering.
    """

    def __init__(
        self,
        items: Union[List[RawItem], Dict[Optional[str], List[RawItem]]],
        total_count: Optional[int] = None,
        fail_pages: Iterable[int] = (),
    ):
        self.items = items
        self.total_count = total_count
        self.fail_pages = set(fail_pages)
        self.calls: List[tuple] = []
        self._holds: List[asyncio.Event] = []

    def hold(self) -> asyncio.Event:
        event = asyncio.Event()
        self._holds.append(event)
        return event

    def _items_for(self, query: ListingQuery) -> List[RawItem]:
        if isinstance(self.items, dict):
            return self.items.get(query.region, [])
        return self.items

    async def _page(self, kind: str, query: ListingQuery, page: int, page_size: int) -> CatalogPage:
        self.calls.append((kind, query, page, page_size))
        if self._holds:
            gate = self._holds.pop(0)
            await gate.wait()
        if page in self.fail_pages:
            raise CatalogError(f"page {page} unavailable", status_code=503)

        items = self._items_for(query)
        total = len(items) if self.total_count is None else self.total_count
        start = (page - 1) * page_size
        return CatalogPage(
            items=tuple(items[start:start + page_size]),
            page_number=page,
            page_size=page_size,
            total_count=total,
        )

    async def search(self, query, page, page_size):
        return await self._page("search", query, page, page_size)

    async def list_items(self, query, page, page_size):
        return await self._page("list", query, page, page_size)

    async def area_codes(self):
        return [{"code": "1", "name": "서울"}, {"code": "6", "name": "부산"}]

    @property
    def pages_requested(self) -> List[int]:
        return [call[2] for call in self.calls]


class FakeDetailSource(DetailSource):
    """Detail lookups answered from a dict; ids in ``failing`` raise"""

    def __init__(self, chkpet: Optional[Dict[str, str]] = None, failing: Iterable[str] = ()):
        self.chkpet = chkpet or {}
        self.failing = set(failing)
        self.calls: List[tuple] = []

    async def get_detail(self, content_id, category_hint=None):
        self.calls.append((content_id, category_hint))
        if content_id in self.failing:
            raise DetailLookupError(content_id)
        return {"contentid": content_id, "chkpet": self.chkpet.get(content_id, "")}


@pytest.fixture
def make_items():
    """Factory for numbered RawItems"""
    return build_items


@pytest.fixture
def fake_catalog_cls():
    return FakeCatalog


@pytest.fixture
def fake_detail_cls():
    return FakeDetailSource


@pytest.fixture
def empty_store():
    return InMemoryAnnotationStore()


@pytest_asyncio.fixture
async def fake_redis_client():
    """Provide a fakeredis asyncio client for Redis-backed tests."""
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
def test_config_dir(tmp_path):
    """Temporary config directory holding a copy of the shipped listing config and schema"""
    import shutil

    source = Path(__file__).parent.parent / "mytrip" / "config"
    (tmp_path / "schemas").mkdir()
    shutil.copy(source / "listing_config.json", tmp_path / "listing_config.json")
    shutil.copy(
        source / "schemas" / "listing_config.schema.json",
        tmp_path / "schemas" / "listing_config.schema.json",
    )
    return tmp_path


# Pytest markers
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests against a simulated upstream")
