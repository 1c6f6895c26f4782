"""
Korea Tourism Organization API Client (KorService2)

HTTP adapter implementing both CatalogSource and DetailSource.

Endpoints used:
- areaBasedList2: filter-only listing
- searchKeyword2: keyword search
- detailIntro2: per-item operating info (carries the ``chkpet`` field)
- areaCode2: region codes

Common parameters: serviceKey, MobileOS, MobileApp, _type=json
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ...exceptions import CatalogError, DetailLookupError
from ...models.listing import CatalogPage, ListingQuery, RawItem
from ..config.settings import CatalogSettings
from .base import CatalogSource, DetailSource
from .response_cache import ResponseCache

logger = logging.getLogger(__name__)

SUCCESS_CODE = "0000"

AREA_BASED_LIST = "/areaBasedList2"
SEARCH_KEYWORD = "/searchKeyword2"
DETAIL_INTRO = "/detailIntro2"
AREA_CODE = "/areaCode2"


def _as_list(value: Any) -> List[Any]:
    # items.item is a single object when the page holds one item
    if not value:
        return []
    if isinstance(value, list):
        return value
    return [value]


class TourApiClient(CatalogSource, DetailSource):
    """
    Async client for the KorService2 catalog.

    Retries 429/502/503/504 responses and transport errors with exponential
    backoff (``retry_delay_seconds * 2 ** attempt``), then raises CatalogError.
    """

    def __init__(
        self,
        settings: CatalogSettings,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            settings: Catalog settings (base URL, key, retry policy)
            client: Shared httpx client; one is created (and owned) when omitted
            cache: Optional response cache
            sleep: Backoff sleep, injectable for tests
        """
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)
        self.cache = cache
        self._sleep = sleep

        logger.info(
            f"TourApiClient initialized - base_url: {settings.base_url}, "
            f"retries: {settings.max_retries}, cache: {'on' if cache else 'off'}"
        )

    async def close(self):
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "TourApiClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _build_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.settings.api_key:
            raise CatalogError("Tour API key is not configured (TOUR_API_KEY)")

        merged = {
            "serviceKey": self.settings.api_key,
            "MobileOS": self.settings.mobile_os,
            "MobileApp": self.settings.mobile_app,
            "_type": "json",
        }
        merged.update({k: v for k, v in params.items() if v is not None and v != ""})
        return merged

    async def _get_with_retry(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        max_retries = self.settings.max_retries
        last_error: Optional[Exception] = None

        for attempt in range(max_retries + 1):
            delay = self.settings.retry_delay_seconds * (2 ** attempt)
            try:
                response = await self.client.get(url, params=params)
            except httpx.TransportError as e:
                last_error = e
                logger.warning(f"Tour API transport error (attempt {attempt + 1}/{max_retries + 1}): {e}")
                if attempt < max_retries:
                    await self._sleep(delay)
                continue

            if response.status_code in self.settings.retryable_status_codes and attempt < max_retries:
                logger.warning(
                    f"Tour API returned {response.status_code}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{max_retries + 1})"
                )
                await self._sleep(delay)
                continue

            return response

        raise CatalogError("Tour API request failed after retries", cause=last_error)

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call an endpoint and return the validated JSON payload.

        Raises:
            CatalogError: Transport failure, non-2xx status, malformed body or non-0000 result code
        """
        full_params = self._build_params(params)

        if self.cache:
            cached = await self.cache.get(endpoint, full_params)
            if cached is not None:
                return cached

        response = await self._get_with_retry(f"{self.settings.base_url}{endpoint}", full_params)

        if not response.is_success:
            raise CatalogError(
                f"Tour API request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogError("Tour API returned a non-JSON body", status_code=response.status_code, cause=e) from e

        if not data:
            raise CatalogError("Tour API returned an empty body")

        result_code = data.get("resultCode")
        if result_code and result_code != SUCCESS_CODE:
            raise CatalogError(
                f"Tour API error: {result_code} - {data.get('resultMsg') or 'unknown error'}",
                result_code=result_code,
            )

        body = data.get("response")
        if not isinstance(body, dict):
            raise CatalogError("Tour API response has no 'response' object")

        header = body.get("header") or {}
        header_code = header.get("resultCode")
        if header_code is not None and header_code != SUCCESS_CODE:
            raise CatalogError(
                f"Tour API error: {header_code} - {header.get('resultMsg') or 'unknown error'}",
                result_code=header_code,
            )

        if self.cache:
            await self.cache.set(endpoint, full_params, data)

        return data

    @staticmethod
    def _body(data: Dict[str, Any]) -> Dict[str, Any]:
        return data.get("response", {}).get("body") or {}

    @classmethod
    def _items(cls, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        items = cls._body(data).get("items") or {}
        if not isinstance(items, dict):
            return []
        return _as_list(items.get("item"))

    @staticmethod
    def _to_raw_item(item: Dict[str, Any]) -> RawItem:
        if item.get("contentid") is None:
            item = {**item, "contentid": ""}
        return RawItem.model_validate(item)

    def _to_page(self, data: Dict[str, Any], page: int, page_size: int) -> CatalogPage:
        try:
            items = tuple(self._to_raw_item(item) for item in self._items(data))
        except ValidationError as e:
            raise CatalogError("Tour API returned a malformed item", cause=e) from e

        try:
            total_count = int(self._body(data).get("totalCount") or 0)
        except (TypeError, ValueError):
            total_count = 0

        return CatalogPage(items=items, page_number=page, page_size=page_size, total_count=total_count)

    # ------------------------------------------------------------------
    # CatalogSource
    # ------------------------------------------------------------------

    async def list_items(self, query: ListingQuery, page: int, page_size: int) -> CatalogPage:
        data = await self._request(AREA_BASED_LIST, {
            "areaCode": query.region,
            "contentTypeId": query.upstream_category,
            "arrange": query.sort_mode.value,
            "numOfRows": page_size,
            "pageNo": page,
        })
        result = self._to_page(data, page, page_size)
        logger.debug(f"areaBasedList2 page {page}: {result.raw_size} items / {result.total_count} total")
        return result

    async def search(self, query: ListingQuery, page: int, page_size: int) -> CatalogPage:
        if not query.keyword:
            raise ValueError("search requires a keyword")

        data = await self._request(SEARCH_KEYWORD, {
            "keyword": query.keyword,
            "areaCode": query.region,
            "contentTypeId": query.upstream_category,
            "arrange": query.sort_mode.value,
            "numOfRows": page_size,
            "pageNo": page,
        })
        result = self._to_page(data, page, page_size)
        logger.debug(
            f"searchKeyword2 '{query.keyword}' page {page}: "
            f"{result.raw_size} items / {result.total_count} total"
        )
        return result

    async def area_codes(self) -> List[Dict[str, str]]:
        data = await self._request(AREA_CODE, {
            "numOfRows": self.settings.area_code_rows,
            "pageNo": 1,
        })
        return [
            {"code": str(item.get("code", "")), "name": str(item.get("name", ""))}
            for item in self._items(data)
            if item.get("code") is not None
        ]

    # ------------------------------------------------------------------
    # DetailSource
    # ------------------------------------------------------------------

    async def get_detail(self, content_id: str, category_hint: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch detailIntro2 for one item.

        ``contentTypeId`` is mandatory upstream, so a missing hint fails the lookup.
        """
        if not content_id:
            raise DetailLookupError(content_id, "contentId is required")
        if not category_hint:
            raise DetailLookupError(content_id, f"contentTypeId is required for {content_id}")

        try:
            data = await self._request(DETAIL_INTRO, {
                "contentId": content_id,
                "contentTypeId": category_hint,
            })
        except CatalogError as e:
            raise DetailLookupError(content_id, f"Detail lookup failed for {content_id}: {e}") from e

        items = self._items(data)
        if not items:
            raise DetailLookupError(content_id, f"No detail found for {content_id}")
        return items[0]
