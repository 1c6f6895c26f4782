"""
Unit tests for ListingAggregationEngine

Covers the continuation signal, deduplication, keyword-driven filtering with
the detail fallback, ordering, stale-result handling and error recovery.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from mytrip.models.listing import (
    AnnotationFilter,
    AnnotationFilterMode,
    ListingQuery,
    LoadMode,
    PetSizeLimit,
    RawItem,
    SortMode,
)
from mytrip.services.sources.annotation_store import InMemoryAnnotationStore


PET_QUERY = ListingQuery(keyword="pet-friendly cafe")


def ids(state):
    return [a.identifier for a in state.display]


@pytest.mark.unit
class TestMoreAvailable:

    @pytest.mark.asyncio
    async def test_full_page_with_remaining_total(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))

        state = await engine.configure(ListingQuery())

        assert state.more_available is True
        assert len(state.display) == 20

    @pytest.mark.asyncio
    async def test_short_page_ends_pagination(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(17)))

        state = await engine.configure(ListingQuery())

        assert state.more_available is False

    @pytest.mark.asyncio
    async def test_filter_dropping_every_item_keeps_more_available(
        self, build_engine, fake_catalog_cls, make_items, fake_detail_cls
    ):
        # Detail fallback finds nothing positive on page 1
        engine = build_engine(fake_catalog_cls(make_items(57)), detail=fake_detail_cls())

        state = await engine.configure(PET_QUERY)

        assert state.display == ()
        assert state.more_available is True
        assert state.raw_fetched == 20

    @pytest.mark.asyncio
    async def test_last_page_of_three_ends_regardless_of_filter(
        self, build_engine, fake_catalog_cls, make_items, fake_detail_cls
    ):
        detail = fake_detail_cls({str(1000 + n): "가능" for n in range(41, 58)})
        engine = build_engine(fake_catalog_cls(make_items(57)), detail=detail)

        await engine.configure(PET_QUERY)
        await engine.request_next_page()
        state = await engine.request_next_page()

        assert state.last_page == 3
        assert state.raw_fetched == 57
        assert state.more_available is False
        assert len(state.display) == 17

    @pytest.mark.asyncio
    async def test_no_request_once_exhausted(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(10))
        engine = build_engine(catalog)
        await engine.configure(ListingQuery())

        assert engine.state.in_flight_page is None
        assert catalog.pages_requested == [1]


@pytest.mark.unit
class TestDetailFallbackScenario:

    @pytest.mark.asyncio
    async def test_pet_keyword_with_empty_store(self, build_engine, fake_catalog_cls, make_items, fake_detail_cls):
        items = make_items(57)
        detail = fake_detail_cls({"1003": "가능", "1007": "Y", "1011": "불가", "1015": " 가능 "})
        catalog = fake_catalog_cls(items)
        engine = build_engine(catalog, store=InMemoryAnnotationStore(), detail=detail)

        state = await engine.configure(PET_QUERY)

        assert catalog.calls[0][0] == "search"
        assert len(detail.calls) == 20
        assert ids(state) == ["1003", "1007", "1015"]
        assert all(a.is_annotated for a in state.display)
        assert state.more_available is True
        assert state.total_count == 57

    @pytest.mark.asyncio
    async def test_fallback_failures_never_abort_the_page(
        self, build_engine, fake_catalog_cls, make_items, fake_detail_cls
    ):
        failing = {str(1000 + n) for n in range(1, 21)}
        engine = build_engine(fake_catalog_cls(make_items(57)), detail=fake_detail_cls(failing=failing))

        state = await engine.configure(PET_QUERY)

        assert state.error is None
        assert state.display == ()
        assert state.more_available is True

    @pytest.mark.asyncio
    async def test_strategy_is_decided_once_per_query(self, build_engine, fake_catalog_cls, make_items, fake_detail_cls):
        store = AsyncMock()
        store.get_all.return_value = []
        engine = build_engine(fake_catalog_cls(make_items(57)), store=store, detail=fake_detail_cls())

        await engine.configure(PET_QUERY)
        await engine.request_next_page()
        await engine.request_next_page()

        assert store.get_all.await_count == 1

    @pytest.mark.asyncio
    async def test_no_detail_calls_without_filter_or_priority(
        self, build_engine, fake_catalog_cls, make_items, fake_detail_cls
    ):
        detail = fake_detail_cls({"1001": "가능"})
        engine = build_engine(fake_catalog_cls(make_items(57)), detail=detail)

        state = await engine.configure(ListingQuery(keyword="경복궁"))

        assert detail.calls == []
        assert len(state.display) == 20


@pytest.mark.unit
class TestStoreBacked:

    @pytest.fixture
    def store(self):
        return InMemoryAnnotationStore([
            {"content_id": 1002, "is_pet_allowed": True, "pet_size_limit": "대형견", "pet_count_limit": 3},
            {"content_id": "1005", "is_pet_allowed": True, "pet_size_limit": "small"},
            {"content_id": "1009.0", "is_pet_allowed": True},
            {"content_id": "1010", "is_pet_allowed": False},
        ])

    @pytest.mark.asyncio
    async def test_required_filter_keeps_positive_records(
        self, build_engine, fake_catalog_cls, make_items, fake_detail_cls, store
    ):
        detail = fake_detail_cls()
        engine = build_engine(fake_catalog_cls(make_items(57)), store=store, detail=detail)
        query = ListingQuery(annotation_filter=AnnotationFilter(mode=AnnotationFilterMode.REQUIRED))

        state = await engine.configure(query)

        assert ids(state) == ["1002", "1005", "1009"]
        assert detail.calls == []

    @pytest.mark.asyncio
    async def test_size_and_count_constraints(self, build_engine, fake_catalog_cls, make_items, store):
        engine = build_engine(fake_catalog_cls(make_items(57)), store=store)
        query = ListingQuery(annotation_filter=AnnotationFilter(
            mode=AnnotationFilterMode.REQUIRED, pet_size=PetSizeLimit.MEDIUM, min_pet_count=2,
        ))

        state = await engine.configure(query)

        # 1005 only takes small pets; 1009 has no recorded limits
        assert ids(state) == ["1002", "1009"]

    @pytest.mark.asyncio
    async def test_annotations_attached_without_filter(self, build_engine, fake_catalog_cls, make_items, store):
        engine = build_engine(fake_catalog_cls(make_items(57)), store=store)

        state = await engine.configure(ListingQuery())

        by_id = {a.identifier: a for a in state.display}
        assert by_id["1002"].is_annotated
        assert by_id["1010"].annotation is not None
        assert not by_id["1010"].is_annotated
        assert by_id["1001"].annotation is None

    @pytest.mark.asyncio
    async def test_opt_out_shows_everything_in_plain_order(self, build_engine, fake_catalog_cls, make_items, store):
        engine = build_engine(fake_catalog_cls(make_items(57)), store=store)
        query = ListingQuery(
            keyword="반려견",
            annotation_filter=AnnotationFilter(mode=AnnotationFilterMode.EXCLUDED),
        )

        state = await engine.configure(query)

        assert len(state.display) == 20
        assert ids(state)[:3] == ["1001", "1002", "1003"]

    @pytest.mark.asyncio
    async def test_user_priority_partitions_without_filtering(
        self, build_engine, fake_catalog_cls, make_items, store
    ):
        engine = build_engine(fake_catalog_cls(make_items(57)), store=store)

        state = await engine.configure(ListingQuery(prioritize_annotated=True))

        assert len(state.display) == 20
        assert ids(state)[:4] == ["1002", "1005", "1009", "1001"]
        flags = [a.is_annotated for a in state.display]
        assert flags == sorted(flags, reverse=True)


@pytest.mark.unit
class TestAccumulation:

    @pytest.mark.asyncio
    async def test_duplicate_across_pages_kept_once(self, build_engine, fake_catalog_cls, make_items):
        items = make_items(20) + [RawItem(contentid=1005.0, title="장소 005 (재노출)")] + make_items(19, start=21)
        engine = build_engine(fake_catalog_cls(items, total_count=60))

        await engine.configure(ListingQuery())
        state = await engine.request_next_page()

        identifiers = [a.identifier for a in state.aggregated]
        assert identifiers.count("1005") == 1
        assert len(identifiers) == 39
        assert state.raw_fetched == 40

    @pytest.mark.asyncio
    async def test_accumulated_list_is_resorted(self, build_engine, fake_catalog_cls):
        page1 = [RawItem(contentid=str(n), title=t) for n, t in enumerate(["나", "라", "마", "바"], start=1)]
        page2 = [RawItem(contentid=str(n), title=t) for n, t in enumerate(["가", "다", "사", "아"], start=5)]
        engine = build_engine(fake_catalog_cls(page1 + page2), page_size=4)

        await engine.configure(ListingQuery(sort_mode=SortMode.BY_NAME))
        state = await engine.request_next_page()

        assert [a.item.title for a in state.display] == ["가", "나", "다", "라", "마", "바", "사", "아"]

    @pytest.mark.asyncio
    async def test_multi_category_union_filtered_locally(self, build_engine, fake_catalog_cls, make_items):
        items = make_items(10, content_type="12") + make_items(5, start=11, content_type="39") + \
            make_items(5, start=16, content_type="32")
        catalog = fake_catalog_cls(items)
        engine = build_engine(catalog)

        state = await engine.configure(ListingQuery(categories=["12", "39"]))

        assert len(state.display) == 15
        assert {a.item.contenttypeid for a in state.display} == {"12", "39"}
        assert state.raw_fetched == 20

    @pytest.mark.asyncio
    async def test_items_without_identifier_are_not_displayed(self, build_engine, fake_catalog_cls, make_items):
        items = make_items(3) + [RawItem(contentid="  ", title="빈 아이디")]
        engine = build_engine(fake_catalog_cls(items))

        state = await engine.configure(ListingQuery())

        assert len(state.display) == 3
        assert state.raw_fetched == 4

    @pytest.mark.asyncio
    async def test_replace_mode_discards_accumulated_items(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))
        query = ListingQuery()
        await engine.configure(query)
        await engine.request_next_page()

        state = await engine.load_page(query, 1, LoadMode.REPLACE)

        assert len(state.aggregated) == 20
        assert state.raw_fetched == 20
        assert state.last_page == 1


@pytest.mark.unit
class TestQueryChanges:

    @pytest.mark.asyncio
    async def test_region_change_discards_state_and_stale_result(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls({
            "1": make_items(57, prefix="서울"),
            "6": make_items(30, start=501, prefix="부산"),
        })
        engine = build_engine(catalog)
        seoul = ListingQuery(region="1")
        busan = ListingQuery(region="6")
        await engine.configure(seoul)

        gate = catalog.hold()
        stale = asyncio.create_task(engine.request_next_page())
        await asyncio.sleep(0)
        assert engine.snapshot().is_loading

        busan_state = await engine.configure(busan)
        gate.set()
        stale_result = await stale

        assert engine.state.query == busan
        assert stale_result is engine.state
        assert all(a.item.title.startswith("부산") for a in engine.state.display)
        assert engine.state.last_page == 1
        assert engine.state.raw_fetched == 20
        assert busan_state.generation == engine.generation

    @pytest.mark.asyncio
    async def test_stale_failure_is_ignored(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(57), fail_pages={2})
        engine = build_engine(catalog)
        await engine.configure(ListingQuery(region="1"))

        gate = catalog.hold()
        stale = asyncio.create_task(engine.request_next_page())
        await asyncio.sleep(0)
        await engine.configure(ListingQuery(region="6"))
        gate.set()
        await stale

        assert engine.state.error is None

    @pytest.mark.asyncio
    async def test_same_query_does_not_reload(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(57))
        engine = build_engine(catalog)

        await engine.configure(ListingQuery(keyword="경복궁"))
        await engine.configure(ListingQuery(keyword=" 경복궁 "))

        assert catalog.pages_requested == [1]

    @pytest.mark.asyncio
    async def test_load_page_for_another_query_activates_it(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))
        await engine.configure(ListingQuery(region="1"))
        generation = engine.generation

        state = await engine.load_page(ListingQuery(region="6"), 1, LoadMode.APPEND)

        assert engine.generation == generation + 1
        assert state.query.region == "6"


@pytest.mark.unit
class TestInFlightGuard:

    @pytest.mark.asyncio
    async def test_concurrent_requests_issue_one_load(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(100))
        engine = build_engine(catalog)
        await engine.configure(ListingQuery())

        gate = catalog.hold()
        first = asyncio.create_task(engine.request_next_page())
        second = asyncio.create_task(engine.request_next_page())
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)

        assert catalog.pages_requested == [1, 2]

    @pytest.mark.asyncio
    async def test_guard_is_set_before_first_await(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(100))
        engine = build_engine(catalog)
        await engine.configure(ListingQuery())

        gate = catalog.hold()
        task = asyncio.create_task(engine.request_next_page())
        await asyncio.sleep(0)

        assert engine.state.in_flight_page == 2
        assert engine.state.in_flight_page is None

        gate.set()
        await task
        assert engine.state.in_flight_page is None

    @pytest.mark.asyncio
    async def test_cancelled_load_releases_guard(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(100))
        engine = build_engine(catalog)
        await engine.configure(ListingQuery())

        catalog.hold()
        task = asyncio.create_task(engine.request_next_page())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert engine.state.is_loading is False
        assert engine.state.error is None


@pytest.mark.unit
class TestErrors:

    @pytest.mark.asyncio
    async def test_catalog_failure_preserves_items(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(57), fail_pages={2})
        engine = build_engine(catalog)
        loaded = await engine.configure(ListingQuery())

        failed = await engine.request_next_page()

        assert failed.error == "page 2 unavailable"
        assert failed.failed_page == 2
        assert failed.display == loaded.display
        assert failed.last_page == 1
        assert engine.snapshot().error == "page 2 unavailable"

    @pytest.mark.asyncio
    async def test_retry_reissues_failed_page(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(57), fail_pages={2})
        engine = build_engine(catalog)
        await engine.configure(ListingQuery())
        await engine.request_next_page()

        catalog.fail_pages.clear()
        state = await engine.retry()

        assert state.error is None
        assert state.last_page == 2
        assert len(state.display) == 40
        assert catalog.pages_requested == [1, 2, 2]

    @pytest.mark.asyncio
    async def test_first_page_failure_then_retry(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(57), fail_pages={1})
        engine = build_engine(catalog)

        failed = await engine.configure(ListingQuery())
        assert failed.error is not None
        assert failed.display == ()

        catalog.fail_pages.clear()
        state = await engine.retry()

        assert len(state.display) == 20
        assert state.more_available is True

    @pytest.mark.asyncio
    async def test_retry_without_failure_is_noop(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))
        await engine.configure(ListingQuery())

        assert await engine.retry() is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error_state(self, build_engine, make_items):
        catalog = AsyncMock()
        catalog.fetch_page.side_effect = RuntimeError("socket closed")
        engine = build_engine(catalog)

        state = await engine.configure(ListingQuery())

        assert state.error == "socket closed"
        assert state.is_loading is False

    @pytest.mark.asyncio
    async def test_resolver_failure_releases_guard(self, build_engine, fake_catalog_cls, make_items):
        catalog = fake_catalog_cls(make_items(57))
        engine = build_engine(catalog)
        resolve = engine.resolver.resolve
        engine.resolver.resolve = AsyncMock(side_effect=RuntimeError("store unreachable"))

        failed = await engine.configure(ListingQuery())

        assert failed.is_loading is False
        assert failed.in_flight_page is None
        assert failed.error == "store unreachable"
        assert failed.failed_page == 1

        engine.resolver.resolve = resolve
        state = await engine.retry()

        assert state.error is None
        assert len(state.display) == 20
        assert catalog.pages_requested == [1, 1]

    @pytest.mark.asyncio
    async def test_processing_failure_on_later_page_keeps_items(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))
        loaded = await engine.configure(ListingQuery())
        resolve = engine.resolver.resolve
        engine.resolver.resolve = AsyncMock(side_effect=KeyError("contentid"))

        failed = await engine.request_next_page()

        assert failed.is_loading is False
        assert failed.failed_page == 2
        assert failed.display == loaded.display
        assert engine.state.in_flight_page is None

        engine.resolver.resolve = resolve
        state = await engine.retry()
        assert len(state.display) == 40


@pytest.mark.unit
class TestSubscribe:

    @pytest.mark.asyncio
    async def test_subscribers_see_loading_then_result(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))
        seen = []
        engine.subscribe(seen.append)

        await engine.configure(ListingQuery())

        assert [s.is_loading for s in seen] == [False, True, False]
        assert len(seen[-1].display_list) == 20
        assert seen[-1].more_available is True

    @pytest.mark.asyncio
    async def test_unsubscribe(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))
        seen = []
        unsubscribe = engine.subscribe(seen.append)
        unsubscribe()

        await engine.configure(ListingQuery())

        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_loading(self, build_engine, fake_catalog_cls, make_items):
        engine = build_engine(fake_catalog_cls(make_items(57)))

        def broken(snapshot):
            raise ValueError("render failed")

        engine.subscribe(broken)
        state = await engine.configure(ListingQuery())

        assert len(state.display) == 20

    def test_snapshot_before_configure(self, build_engine, fake_catalog_cls):
        engine = build_engine(fake_catalog_cls([]))
        snapshot = engine.snapshot()
        assert snapshot.display_list == ()
        assert snapshot.more_available is False

    def test_invalid_page_size(self, build_engine, fake_catalog_cls):
        with pytest.raises(ValueError):
            build_engine(fake_catalog_cls([]), page_size=0)
