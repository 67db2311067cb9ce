"""Tests for the listings browse pipeline."""

import asyncio

import pytest

from colocapp.models.listing import ListingRecord
from colocapp.models.query import FurnishedFilter, ListingFilters
from colocapp.services.listings_pipeline import ListingsPipeline, has_valid_coordinates
from colocapp.services.local_cache import ListingsCache
from colocapp.utils.errors import NetworkError
from tests.utils.factories import create_listing_document, create_listing_documents
from tests.utils.fakes import ScriptedSource


def _pipeline(*sources, storage=None, page_size=10):
    cache = ListingsCache(storage) if storage is not None else None
    return ListingsPipeline(list(sources), cache=cache, page_size=page_size)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mount_loads_first_page():
    source = ScriptedSource(create_listing_documents(15))
    pipeline = _pipeline(source)

    await pipeline.mount()

    assert len(pipeline.state.items) == 10
    assert pipeline.state.page == 1
    assert pipeline.state.has_more is True
    assert pipeline.state.loading is False
    assert pipeline.last_source == "scripted"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_more_appends_and_detects_end():
    pipeline = _pipeline(ScriptedSource(create_listing_documents(15)))
    await pipeline.mount()

    await pipeline.load_more()

    assert [r.id for r in pipeline.state.items] == [f"L{i:03d}" for i in range(15)]
    assert pipeline.state.page == 2
    assert pipeline.state.has_more is False

    await pipeline.load_more()
    assert pipeline.state.page == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pages_are_deduplicated_by_id():
    """A listing that shifts onto the next page is not listed twice."""
    documents = create_listing_documents(10)
    documents.insert(10, documents[9])
    documents += create_listing_documents(5, prefix="M")
    pipeline = _pipeline(ScriptedSource(documents))

    await pipeline.mount()
    await pipeline.load_more()

    ids = [r.id for r in pipeline.state.items]
    assert len(ids) == len(set(ids)) == 15


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fresh_cache_skips_network(storage):
    first = _pipeline(ScriptedSource(create_listing_documents(3)), storage=storage)
    await first.mount()

    source = ScriptedSource(create_listing_documents(3, prefix="X"))
    second = _pipeline(source, storage=storage)
    await second.mount()

    assert source.requests == []
    assert [r.id for r in second.state.items] == ["L000", "L001", "L002"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_bypasses_cache(storage):
    await _pipeline(ScriptedSource(create_listing_documents(3)), storage=storage).mount()
    source = ScriptedSource(create_listing_documents(2, prefix="X"))
    pipeline = _pipeline(source, storage=storage)
    await pipeline.mount()

    await pipeline.refresh()

    assert len(source.requests) == 1
    assert [r.id for r in pipeline.state.items] == ["X000", "X001"]
    assert pipeline.state.refreshing is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fallback_source_serves_when_remote_fails():
    remote = ScriptedSource(error=NetworkError("unreachable"), name="remote_api")
    store = ScriptedSource(create_listing_documents(4), name="record_store")
    pipeline = _pipeline(remote, store)

    await pipeline.mount()

    assert pipeline.last_source == "record_store"
    assert len(pipeline.state.items) == 4
    assert pipeline.state.error is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_all_sources_failing_sets_error_and_keeps_items():
    source = ScriptedSource(create_listing_documents(3))
    pipeline = _pipeline(source)
    await pipeline.mount()

    source.error = NetworkError("down")
    await pipeline.refresh()

    assert pipeline.state.error == "Listings could not be loaded. Pull to refresh to try again."
    assert len(pipeline.state.items) == 3
    assert pipeline.state.refreshing is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_more_ignored_while_fetch_pending():
    source = ScriptedSource(create_listing_documents(30))
    pipeline = _pipeline(source)
    await pipeline.mount()

    source.gate = asyncio.Event()
    first = asyncio.create_task(pipeline.load_more())
    await asyncio.sleep(0)
    await pipeline.load_more()
    source.gate.set()
    await first

    assert [r.page for r in source.requests] == [1, 2]
    assert pipeline.state.page == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_supersedes_in_flight_load_more():
    """A page arriving after a refresh started is dropped."""
    source = ScriptedSource(create_listing_documents(30))
    pipeline = _pipeline(source)
    await pipeline.mount()

    source.gate = asyncio.Event()
    stale = asyncio.create_task(pipeline.load_more())
    await asyncio.sleep(0)
    fresh = asyncio.create_task(pipeline.refresh())
    await asyncio.sleep(0)
    source.gate.set()
    await asyncio.gather(stale, fresh)

    assert pipeline.state.page == 1
    assert len(pipeline.state.items) == 10
    assert pipeline.state.loading is False
    assert pipeline.state.refreshing is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_apply_filters_resets_pagination_and_skips_cache(storage):
    source = ScriptedSource(create_listing_documents(30))
    pipeline = _pipeline(source, storage=storage)
    await pipeline.mount()
    await pipeline.load_more()

    filters = ListingFilters(services={"wifi"})
    await pipeline.apply_filters(filters)

    assert pipeline.state.page == 1
    assert pipeline.state.filters == filters
    assert source.requests[-1].filters == filters
    assert source.requests[-1].page == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_filter_change_keeps_previous_filters():
    """Pagination after a failed filter fetch continues the list that is on screen."""
    source = ScriptedSource(create_listing_documents(25))
    pipeline = _pipeline(source)
    await pipeline.mount()
    first_page_ids = [r.id for r in pipeline.state.items]

    source.error = NetworkError("down")
    await pipeline.apply_filters(ListingFilters(furnished=FurnishedFilter.NO))

    assert pipeline.state.filters == ListingFilters()
    assert pipeline.state.error is not None
    assert [r.id for r in pipeline.state.items] == first_page_ids

    source.error = None
    await pipeline.load_more()

    assert source.requests[-1].page == 2
    assert source.requests[-1].filters == ListingFilters()
    assert len(pipeline.state.items) == 20
    assert pipeline.state.filters.furnished == FurnishedFilter.ALL


@pytest.mark.unit
@pytest.mark.asyncio
async def test_filters_committed_with_their_first_page():
    source = ScriptedSource(create_listing_documents(5))
    pipeline = _pipeline(source)
    await pipeline.mount()
    source.gate = asyncio.Event()
    filters = ListingFilters(furnished=FurnishedFilter.YES)

    task = asyncio.create_task(pipeline.apply_filters(filters))
    await asyncio.sleep(0.01)
    assert pipeline.state.filters == ListingFilters()
    assert pipeline.state.refreshing is True

    source.gate.set()
    await task
    assert pipeline.state.filters == filters
    assert pipeline.state.page == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_narrows_without_fetching():
    documents = [
        create_listing_document(listing_id="nice", city="Nice"),
        create_listing_document(listing_id="paris", city="Paris"),
    ]
    documents[1]["location"]["street"] = "1 Rue de Rivoli"
    documents[1]["details"].update(title="Flat", description="Central")
    source = ScriptedSource(documents)
    pipeline = _pipeline(source)
    await pipeline.mount()

    pipeline.set_search_query("nice")

    assert [r.id for r in pipeline.visible_items()] == ["nice"]
    assert len(source.requests) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_map_markers_skip_missing_coordinates():
    documents = [
        create_listing_document(listing_id="a", coordinates={"lat": 43.7, "lng": 7.26}),
        create_listing_document(listing_id="b"),
        create_listing_document(listing_id="c", coordinates={"lat": 0, "lng": 0}),
    ]
    pipeline = _pipeline(ScriptedSource(documents))
    await pipeline.mount()

    markers = pipeline.map_markers()

    assert [m.listing_id for m in markers] == ["a"]
    assert markers[0].rent == 600


@pytest.mark.unit
def test_has_valid_coordinates_rejects_out_of_range():
    record = ListingRecord.model_validate(create_listing_document(coordinates={"lat": 95, "lng": 7}))

    assert not has_valid_coordinates(record)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_closed_pipeline_ignores_late_results():
    source = ScriptedSource(create_listing_documents(3))
    source.gate = asyncio.Event()
    pipeline = _pipeline(source)

    task = asyncio.create_task(pipeline.mount())
    await asyncio.sleep(0)
    pipeline.close()
    source.gate.set()
    await task

    assert pipeline.state.items == []
