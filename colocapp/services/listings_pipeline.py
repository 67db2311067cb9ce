"""Listings browse pipeline: cache, paginated fetch with fallback, filters and search."""

import math
from typing import Optional, Sequence

from colocapp.models.listing import ListingRecord
from colocapp.models.query import ListingFilters, ListingsQueryState, MapMarker
from colocapp.services.listing_filters import matches_search
from colocapp.services.listing_sources import ListingSource, PageRequest, SourceChain
from colocapp.services.local_cache import ListingsCache
from colocapp.utils.errors import DataSourcesExhaustedError, friendly_message
from colocapp.utils.logging import generate_operation_id, get_structured_logger, operation_context

logger = get_structured_logger(__name__)

DEFAULT_PAGE_SIZE = 10


def _dedupe(records: Sequence[ListingRecord], seen: set) -> list[ListingRecord]:
    fresh = []
    for record in records:
        key = record.id
        if key is not None and key in seen:
            continue
        if key is not None:
            seen.add(key)
        fresh.append(record)
    return fresh


def has_valid_coordinates(record: ListingRecord) -> bool:
    coords = record.location.coordinates
    if coords is None:
        return False
    lat, lng = coords.lat, coords.lng
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return False
    # 0,0 is the placeholder written when no address was resolved
    return not (lat == 0 and lng == 0)


class ListingsPipeline:
    """State and fetch logic behind one listings screen.

    ``mount``/``refresh``/``load_more``/``apply_filters`` are the event entry
    points. Refreshes bump a generation counter so results of superseded fetches
    are dropped; ``load_more`` is a no-op while any fetch is pending.
    """

    def __init__(
        self,
        sources: Sequence[ListingSource],
        cache: Optional[ListingsCache] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.chain = SourceChain(list(sources))
        self.cache = cache
        self.page_size = page_size
        self.state = ListingsQueryState()
        self.pipeline_id = generate_operation_id("listings")
        self._log = logger.bind(pipeline_id=self.pipeline_id)
        self._generation = 0
        self._in_flight = {"loading": 0, "refreshing": 0}
        self._loaded = False
        self._alive = True
        self.last_source: Optional[str] = None

    @property
    def pending(self) -> bool:
        return any(self._in_flight.values())

    def close(self) -> None:
        """Screen unmounted: pending fetches must not touch state."""
        self._alive = False

    async def mount(self) -> None:
        await self._fetch(page=1, force=False)

    async def refresh(self) -> None:
        self._generation += 1
        await self._fetch(page=1, force=True)

    async def load_more(self) -> None:
        if self.pending or not self._loaded or not self.state.has_more:
            return
        await self._fetch(page=self.state.page + 1, force=False)

    async def apply_filters(self, filters: ListingFilters) -> None:
        """Restart pagination from a non-cached page 1 under a new filter set.

        The filters are only committed together with the page they produced, so
        a failed fetch leaves items, page and filters consistent with each other.
        """
        self._generation += 1
        await self._fetch(page=1, force=True, filters=filters)

    def set_search_query(self, text: str) -> None:
        """Search only narrows the already-loaded items; it never fetches."""
        self.state = self.state.model_copy(update={"search_query": text})

    def visible_items(self) -> list[ListingRecord]:
        if not self.state.search_query.strip():
            return list(self.state.items)
        return [r for r in self.state.items if matches_search(r, self.state.search_query)]

    def map_markers(self) -> list[MapMarker]:
        """Same filtered set as the list view, minus items without usable coordinates."""
        return [
            MapMarker(
                listing_id=r.id,
                lat=r.location.coordinates.lat,
                lng=r.location.coordinates.lng,
                title=r.details.title,
                rent=r.details.rent,
            )
            for r in self.visible_items()
            if has_valid_coordinates(r)
        ]

    def _serve_from_cache(self) -> bool:
        if self.cache is None or not self.state.filters.is_default():
            return False
        cached = self.cache.read()
        if cached is None:
            return False
        items = _dedupe(cached, set())
        self._loaded = True
        self.state = self.state.model_copy(update={
            "items": items,
            "page": 1,
            "has_more": len(items) >= self.page_size,
            "error": None,
        })
        self._log.info("Listings served from cache", count=len(items))
        return True

    async def _fetch(self, page: int, force: bool, filters: Optional[ListingFilters] = None) -> None:
        if not self._alive:
            return
        if page == 1 and not force and self._serve_from_cache():
            return

        if filters is None:
            filters = self.state.filters
        generation = self._generation
        flag = "refreshing" if force and page == 1 else "loading"
        self.state = self.state.model_copy(update={flag: True})
        self._in_flight[flag] += 1
        try:
            with operation_context(self.pipeline_id):
                result = await self.chain.fetch(PageRequest(page, self.page_size, filters))
        except DataSourcesExhaustedError as e:
            if self._alive and generation == self._generation:
                self._log.error("No listing source available", attempts=len(e.attempts), page=page)
                self.state = self.state.model_copy(update={"error": friendly_message(e)})
            return
        finally:
            self._in_flight[flag] -= 1
            if self._alive:
                self.state = self.state.model_copy(update={flag: self._in_flight[flag] > 0})

        if not self._alive:
            self._log.debug("Fetch finished after close, discarded", page=page)
            return
        if generation != self._generation:
            self._log.debug("Superseded fetch discarded", page=page, generation=generation)
            return

        self.last_source = result.source
        self._loaded = True
        has_more = result.raw_count >= self.page_size
        if page == 1:
            items = _dedupe(result.records, set())
            if self.cache is not None and filters.is_default():
                self.cache.write(items)
        else:
            seen = {r.id for r in self.state.items if r.id is not None}
            items = [*self.state.items, *_dedupe(result.records, seen)]

        self.state = self.state.model_copy(update={
            "items": items,
            "page": page,
            "has_more": has_more,
            "filters": filters,
            "error": None,
        })
        self._log.info(
            "Listings page loaded",
            page=page,
            received=len(result.records),
            total=len(items),
            has_more=has_more,
            source=result.source,
        )
