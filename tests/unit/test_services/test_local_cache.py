"""Tests for local storage and the listings cache."""

import pytest
from freezegun import freeze_time

from colocapp.models.listing import ListingRecord
from colocapp.services.local_cache import (
    CACHE_ITEMS_KEY,
    CACHE_TIME_KEY,
    JsonFileStorage,
    ListingsCache,
)
from tests.utils.factories import create_listing_documents


def _records(count=2):
    return [ListingRecord.model_validate(d) for d in create_listing_documents(count)]


@pytest.mark.unit
def test_cache_round_trip_within_ttl(storage):
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        cache = ListingsCache(storage, ttl_seconds=300)
        cache.write(_records())

        frozen_time.tick(299)
        cached = cache.read()

    assert [r.id for r in cached] == ["L000", "L001"]
    assert storage.entries[CACHE_TIME_KEY] == "1733745600000"


@pytest.mark.unit
def test_cache_expires_after_ttl(storage, freeze_time_fixture):
    cache = ListingsCache(storage, ttl_seconds=300)
    cache.write(_records())

    freeze_time_fixture.tick(300)

    assert cache.read() is None


@pytest.mark.unit
def test_cache_ignores_future_timestamp(storage):
    storage.set(CACHE_ITEMS_KEY, "[]")
    storage.set(CACHE_TIME_KEY, "9999999999999")

    assert ListingsCache(storage).read() is None


@pytest.mark.unit
def test_corrupt_cache_is_ignored(storage):
    cache = ListingsCache(storage, clock=lambda: 1000.0)
    storage.set(CACHE_TIME_KEY, "1000000")
    storage.set(CACHE_ITEMS_KEY, "{not json")

    assert cache.read() is None


@pytest.mark.unit
def test_clear_removes_both_keys(storage):
    cache = ListingsCache(storage)
    cache.write(_records(1))

    cache.clear()

    assert storage.entries == {}


@pytest.mark.unit
def test_json_file_storage_persists(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    JsonFileStorage(path).set("listingsCacheTime", "123")

    reopened = JsonFileStorage(path)

    assert reopened.get("listingsCacheTime") == "123"
    reopened.remove("listingsCacheTime")
    assert reopened.get("listingsCacheTime") is None


@pytest.mark.unit
def test_json_file_storage_unreadable_file_starts_empty(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("garbage", encoding="utf-8")

    assert JsonFileStorage(path).get("anything") is None
