"""Listing filter predicates, free-text search and API parameter mapping."""

from typing import Any, Optional

from colocapp.models.listing import ListingRecord
from colocapp.models.query import ALL, FurnishedFilter, ListingFilters

API_SORT = "newest"


def _in_range(value: float, bounds: tuple[float, Optional[float]]) -> bool:
    low, high = bounds
    if value < low:
        return False
    return high is None or value <= high


def matches_filters(record: ListingRecord, filters: ListingFilters) -> bool:
    """Inclusive ranges, exact property type, tri-state furnished, required services subset."""
    if not _in_range(record.details.rent, filters.price_range):
        return False
    if not _in_range(record.details.total_area, filters.area_range):
        return False
    if filters.property_type != ALL and record.details.property_type.lower() != filters.property_type.lower():
        return False
    if filters.furnished == FurnishedFilter.YES and not record.details.furnished:
        return False
    if filters.furnished == FurnishedFilter.NO and record.details.furnished:
        return False
    return all(record.services.get(key) is True for key in filters.services)


def matches_search(record: ListingRecord, query: str) -> bool:
    """Case-insensitive substring match over location, title, description and type."""
    needle = query.strip().lower()
    if not needle:
        return True
    haystack = (
        record.location.city,
        record.location.street,
        record.location.country,
        record.details.title,
        record.details.description,
        record.details.property_type,
    )
    return any(needle in (field or "").lower() for field in haystack)


def _number(value: float) -> Any:
    return int(value) if float(value).is_integer() else value


def filters_to_params(filters: ListingFilters, page: int, limit: int) -> dict[str, Any]:
    """Query string for ``GET /api/listings``."""
    params: dict[str, Any] = {
        "page": page,
        "limit": limit,
        "price_min": _number(filters.price_range[0]),
        "area_min": _number(filters.area_range[0]),
        "sort": API_SORT,
    }
    if filters.price_range[1] is not None:
        params["price_max"] = _number(filters.price_range[1])
    if filters.area_range[1] is not None:
        params["area_max"] = _number(filters.area_range[1])
    if filters.property_type != ALL:
        params["propertyType"] = filters.property_type
    if filters.furnished != FurnishedFilter.ALL:
        params["furnished"] = "true" if filters.furnished == FurnishedFilter.YES else "false"
    if filters.services:
        params["services"] = ",".join(sorted(filters.services))
    return params
