"""Listings query models: filters, pipeline state and map markers."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from colocapp.models.listing import SERVICE_KEYS, ListingRecord


ALL = "all"


class FurnishedFilter(str, Enum):
    """Tri-state furnished filter. ALL imposes no constraint."""
    ALL = "all"
    YES = "yes"
    NO = "no"


class ListingFilters(BaseModel):
    """Filters pushed to the remote source (or applied client-side on fallback).

    Ranges are inclusive; an upper bound of None means unbounded.
    """
    price_range: tuple[float, Optional[float]] = (0, None)
    area_range: tuple[float, Optional[float]] = (0, None)
    property_type: str = ALL
    furnished: FurnishedFilter = FurnishedFilter.ALL
    services: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("services", mode="before")
    @classmethod
    def _known_services(cls, value):
        keys = frozenset(value or ())
        unknown = keys - set(SERVICE_KEYS)
        if unknown:
            raise ValueError(f"Unknown service keys: {sorted(unknown)}")
        return keys

    @field_validator("price_range", "area_range")
    @classmethod
    def _ordered_range(cls, value):
        low, high = value
        if high is not None and high < low:
            raise ValueError("Range upper bound is below its lower bound")
        return value

    def is_default(self) -> bool:
        return self == ListingFilters()


class ListingsQueryState(BaseModel):
    """State of one listings screen. Re-created on every mount."""
    items: list[ListingRecord] = Field(default_factory=list)
    page: int = Field(1, ge=1)
    has_more: bool = True
    filters: ListingFilters = Field(default_factory=ListingFilters)
    search_query: str = ""
    loading: bool = False
    refreshing: bool = False
    error: Optional[str] = Field(None, description="User-facing message after all sources failed")


class MapMarker(BaseModel):
    listing_id: Optional[str]
    lat: float
    lng: float
    title: str
    rent: float
