"""Client configuration read from environment variables."""

import os
from typing import Optional

from pydantic import BaseModel, Field


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    return value if value not in (None, "") else default


class ClientConfig(BaseModel):
    """Settings shared by the listing wizard, the listings pipeline and the adapters."""
    api_base_url: str = Field("http://localhost:5000", description="Companion REST API base URL")
    api_timeout_seconds: float = Field(5.0, gt=0, description="Timeout for primary API calls")
    page_size: int = Field(10, ge=1, description="Listings per page")
    cache_ttl_seconds: int = Field(300, ge=0, description="Listings cache time-to-live")
    cache_path: str = Field(".colocapp/cache.json", description="Local key-value cache file")

    listings_collection: str = "listings"

    cloudinary_upload_url: Optional[str] = None
    cloudinary_upload_preset: str = "colocations"
    cloudinary_api_key: Optional[str] = None

    places_api_key: Optional[str] = None
    places_country_bias: str = "fr"
    address_debounce_ms: int = Field(300, ge=0)
    address_min_chars: int = Field(3, ge=1)

    firebase_api_key: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a config from the process environment, keeping defaults for unset keys."""
        raw = {
            "api_base_url": _env("COLOC_API_BASE_URL"),
            "api_timeout_seconds": _env("COLOC_API_TIMEOUT_SECONDS"),
            "page_size": _env("COLOC_PAGE_SIZE"),
            "cache_ttl_seconds": _env("COLOC_CACHE_TTL_SECONDS"),
            "cache_path": _env("COLOC_CACHE_PATH"),
            "cloudinary_upload_url": _env("CLOUDINARY_UPLOAD_URL"),
            "cloudinary_upload_preset": _env("CLOUDINARY_UPLOAD_PRESET"),
            "cloudinary_api_key": _env("CLOUDINARY_API_KEY"),
            "places_api_key": _env("GOOGLE_PLACES_API_KEY"),
            "places_country_bias": _env("PLACES_COUNTRY_BIAS"),
            "address_debounce_ms": _env("ADDRESS_DEBOUNCE_MS"),
            "address_min_chars": _env("ADDRESS_MIN_CHARS"),
            "firebase_api_key": _env("FIREBASE_API_KEY"),
            "supabase_url": _env("SUPABASE_URL"),
            "supabase_key": _env("SUPABASE_SERVICE_ROLE_KEY"),
        }
        return cls(**{key: value for key, value in raw.items() if value is not None})
