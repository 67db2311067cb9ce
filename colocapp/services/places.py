"""Place autocomplete client (Google Places web service)."""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel

from colocapp.models.listing import Coordinates
from colocapp.utils.errors import NetworkError, RequestTimeoutError
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"


class PlacePrediction(BaseModel):
    place_id: str
    description: str


class ResolvedAddress(BaseModel):
    """Structured address components of a selected prediction."""
    street: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = ""
    coordinates: Optional[Coordinates] = None


class PlacesClient(ABC):

    @abstractmethod
    async def autocomplete(self, text: str, country_bias: Optional[str] = None) -> list[PlacePrediction]:
        ...

    @abstractmethod
    async def details(self, place_id: str) -> ResolvedAddress:
        ...


def parse_address_components(result: dict) -> ResolvedAddress:
    """Build a ResolvedAddress from a place details ``result`` object."""
    parts: dict[str, str] = {}
    for component in result.get("address_components", []):
        for kind in component.get("types", []):
            parts.setdefault(kind, component.get("long_name", ""))

    street = " ".join(p for p in (parts.get("street_number"), parts.get("route")) if p)
    location = (result.get("geometry") or {}).get("location") or {}
    coordinates = None
    if location.get("lat") is not None and location.get("lng") is not None:
        coordinates = Coordinates(lat=location["lat"], lng=location["lng"])

    return ResolvedAddress(
        street=street,
        postal_code=parts.get("postal_code", ""),
        city=parts.get("locality") or parts.get("postal_town", ""),
        country=parts.get("country", ""),
        coordinates=coordinates,
    )


class GooglePlacesClient(PlacesClient):

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0):
        if not api_key:
            raise NetworkError("GOOGLE_PLACES_API_KEY must be set")
        self.api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def _get(self, endpoint: str, params: dict) -> dict:
        try:
            response = await self._http.get(
                f"{PLACES_BASE_URL}/{endpoint}/json",
                params={**params, "key": self.api_key},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Places {endpoint} timed out") from e
        except (httpx.HTTPError, ValueError) as e:
            raise NetworkError(f"Places {endpoint} failed: {e}") from e

        status = payload.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise NetworkError(f"Places {endpoint} returned {status}: {payload.get('error_message', '')}")
        return payload

    async def autocomplete(self, text: str, country_bias: Optional[str] = None) -> list[PlacePrediction]:
        params = {"input": text, "types": "address"}
        if country_bias:
            params["components"] = f"country:{country_bias}"
        payload = await self._get("autocomplete", params)
        return [
            PlacePrediction(place_id=p["place_id"], description=p.get("description", ""))
            for p in payload.get("predictions", [])
        ]

    async def details(self, place_id: str) -> ResolvedAddress:
        payload = await self._get("details", {"place_id": place_id, "fields": "address_component,geometry"})
        return parse_address_components(payload.get("result") or {})

    async def aclose(self) -> None:
        await self._http.aclose()
