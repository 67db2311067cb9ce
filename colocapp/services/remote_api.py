"""Companion REST API client (primary listings source)."""

from typing import Any, Optional

import httpx

from colocapp.utils.errors import NetworkError, RequestTimeoutError
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class ListingsApiClient:
    """Thin async client for ``GET /api/listings``.

    The API is optional and unreliable; every failure surfaces as NetworkError
    so callers can fall back to the record store.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def list_listings(self, params: dict[str, Any], token: Optional[str] = None) -> list[dict]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http.get(
                f"{self.base_url}/api/listings",
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Listings API timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"Listings API returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise NetworkError(f"Listings API request failed: {e}") from e

        if not isinstance(payload, dict) or not payload.get("success"):
            error = payload.get("error") if isinstance(payload, dict) else None
            raise NetworkError(f"Listings API reported failure: {error or 'unknown error'}")

        listings = payload.get("listings") or []
        logger.debug("Listings API page received", count=len(listings), page=params.get("page"))
        return listings

    async def aclose(self) -> None:
        await self._http.aclose()
