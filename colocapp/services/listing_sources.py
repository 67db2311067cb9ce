"""Listing data sources, tried in order: remote API first, record store as fallback."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from pydantic import ValidationError

from colocapp.models.listing import ListingRecord, ListingStatus
from colocapp.models.query import ListingFilters
from colocapp.services.auth_client import Session
from colocapp.services.listing_filters import filters_to_params, matches_filters
from colocapp.services.record_store import OrderBy, Predicate, RecordStore
from colocapp.services.remote_api import ListingsApiClient
from colocapp.utils.errors import (
    AuthError,
    AuthorizationError,
    ColocAppError,
    DataSourcesExhaustedError,
    NetworkError,
    RequestTimeoutError,
)
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


@dataclass(frozen=True)
class PageRequest:
    page: int
    page_size: int
    filters: ListingFilters


@dataclass
class PageResult:
    records: list[ListingRecord]
    # Size of the page before client-side filtering; decides has_more
    raw_count: int
    source: str = ""


@dataclass(frozen=True)
class SourceAttempt:
    source: str
    error: str
    error_type: str


def parse_records(documents: Iterable[dict]) -> list[ListingRecord]:
    """Validate raw documents, skipping malformed ones."""
    records = []
    for document in documents:
        try:
            records.append(ListingRecord.model_validate(document))
        except ValidationError as e:
            logger.warning(
                "Skipping malformed listing document",
                listing_id=document.get("id") if isinstance(document, dict) else None,
                error_count=e.error_count(),
            )
    return records


def is_publicly_visible(record: ListingRecord) -> bool:
    return record.status == ListingStatus.ACTIVE and record.is_visible


class ListingSource(ABC):
    name = "source"

    @abstractmethod
    async def fetch_page(self, request: PageRequest) -> PageResult:
        ...


class RemoteApiSource(ListingSource):
    """Companion API; filters are pushed down as query parameters."""
    name = "remote_api"

    def __init__(self, client: ListingsApiClient, session: Optional[Session] = None, timeout: float = 5.0):
        self.client = client
        self.session = session
        self.timeout = timeout

    async def _token(self) -> Optional[str]:
        if self.session is None or not self.session.active:
            return None
        try:
            return await self.session.get_token()
        except (AuthError, AuthorizationError, NetworkError) as e:
            logger.debug("Listing request sent without bearer token", error=str(e))
            return None

    async def fetch_page(self, request: PageRequest) -> PageResult:
        params = filters_to_params(request.filters, request.page, request.page_size)
        token = await self._token()
        try:
            documents = await asyncio.wait_for(self.client.list_listings(params, token), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"Listings API exceeded {self.timeout}s") from e
        records = [r for r in parse_records(documents) if is_publicly_visible(r)]
        return PageResult(records=records, raw_count=len(documents), source=self.name)


class RecordStoreSource(ListingSource):
    """Direct store query. It cannot push filters down, so they run client-side."""
    name = "record_store"

    def __init__(self, store: RecordStore, collection: str = "listings"):
        self.store = store
        self.collection = collection

    async def fetch_page(self, request: PageRequest) -> PageResult:
        documents = await self.store.query(
            self.collection,
            predicates=[
                Predicate("status", ListingStatus.ACTIVE.value),
                Predicate("isVisible", True),
            ],
            order=OrderBy("metadata.createdAt", descending=True),
            limit=request.page * request.page_size,
        )
        start = (request.page - 1) * request.page_size
        page_documents = documents[start:start + request.page_size]
        records = [
            r for r in parse_records(page_documents)
            if is_publicly_visible(r) and matches_filters(r, request.filters)
        ]
        return PageResult(records=records, raw_count=len(page_documents), source=self.name)


@dataclass
class SourceChain:
    """Ordered fallback over listing sources with a record of every failed attempt."""
    sources: Sequence[ListingSource]
    last_attempts: list[SourceAttempt] = field(default_factory=list)

    async def fetch(self, request: PageRequest) -> PageResult:
        attempts: list[SourceAttempt] = []
        for source in self.sources:
            try:
                result = await source.fetch_page(request)
            except ColocAppError as e:
                attempts.append(SourceAttempt(source.name, str(e), type(e).__name__))
                logger.warning(
                    "Listing source failed, trying next",
                    source=source.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    page=request.page,
                )
                continue
            self.last_attempts = attempts
            if attempts:
                logger.info("Listings served by fallback source", source=source.name, page=request.page)
            return result

        self.last_attempts = attempts
        raise DataSourcesExhaustedError(attempts)
