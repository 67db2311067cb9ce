"""Document store client: abstract interface and Supabase-backed implementation.

Each collection is a table with an ``id`` text primary key and a ``data`` jsonb
column holding the camelCase document body.
"""

import asyncio
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from supabase import AsyncClient, AsyncClientOptions, acreate_client
from ulid import ULID

from colocapp.utils.errors import NotFoundError, RecordStoreError
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


@dataclass(frozen=True)
class Predicate:
    """Equality predicate on a dotted document path, e.g. ``metadata.userId``."""
    field: str
    value: Any
    op: str = "=="


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


class RecordStore(ABC):
    """Document store interface used by the wizard, the pipeline and account helpers."""

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> dict:
        """Return the document (with ``id``) or raise NotFoundError."""
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    @abstractmethod
    async def create(self, collection: str, data: dict, record_id: Optional[str] = None) -> str:
        """Store a new document and return its id (generated unless given)."""
        ...

    @abstractmethod
    async def update(self, collection: str, record_id: str, patch: dict) -> None:
        """Shallow-merge ``patch`` into an existing document."""
        ...

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        ...


def generate_record_id() -> str:
    """Generate a sortable text id (ULID format)."""
    return str(ULID())


def json_path(field: str, as_text: bool = True) -> str:
    """Translate ``metadata.userId`` into the PostgREST path ``data->metadata->>userId``."""
    parts = field.split(".")
    if len(parts) == 1:
        return f"data->>{parts[0]}" if as_text else f"data->{parts[0]}"
    head = "->".join(parts[:-1])
    arrow = "->>" if as_text else "->"
    return f"data->{head}{arrow}{parts[-1]}"


def _text_value(value: Any) -> str:
    # ->> yields text, so booleans compare as 'true' / 'false'
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


async def get_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> AsyncClient:
    """Create an async Supabase client from explicit settings or the environment."""
    url = url or os.environ.get("SUPABASE_URL")
    key = key or os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise RecordStoreError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    options = AsyncClientOptions(
        auto_refresh_token=False,
        persist_session=False,
    )
    client = await acreate_client(url, key, options)
    logger.info("Supabase client initialized", url=url)
    return client


class SupabaseClient:
    """Async context manager handing out the store's Supabase client, created on first use."""

    def __init__(self, store: "SupabaseRecordStore"):
        self.store = store

    async def __aenter__(self) -> AsyncClient:
        return await self.store.get_client()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type and not issubclass(exc_type, NotFoundError):
            logger.error(
                "Supabase operation error",
                error=str(exc_val),
                error_type=exc_type.__name__,
            )
        return False


class SupabaseRecordStore(RecordStore):
    """RecordStore over Supabase tables (one table per collection)."""

    def __init__(
        self,
        client: Optional[AsyncClient] = None,
        url: Optional[str] = None,
        key: Optional[str] = None,
    ):
        self._client = client
        self._url = url
        self._key = key
        self._client_lock = asyncio.Lock()

    async def get_client(self) -> AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = await get_supabase_client(self._url, self._key)
        return self._client

    @staticmethod
    def _row_to_document(row: dict) -> dict:
        document = dict(row.get("data") or {})
        document["id"] = row["id"]
        return document

    async def get(self, collection: str, record_id: str) -> dict:
        async with SupabaseClient(self) as client:
            try:
                result = await client.table(collection).select("*").eq("id", record_id).execute()
            except Exception as e:
                raise RecordStoreError(f"Failed to get {collection}/{record_id}: {e}") from e
            if not result.data:
                raise NotFoundError(f"{collection}/{record_id} not found")
            return self._row_to_document(result.data[0])

    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        async with SupabaseClient(self) as client:
            try:
                request = client.table(collection).select("*")
                for predicate in predicates:
                    if predicate.op == "==":
                        request = request.eq(json_path(predicate.field), _text_value(predicate.value))
                    elif predicate.op == "array-contains":
                        request = request.contains(json_path(predicate.field, as_text=False), [predicate.value])
                    else:
                        raise RecordStoreError(f"Unsupported predicate operator: {predicate.op}")
                if order is not None:
                    request = request.order(json_path(order.field), desc=order.descending)
                if limit is not None:
                    request = request.limit(limit)
                result = await request.execute()
            except RecordStoreError:
                raise
            except Exception as e:
                raise RecordStoreError(f"Failed to query {collection}: {e}") from e
            rows = result.data or []
            logger.debug("Record store query", collection=collection, rows=len(rows), limit=limit)
            return [self._row_to_document(row) for row in rows]

    async def create(self, collection: str, data: dict, record_id: Optional[str] = None) -> str:
        record_id = record_id or generate_record_id()
        async with SupabaseClient(self) as client:
            try:
                result = await client.table(collection).insert({"id": record_id, "data": data}).execute()
            except Exception as e:
                raise RecordStoreError(f"Failed to create {collection} record: {e}") from e
            if not result.data:
                raise RecordStoreError(f"Failed to create {collection} record: no data returned")
            return result.data[0]["id"]

    async def update(self, collection: str, record_id: str, patch: dict) -> None:
        current = await self.get(collection, record_id)
        current.pop("id", None)
        current.update(patch)
        async with SupabaseClient(self) as client:
            try:
                result = await client.table(collection).update({"data": current}).eq("id", record_id).execute()
            except Exception as e:
                raise RecordStoreError(f"Failed to update {collection}/{record_id}: {e}") from e
            if not result.data:
                raise RecordStoreError(f"Failed to update {collection}/{record_id}")

    async def delete(self, collection: str, record_id: str) -> None:
        async with SupabaseClient(self) as client:
            try:
                await client.table(collection).delete().eq("id", record_id).execute()
            except Exception as e:
                raise RecordStoreError(f"Failed to delete {collection}/{record_id}: {e}") from e
