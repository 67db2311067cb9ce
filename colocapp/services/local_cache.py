"""Persisted local key-value storage and the listings cache built on it."""

import json
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from colocapp.models.listing import ListingRecord
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

CACHE_ITEMS_KEY = "listingsCache"
CACHE_TIME_KEY = "listingsCacheTime"
DEFAULT_CACHE_TTL_SECONDS = 300


class KeyValueStorage(ABC):
    """String key-value storage persisted across app launches."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...


class JsonFileStorage(KeyValueStorage):
    """All entries kept in one JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Local storage unreadable, starting empty", path=str(self.path), error=str(e))
            return {}

    def _save(self, entries: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(entries), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        entries = self._load()
        entries[key] = value
        self._save(entries)

    def remove(self, key: str) -> None:
        entries = self._load()
        if entries.pop(key, None) is not None:
            self._save(entries)


class ListingsCache:
    """Snapshot of the first listings page with a time-to-live.

    Stored as ``listingsCache`` (JSON array of camelCase records) and
    ``listingsCacheTime`` (epoch millis).
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.storage = storage
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _now(self) -> float:
        return self.clock() if self.clock is not None else time.time()

    def read(self) -> Optional[list[ListingRecord]]:
        """Return cached records when younger than the TTL, else None."""
        stamp = self.storage.get(CACHE_TIME_KEY)
        raw = self.storage.get(CACHE_ITEMS_KEY)
        if stamp is None or raw is None:
            return None

        try:
            age_ms = self._now() * 1000 - int(stamp)
        except ValueError:
            return None
        if age_ms < 0 or age_ms >= self.ttl_seconds * 1000:
            logger.debug("Listings cache expired", age_ms=age_ms, ttl_seconds=self.ttl_seconds)
            return None

        try:
            return [ListingRecord.model_validate(item) for item in json.loads(raw)]
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning("Listings cache corrupt, ignoring", error=str(e))
            return None

    def write(self, records: list[ListingRecord]) -> None:
        payload = [r.model_dump(by_alias=True, mode="json") for r in records]
        self.storage.set(CACHE_ITEMS_KEY, json.dumps(payload))
        self.storage.set(CACHE_TIME_KEY, str(int(self._now() * 1000)))

    def clear(self) -> None:
        self.storage.remove(CACHE_ITEMS_KEY)
        self.storage.remove(CACHE_TIME_KEY)
