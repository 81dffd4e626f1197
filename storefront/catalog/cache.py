"""Best-effort TTL cache for aggregated catalog data.

Entries are kept past their TTL so a stale copy can stand in when every
upstream is down; they leave the store only through ``clear()`` or the
``max_keys`` cap (oldest write first).
"""

from __future__ import annotations

import abc
import json
import logging
import pathlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Column, Float, MetaData, String, Table, Text, delete, insert, select
from sqlalchemy.engine import Engine

from storefront.catalog.models import Source, UnifiedFilters
from storefront.utils.dates import utc_timestamp

logger = logging.getLogger(__name__)

CACHE_PATH = pathlib.Path(".cache/catalog.json")


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    written_at: float


def listing_key(filters: UnifiedFilters) -> str:
    return f"products:{filters.cache_key()}"


def categories_key(source: Source) -> str:
    return f"categories:{source.value}"


class CacheStore(abc.ABC):
    @abc.abstractmethod
    def load(self, key: str) -> CacheEntry | None: ...

    @abc.abstractmethod
    def save(self, entry: CacheEntry) -> None: ...

    @abc.abstractmethod
    def delete(self, key: str) -> None: ...

    @abc.abstractmethod
    def ages(self) -> dict[str, float]:
        """Map of key to ``written_at`` for every stored entry."""

    @abc.abstractmethod
    def clear(self) -> None: ...


class MemoryStore(CacheStore):
    def __init__(self) -> None:
        self._data: dict[str, CacheEntry] = {}

    def load(self, key: str) -> CacheEntry | None:
        return self._data.get(key)

    def save(self, entry: CacheEntry) -> None:
        self._data[entry.key] = entry

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def ages(self) -> dict[str, float]:
        return {key: entry.written_at for key, entry in self._data.items()}

    def clear(self) -> None:
        self._data.clear()


class JsonFileStore(CacheStore):
    """Whole cache in one JSON document on disk, rewritten on every change."""

    def __init__(self, path: pathlib.Path = CACHE_PATH) -> None:
        self.path = pathlib.Path(path)
        self._data: dict[str, dict[str, Any]] = {}
        if self.path.exists():
            try:
                self._data = json.loads(self.path.read_text())
            except json.JSONDecodeError:
                logger.warning("Invalid catalog cache file %s; resetting", self.path)
                self._data = {}

    def load(self, key: str) -> CacheEntry | None:
        item = self._data.get(key)
        if item is None:
            return None
        return CacheEntry(key=key, value=item["value"], written_at=float(item["written_at"]))

    def save(self, entry: CacheEntry) -> None:
        self._data[entry.key] = {"value": entry.value, "written_at": entry.written_at}
        self._flush()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def ages(self) -> dict[str, float]:
        return {key: float(item["written_at"]) for key, item in self._data.items()}

    def clear(self) -> None:
        self._data = {}
        self.path.unlink(missing_ok=True)

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data))


metadata = MetaData()

cache_entries = Table(
    "catalog_cache",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
    Column("written_at", Float, nullable=False),
)


class SqlStore(CacheStore):
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(engine)

    def load(self, key: str) -> CacheEntry | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(cache_entries.c.value, cache_entries.c.written_at).where(cache_entries.c.key == key)
            ).first()
        if row is None:
            return None
        return CacheEntry(key=key, value=json.loads(row.value), written_at=float(row.written_at))

    def save(self, entry: CacheEntry) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(cache_entries).where(cache_entries.c.key == entry.key))
            conn.execute(
                insert(cache_entries).values(
                    key=entry.key,
                    value=json.dumps(entry.value),
                    written_at=entry.written_at,
                )
            )

    def delete(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(cache_entries).where(cache_entries.c.key == key))

    def ages(self) -> dict[str, float]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(cache_entries.c.key, cache_entries.c.written_at))
            return {row.key: float(row.written_at) for row in rows}

    def clear(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(cache_entries))


class CatalogCache:
    """Explicit cache handle; the aggregator is its only writer."""

    def __init__(
        self,
        store: CacheStore | None = None,
        *,
        clock: Callable[[], float] = utc_timestamp,
        max_keys: int | None = None,
    ) -> None:
        self.store = store or MemoryStore()
        self.clock = clock
        self.max_keys = max_keys

    def get(self, key: str) -> CacheEntry | None:
        try:
            return self.store.load(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None

    def set(self, key: str, value: Any) -> None:
        entry = CacheEntry(key=key, value=value, written_at=self.clock())
        try:
            self.store.save(entry)
            if self.max_keys is not None:
                self._evict(keep=key)
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    def is_fresh(self, entry: CacheEntry, ttl: float | None) -> bool:
        if ttl is None:
            return True
        return self.clock() - entry.written_at < ttl

    def get_fresh(self, key: str, ttl: float | None) -> CacheEntry | None:
        entry = self.get(key)
        if entry is not None and self.is_fresh(entry, ttl):
            return entry
        return None

    def clear(self) -> None:
        try:
            self.store.clear()
        except Exception as exc:
            logger.warning("Cache clear failed: %s", exc)

    def _evict(self, *, keep: str) -> None:
        ages = self.store.ages()
        overflow = len(ages) - self.max_keys
        if overflow <= 0:
            return
        candidates = sorted((age, key) for key, age in ages.items() if key != keep)
        for _, key in candidates[:overflow]:
            logger.info("Evicting cache entry %s", key)
            self.store.delete(key)
