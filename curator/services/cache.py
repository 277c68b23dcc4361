"""Expiring analysis cache.

Derived analyses (vision-model output, screenshot quality scores) are
expensive to recompute, so results are cached per ``(subject_key,
analysis_type)`` with a time-to-live.

The cache is an optimization, never a correctness dependency:
- Backend failures on reads degrade to a miss
- Backend failures on writes degrade to a no-op
- Both are logged and never raised to callers

Stores:
1. InMemoryCacheStore - process-local, lock-guarded
2. SupabaseCacheStore - PostgREST table shared by all workers

Usage:
    ```python
    cache = ExpiringCache(InMemoryCacheStore())
    await cache.put("shot-1", "vision", {"qualityScore": 82}, ttl_hours=1)
    payload = await cache.get("shot-1", "vision")
    ```
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

import structlog

from curator.config import CacheBackend, Settings, get_settings
from curator.errors import CacheBackendError
from curator.services.supabase_client import SupabaseClient

logger = structlog.get_logger()

Clock = Callable[[], datetime]

DEFAULT_TTL_HOURS = 24.0
DEFAULT_TOP_KEYS = 10


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload. Only hit_count changes after creation."""

    subject_key: str
    analysis_type: str
    payload: Any
    quality_score: float
    created_at: datetime
    expires_at: datetime
    hit_count: int = 0

    @property
    def composite_key(self) -> tuple[str, str]:
        return (self.subject_key, self.analysis_type)

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now


@dataclass
class CacheWrite:
    """One entry for ExpiringCache.batch_put."""

    key: str
    analysis_type: str
    payload: Any
    ttl_hours: Optional[float] = None
    quality_score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CacheWrite":
        return cls(
            key=str(data["key"]),
            analysis_type=str(data.get("type") or data.get("analysis_type")),
            payload=data.get("data", data.get("payload")),
            ttl_hours=data.get("ttlHours", data.get("ttl_hours")),
            quality_score=data.get("qualityScore", data.get("quality_score")),
        )


@dataclass
class CacheStats:
    """Aggregate cache statistics."""

    total_entries: int = 0
    active_entries: int = 0
    expired_entries: int = 0
    total_hits: int = 0
    hit_ratio: float = 0.0
    top_keys: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalEntries": self.total_entries,
            "activeEntries": self.active_entries,
            "expiredEntries": self.expired_entries,
            "totalHits": self.total_hits,
            "hitRatio": self.hit_ratio,
            "topKeys": list(self.top_keys),
        }


def extract_quality_score(payload: Any) -> float:
    """Pull a quality score out of an analysis payload, 0 when absent."""
    if not isinstance(payload, dict):
        return 0.0
    for candidate in (
        payload.get("qualityScore"),
        payload.get("quality_score"),
        (payload.get("quality") or {}).get("score") if isinstance(payload.get("quality"), dict) else None,
    ):
        if isinstance(candidate, (int, float)) and not isinstance(candidate, bool):
            return float(candidate)
    return 0.0


# =============================================================================
# Stores
# =============================================================================


class CacheStore(ABC):
    """Storage behind ExpiringCache. Implementations may raise freely."""

    @abstractmethod
    async def touch(self, key: str, analysis_type: str, now: datetime) -> Optional[CacheEntry]:
        """Return a live entry and count the hit, as one atomic step."""

    @abstractmethod
    async def peek(self, key: str, analysis_type: str, now: datetime) -> Optional[CacheEntry]:
        """Return a live entry without counting a hit."""

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None:
        """Create or overwrite the entry for its composite key."""

    @abstractmethod
    async def insert_missing(self, entries: list[CacheEntry]) -> int:
        """Insert entries whose composite key is absent; return how many."""

    @abstractmethod
    async def delete(self, key: str, analysis_type: Optional[str] = None) -> int:
        """Delete one entry, or every entry for key."""

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Delete entries with expires_at < now."""

    @abstractmethod
    async def entries(self) -> list[CacheEntry]:
        """Every stored entry, live or not."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryCacheStore(CacheStore):
    """Process-local store. A lock makes each operation a single unit."""

    def __init__(self):
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    async def touch(self, key: str, analysis_type: str, now: datetime) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get((key, analysis_type))
            if entry is None or not entry.is_live(now):
                return None
            entry = replace(entry, hit_count=entry.hit_count + 1)
            self._entries[entry.composite_key] = entry
            return entry

    async def peek(self, key: str, analysis_type: str, now: datetime) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get((key, analysis_type))
        if entry is None or not entry.is_live(now):
            return None
        return entry

    async def upsert(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.composite_key] = entry

    async def insert_missing(self, entries: list[CacheEntry]) -> int:
        inserted = 0
        with self._lock:
            for entry in entries:
                if entry.composite_key in self._entries:
                    continue
                self._entries[entry.composite_key] = entry
                inserted += 1
        return inserted

    async def delete(self, key: str, analysis_type: Optional[str] = None) -> int:
        with self._lock:
            doomed = [
                k for k in self._entries
                if k[0] == key and (analysis_type is None or k[1] == analysis_type)
            ]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    async def delete_expired(self, now: datetime) -> int:
        with self._lock:
            doomed = [k for k, e in self._entries.items() if e.expires_at < now]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    async def entries(self) -> list[CacheEntry]:
        with self._lock:
            return list(self._entries.values())


class SupabaseCacheStore(CacheStore):
    """Cache table in Supabase.

    Expects a table with a unique ``(subject_key, analysis_type)`` constraint
    and a ``touch_analysis_cache(p_subject_key, p_analysis_type, p_now)``
    function that runs ``UPDATE ... SET hit_count = hit_count + 1 WHERE ...
    AND expires_at > p_now RETURNING *`` so the hit is counted atomically by
    the database.
    """

    COLUMNS = "subject_key,analysis_type,payload,quality_score,created_at,expires_at,hit_count"

    def __init__(self, client: SupabaseClient, table: str = "analysis_cache"):
        self.client = client
        self.table = table

    async def touch(self, key: str, analysis_type: str, now: datetime) -> Optional[CacheEntry]:
        result = await self.client.rpc(
            "touch_analysis_cache",
            {"p_subject_key": key, "p_analysis_type": analysis_type, "p_now": now.isoformat()},
        )
        rows = self._rows(result)
        return self._to_entry(rows[0]) if rows else None

    async def peek(self, key: str, analysis_type: str, now: datetime) -> Optional[CacheEntry]:
        result = await self.client.select(
            self.table,
            columns=self.COLUMNS,
            filters={
                "subject_key": f"eq.{key}",
                "analysis_type": f"eq.{analysis_type}",
                "expires_at": f"gt.{now.isoformat()}",
            },
        )
        rows = self._rows(result)
        return self._to_entry(rows[0]) if rows else None

    async def upsert(self, entry: CacheEntry) -> None:
        result = await self.client.insert(
            self.table,
            self._to_row(entry),
            on_conflict="subject_key,analysis_type",
        )
        self._rows(result)

    async def insert_missing(self, entries: list[CacheEntry]) -> int:
        if not entries:
            return 0
        result = await self.client.insert(
            self.table,
            [self._to_row(e) for e in entries],
            on_conflict="subject_key,analysis_type",
            ignore_duplicates=True,
        )
        return len(self._rows(result))

    async def delete(self, key: str, analysis_type: Optional[str] = None) -> int:
        filters = {"subject_key": f"eq.{key}"}
        if analysis_type is not None:
            filters["analysis_type"] = f"eq.{analysis_type}"
        return len(self._rows(await self.client.delete(self.table, filters)))

    async def delete_expired(self, now: datetime) -> int:
        result = await self.client.delete(self.table, {"expires_at": f"lt.{now.isoformat()}"})
        return len(self._rows(result))

    async def entries(self) -> list[CacheEntry]:
        result = await self.client.select(self.table, columns=self.COLUMNS)
        return [self._to_entry(row) for row in self._rows(result)]

    async def close(self) -> None:
        await self.client.close()

    @staticmethod
    def _rows(result: dict) -> list[dict]:
        if result.get("error"):
            raise CacheBackendError(str(result["error"]))
        data = result.get("data")
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    @staticmethod
    def _to_row(entry: CacheEntry) -> dict:
        return {
            "subject_key": entry.subject_key,
            "analysis_type": entry.analysis_type,
            "payload": entry.payload,
            "quality_score": entry.quality_score,
            "created_at": entry.created_at.isoformat(),
            "expires_at": entry.expires_at.isoformat(),
            "hit_count": entry.hit_count,
        }

    @staticmethod
    def _to_entry(row: dict) -> CacheEntry:
        return CacheEntry(
            subject_key=row["subject_key"],
            analysis_type=row["analysis_type"],
            payload=row.get("payload"),
            quality_score=float(row.get("quality_score") or 0),
            created_at=_parse_ts(row.get("created_at")),
            expires_at=_parse_ts(row.get("expires_at")),
            hit_count=int(row.get("hit_count") or 0),
        )


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        return datetime.fromtimestamp(0, UTC)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


# =============================================================================
# Cache facade
# =============================================================================


class ExpiringCache:
    """TTL cache keyed by ``(subject_key, analysis_type)`` with hit accounting.

    Example:
        ```python
        cache = ExpiringCache(InMemoryCacheStore())

        result = await cache.get_or_compute(
            "session-42",
            "vision_quality",
            compute=lambda: provider.analyze_session(session),
        )

        stats = await cache.stats()
        ```
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        default_ttl_hours: float = DEFAULT_TTL_HOURS,
        top_keys_limit: int = DEFAULT_TOP_KEYS,
        clock: Optional[Clock] = None,
    ):
        self.store = store or InMemoryCacheStore()
        self.default_ttl_hours = default_ttl_hours
        self.top_keys_limit = top_keys_limit
        self._clock = clock or utcnow
        self.log = logger.bind(component="expiring_cache")

    def now(self) -> datetime:
        return self._clock()

    async def close(self) -> None:
        """Close the backing store; errors are logged, never raised."""
        try:
            await self.store.close()
        except Exception as e:
            self.log.warning("Cache store close failed", error=str(e))

    async def get(self, key: str, analysis_type: str) -> Any:
        """Return the cached payload, or None on a miss.

        A hit increments the entry's hit count exactly once. Expired entries
        are misses but stay stored until evict_expired runs.
        """
        try:
            entry = await self.store.touch(key, analysis_type, self.now())
        except Exception as e:
            self.log.warning("Cache retrieval failed", key=key, type=analysis_type, error=str(e))
            return None

        if entry is None:
            self.log.debug("Cache miss", key=key, type=analysis_type)
            return None

        self.log.debug("Cache hit", key=key, type=analysis_type, hit_count=entry.hit_count)
        return entry.payload

    async def put(
        self,
        key: str,
        analysis_type: str,
        payload: Any,
        quality_score: Optional[float] = None,
        ttl_hours: Optional[float] = None,
    ) -> None:
        """Create or overwrite an entry; its hit count starts at zero."""
        entry = self._new_entry(key, analysis_type, payload, quality_score, ttl_hours)
        try:
            await self.store.upsert(entry)
        except Exception as e:
            self.log.warning("Cache storage failed", key=key, type=analysis_type, error=str(e))
            return
        self.log.debug("Data cached", key=key, type=analysis_type, expires_at=entry.expires_at.isoformat())

    async def invalidate(self, key: str, analysis_type: Optional[str] = None) -> int:
        """Delete one entry, or every analysis type cached for key."""
        try:
            deleted = await self.store.delete(key, analysis_type)
        except Exception as e:
            self.log.warning("Cache invalidation failed", key=key, type=analysis_type, error=str(e))
            return 0
        self.log.info("Cache invalidated", key=key, type=analysis_type, deleted_count=deleted)
        return deleted

    async def evict_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        try:
            deleted = await self.store.delete_expired(self.now())
        except Exception as e:
            self.log.warning("Cache cleanup failed", error=str(e))
            return 0
        self.log.info("Expired cache entries cleared", deleted_count=deleted)
        return deleted

    async def batch_put(self, entries: Iterable[CacheWrite | dict]) -> int:
        """Insert many entries, skipping composite keys that already exist.

        Unlike put, a batch never overwrites. Returns the number inserted.
        """
        writes = [e if isinstance(e, CacheWrite) else CacheWrite.from_dict(e) for e in entries]
        new_entries = [
            self._new_entry(w.key, w.analysis_type, w.payload, w.quality_score, w.ttl_hours)
            for w in writes
        ]
        try:
            inserted = await self.store.insert_missing(new_entries)
        except Exception as e:
            self.log.warning("Batch cache operation failed", entries_count=len(writes), error=str(e))
            return 0
        self.log.info(
            "Batch cache operation completed",
            entries_count=len(writes),
            inserted_count=inserted,
        )
        return inserted

    async def stats(self) -> CacheStats:
        """Aggregate statistics; all zeros when the backend is unavailable."""
        try:
            entries = await self.store.entries()
        except Exception as e:
            self.log.warning("Cache statistics generation failed", error=str(e))
            return CacheStats()

        now = self.now()
        live = [e for e in entries if e.is_live(now)]
        total_hits = sum(e.hit_count for e in entries)
        top = sorted(live, key=lambda e: e.hit_count, reverse=True)[: self.top_keys_limit]

        return CacheStats(
            total_entries=len(entries),
            active_entries=len(live),
            expired_entries=len(entries) - len(live),
            total_hits=total_hits,
            hit_ratio=total_hits / max(len(live), 1),
            top_keys=[
                {"key": e.subject_key, "type": e.analysis_type, "hits": e.hit_count}
                for e in top
            ],
        )

    async def warm_up(self, keys: Iterable[str], analysis_type: str) -> list[str]:
        """Report which keys have no live entry for analysis_type.

        Uses a non-counting lookup so warm-up never inflates hit counts.
        """
        keys = list(keys)
        self.log.info("Cache warm-up initiated", key_count=len(keys), type=analysis_type)
        missing: list[str] = []
        now = self.now()
        for key in keys:
            try:
                entry = await self.store.peek(key, analysis_type, now)
            except Exception as e:
                self.log.warning("Cache warm-up lookup failed", key=key, error=str(e))
                entry = None
            if entry is None:
                self.log.debug("Cache warm-up: missing entry", key=key, type=analysis_type)
                missing.append(key)
        return missing

    async def performance_metrics(self) -> dict[str, float]:
        """Approximate hit/miss rates derived from stats."""
        stats = await self.stats()
        total_requests = stats.total_hits + stats.active_entries
        if total_requests == 0:
            return {"hitRate": 0.0, "missRate": 0.0, "averageHits": 0.0}
        return {
            "hitRate": stats.total_hits / total_requests,
            "missRate": stats.active_entries / total_requests,
            "averageHits": stats.total_hits / stats.active_entries if stats.active_entries else 0.0,
        }

    async def get_or_compute(
        self,
        key: str,
        analysis_type: str,
        compute: Callable[[], Awaitable[Any]],
        ttl_hours: Optional[float] = None,
    ) -> Any:
        """Read-through lookup: cached payload, else compute and cache it.

        Errors from compute propagate; cache errors never do. A computed
        None is returned but not cached.
        """
        cached = await self.get(key, analysis_type)
        if cached is not None:
            return cached

        result = await compute()
        if result is not None:
            await self.put(key, analysis_type, result, ttl_hours=ttl_hours)
        return result

    def _new_entry(
        self,
        key: str,
        analysis_type: str,
        payload: Any,
        quality_score: Optional[float],
        ttl_hours: Optional[float],
    ) -> CacheEntry:
        now = self.now()
        ttl = self.default_ttl_hours if ttl_hours is None else ttl_hours
        return CacheEntry(
            subject_key=key,
            analysis_type=analysis_type,
            payload=payload,
            quality_score=extract_quality_score(payload) if quality_score is None else float(quality_score),
            created_at=now,
            expires_at=now + timedelta(hours=ttl),
            hit_count=0,
        )


def build_cache(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> ExpiringCache:
    """Create the cache configured by settings."""
    settings = settings or get_settings()
    store: CacheStore
    if settings.cache_backend == CacheBackend.SUPABASE:
        store = SupabaseCacheStore(SupabaseClient(), table=settings.cache_table)
    else:
        store = InMemoryCacheStore()
    return ExpiringCache(
        store,
        default_ttl_hours=settings.cache_default_ttl_hours,
        top_keys_limit=settings.cache_top_keys_limit,
        clock=clock,
    )
