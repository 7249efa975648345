"""
Contactmine extraction cache - TTL + LRU store of per-URL extraction results.

Key design:
- One explicit instance with a lifecycle (construct, use, destroy); no module globals
- Key = md5 of the normalized URL; content fingerprint = sha256 of page facts
- Same fingerprint on set only bumps access stats (no second write)
- Expired entries are evicted lazily on get and by a cancelable background sweep
- At capacity, the least recently accessed 10% of entries are evicted
- Every mutation happens under one lock (single writer per key)
"""

import hashlib
import json
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlparse, urlunparse

from pydantic import ValidationError

from .errors import CacheError
from .models import CacheEntry, ExtractedContact, ParsedContent

EXPORT_VERSION = "1.0.0"

HOUR = 3600.0


@dataclass
class CacheConfig:
    """Extraction cache configuration (times in seconds)."""

    enabled: bool = True
    ttl: float = 24 * HOUR
    max_size: int = 10000
    cleanup_interval: float = HOUR
    auto_cleanup: bool = True  # Start the background sweep thread


@dataclass
class CacheStats:
    """Snapshot of cache health."""

    size: int = 0
    hit_rate: float = 0.0
    total_hits: int = 0
    total_misses: int = 0
    evictions: int = 0
    expirations: int = 0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    average_access_count: float = 0.0
    access_distribution: dict[str, int] = field(default_factory=dict)
    memory_usage: int = 0


@dataclass
class OptimizationAdvice:
    """Recommended configuration and why."""

    ttl: float
    max_size: int
    cleanup_interval: float
    reasoning: list[str] = field(default_factory=list)


def normalize_url(url: str) -> str:
    """Lowercase scheme/host, drop fragment and trailing slash."""
    parsed = urlparse(url.strip())
    path = parsed.path.rstrip("/") or ""
    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, parsed.query, "")
    )


def cache_key(url: str) -> str:
    return "cache_" + hashlib.md5(normalize_url(url).encode()).hexdigest()


def content_fingerprint(content: ParsedContent) -> str:
    """Hash of the facts that change when a page changes."""
    facts = {
        "url": normalize_url(content.url),
        "title": content.title,
        "content_length": len(content.content),
        "word_count": content.metadata.word_count,
        "author": content.author,
        "published_at": content.published_at.isoformat() if content.published_at else None,
    }
    return hashlib.sha256(json.dumps(facts, sort_keys=True).encode()).hexdigest()


class ExtractionCache:
    """Thread-safe TTL/LRU cache of extraction results."""

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None
        if self.config.enabled and self.config.auto_cleanup and self.config.cleanup_interval > 0:
            self._start_sweeper()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _start_sweeper(self) -> None:
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="extraction-cache-sweeper", daemon=True
        )
        self._sweeper.start()

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.config.cleanup_interval):
            self.cleanup()

    def destroy(self) -> None:
        """Stop the background sweep and drop all entries."""
        self._stop.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=5)
        self._sweeper = None
        self.clear()

    def __enter__(self) -> "ExtractionCache":
        return self

    def __exit__(self, *args: object) -> None:
        self.destroy()

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), UTC)

    def _is_expired(self, entry: CacheEntry, now: datetime | None = None) -> bool:
        return (now or self._now()) >= entry.expires_at

    def get(self, url: str) -> list[ExtractedContact] | None:
        """Cached contacts for a URL, or None on miss/expiry."""
        if not self.config.enabled:
            return None
        key = cache_key(url)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            now = self._now()
            if self._is_expired(entry, now):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None
            entry.access_count += 1
            entry.last_accessed_at = now
            self._hits += 1
            return [c.model_copy(deep=True) for c in entry.contacts]

    def get_entry(self, url: str) -> CacheEntry | None:
        """Raw entry without touching hit/miss statistics."""
        with self._lock:
            entry = self._entries.get(cache_key(url))
            if entry is None or self._is_expired(entry):
                return None
            return entry.model_copy(deep=True)

    def set(
        self,
        url: str,
        content: ParsedContent,
        contacts: list[ExtractedContact],
        quality_score: float = 0.0,
        ttl: float | None = None,
    ) -> None:
        """Store contacts for a URL; an unchanged fingerprint only bumps access."""
        if not self.config.enabled:
            return
        key = cache_key(url)
        fingerprint = content_fingerprint(content)
        with self._lock:
            now = self._now()
            existing = self._entries.get(key)
            if (
                existing is not None
                and existing.content_hash == fingerprint
                and not self._is_expired(existing, now)
            ):
                existing.access_count += 1
                existing.last_accessed_at = now
                return

            if existing is None and len(self._entries) >= self.config.max_size:
                self._evict_lru()

            self._entries[key] = CacheEntry(
                content_hash=fingerprint,
                url=url,
                contacts=[c.model_copy(deep=True) for c in contacts],
                quality_score=max(0.0, min(quality_score, 1.0)),
                expires_at=now + timedelta(seconds=ttl if ttl is not None else self.config.ttl),
                access_count=1,
                last_accessed_at=now,
                created_at=now,
            )

    def _evict_lru(self) -> None:
        """Evict ceil(10%) of entries, least recently accessed first."""
        count = max(1, math.ceil(len(self._entries) * 0.1))
        victims = sorted(self._entries.items(), key=lambda kv: kv[1].last_accessed_at)[:count]
        for key, _ in victims:
            del self._entries[key]
        self._evictions += len(victims)

    def delete(self, url: str) -> bool:
        with self._lock:
            return self._entries.pop(cache_key(url), None) is not None

    def has(self, url: str) -> bool:
        with self._lock:
            entry = self._entries.get(cache_key(url))
            return entry is not None and not self._is_expired(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_multiple(self, urls: list[str]) -> dict[str, list[ExtractedContact] | None]:
        return {url: self.get(url) for url in urls}

    def set_multiple(
        self, items: list[tuple[str, ParsedContent, list[ExtractedContact], float]]
    ) -> None:
        for url, content, contacts, quality in items:
            self.set(url, content, contacts, quality)

    def cleanup(self) -> int:
        """Drop all expired entries; returns how many were removed."""
        with self._lock:
            now = self._now()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
            self._expirations += len(expired)
            return len(expired)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_expiring_soon(self, within: float = HOUR) -> list[str]:
        """URLs whose entries expire within the next `within` seconds."""
        with self._lock:
            now = self._now()
            horizon = now + timedelta(seconds=within)
            return [
                e.url for e in self._entries.values() if now < e.expires_at <= horizon
            ]

    def refresh(self, url: str, ttl: float | None = None) -> bool:
        """Push an entry's expiry out by ttl (default: configured ttl)."""
        with self._lock:
            entry = self._entries.get(cache_key(url))
            if entry is None or self._is_expired(entry):
                return False
            entry.expires_at = self._now() + timedelta(
                seconds=ttl if ttl is not None else self.config.ttl
            )
            return True

    def get_by_quality_range(self, minimum: float, maximum: float) -> list[CacheEntry]:
        with self._lock:
            return [
                e.model_copy(deep=True)
                for e in self._entries.values()
                if minimum <= e.quality_score <= maximum and not self._is_expired(e)
            ]

    def get_by_contact_count_range(self, minimum: int, maximum: int) -> list[CacheEntry]:
        with self._lock:
            return [
                e.model_copy(deep=True)
                for e in self._entries.values()
                if minimum <= len(e.contacts) <= maximum and not self._is_expired(e)
            ]

    # -------------------------------------------------------------------------
    # Stats & tuning
    # -------------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        with self._lock:
            entries = list(self._entries.values())
            total = self._hits + self._misses
            distribution = {"1": 0, "2-5": 0, "6-20": 0, "21+": 0}
            for e in entries:
                if e.access_count <= 1:
                    distribution["1"] += 1
                elif e.access_count <= 5:
                    distribution["2-5"] += 1
                elif e.access_count <= 20:
                    distribution["6-20"] += 1
                else:
                    distribution["21+"] += 1
            return CacheStats(
                size=len(entries),
                hit_rate=round(self._hits / total, 2) if total else 0.0,
                total_hits=self._hits,
                total_misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                oldest_entry=min((e.created_at for e in entries), default=None),
                newest_entry=max((e.created_at for e in entries), default=None),
                average_access_count=(
                    round(sum(e.access_count for e in entries) / len(entries), 2) if entries else 0.0
                ),
                access_distribution=distribution,
                memory_usage=self._estimate_memory(entries),
            )

    @staticmethod
    def _estimate_memory(entries: list[CacheEntry]) -> int:
        """Rough bytes: 2 per serialized char, plus per-entry and per-access overhead."""
        serialized = sum(len(e.model_dump_json()) for e in entries)
        accesses = sum(e.access_count for e in entries)
        return serialized * 2 + len(entries) * 100 + accesses * 50

    def get_performance_metrics(self) -> dict[str, float]:
        with self._lock:
            total = self._hits + self._misses
            now = self._now()
            ages = [(now - e.created_at).total_seconds() for e in self._entries.values()]
            return {
                "hit_rate": round(self._hits / total, 2) if total else 0.0,
                "miss_rate": round(self._misses / total, 2) if total else 0.0,
                "utilization": round(len(self._entries) / self.config.max_size, 2),
                "evictions": float(self._evictions),
                "expirations": float(self._expirations),
                "average_entry_age": round(sum(ages) / len(ages), 1) if ages else 0.0,
            }

    def optimize_configuration(self) -> OptimizationAdvice:
        """Recommend ttl/max_size/cleanup_interval from hit rate and occupancy."""
        stats = self.get_stats()
        ttl = self.config.ttl
        max_size = self.config.max_size
        interval = self.config.cleanup_interval
        reasoning: list[str] = []

        requests = stats.total_hits + stats.total_misses
        if requests:
            if stats.hit_rate < 0.5:
                ttl = min(ttl * 1.5, 48 * HOUR)
                reasoning.append("Low hit rate: increase TTL to keep entries longer")
            elif stats.hit_rate > 0.8:
                ttl = max(ttl * 0.8, 4 * HOUR)
                reasoning.append("High hit rate: decrease TTL to keep results fresh")

        utilization = stats.size / max_size if max_size else 0.0
        if utilization > 0.9:
            max_size = int(max_size * 1.2)
            reasoning.append("Cache nearly full: increase max size")
        elif utilization < 0.3 and stats.size > 0:
            max_size = max(int(max_size * 0.8), 1)
            reasoning.append("Cache under-used: decrease max size")

        if stats.size and stats.average_access_count < 2:
            interval = max(interval * 0.5, 0.5 * HOUR)
            reasoning.append("Entries rarely reused: clean up more often")

        if not reasoning:
            reasoning.append("Current configuration is appropriate")
        return OptimizationAdvice(ttl=ttl, max_size=max_size, cleanup_interval=interval, reasoning=reasoning)

    # -------------------------------------------------------------------------
    # Warm start
    # -------------------------------------------------------------------------

    def export(self) -> dict[str, Any]:
        """Serialize non-expired entries plus stats."""
        with self._lock:
            now = self._now()
            entries = [
                e.model_dump(mode="json")
                for e in self._entries.values()
                if not self._is_expired(e, now)
            ]
            return {
                "version": EXPORT_VERSION,
                "exported_at": now.isoformat(),
                "entries": entries,
                "stats": {"hits": self._hits, "misses": self._misses},
            }

    def import_entries(self, data: dict[str, Any]) -> int:
        """Load exported entries, skipping expired ones; returns how many were loaded."""
        if not isinstance(data, dict) or "entries" not in data:
            raise CacheError("Cache import payload has no entries", code="CACHE_IMPORT_FAILED")
        if data.get("version") != EXPORT_VERSION:
            raise CacheError(
                f"Unsupported cache export version: {data.get('version')}",
                code="CACHE_IMPORT_FAILED",
            )
        try:
            entries = [CacheEntry.model_validate(raw) for raw in data["entries"]]
        except ValidationError as e:
            raise CacheError(f"Malformed cache entry: {e}", code="CACHE_IMPORT_FAILED") from e

        loaded = 0
        with self._lock:
            now = self._now()
            for entry in entries:
                if self._is_expired(entry, now):
                    continue
                key = cache_key(entry.url)
                if key not in self._entries and len(self._entries) >= self.config.max_size:
                    self._evict_lru()
                self._entries[key] = entry
                loaded += 1
        return loaded
