from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
import orjson

from domain.models import LayoutResult
from domain.ports.cache import CacheStats, LayoutCache

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_MAX_ENTRIES = 128


@dataclass(frozen=True)
class CacheEntry:
    payload: bytes
    timestamp: float
    ttl: float
    layout_version: int


class InMemoryLayoutCache(LayoutCache):
    """Versioned layout cache backed by a plain signature -> entry mapping.

    Results are stored encoded, so a read decodes them again. Entries from an
    older layout version, expired entries and undecodable payloads are all
    treated as misses and dropped.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            msg = f"ttl_seconds must be positive, got {ttl_seconds}"
            raise ValueError(msg)
        if max_entries < 1:
            msg = f"max_entries must be at least 1, got {max_entries}"
            raise ValueError(msg)
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._version = 0
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0

    @property
    def layout_version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, signature: str) -> LayoutResult | None:
        entry = self._live_entry(signature)
        if entry is None:
            self._misses += 1
            return None
        try:
            result = LayoutResult.from_dict(orjson.loads(entry.payload))
        except (orjson.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Dropping undecodable layout cache entry %s: %s", signature, exc)
            self.delete(signature)
            self._misses += 1
            return None
        self._hits += 1
        return result

    def set(self, signature: str, result: LayoutResult, ttl: float | None = None) -> None:
        payload = orjson.dumps(replace(result, current_time=None).to_dict())
        self._entries.pop(signature, None)
        self._entries[signature] = CacheEntry(
            payload=payload,
            timestamp=self._clock(),
            ttl=self.ttl_seconds if ttl is None else ttl,
            layout_version=self._version,
        )
        self._sets += 1
        self._evict_overflow()

    def has(self, signature: str) -> bool:
        return self._live_entry(signature) is not None

    def delete(self, signature: str) -> bool:
        if self._entries.pop(signature, None) is None:
            return False
        self._deletes += 1
        return True

    def clear(self) -> None:
        self._deletes += len(self._entries)
        self._entries.clear()

    def bump_version(self) -> int:
        self._version += 1
        return self._version

    def invalidate(self) -> int:
        version = self.bump_version()
        self.clear()
        return version

    def cleanup(self) -> int:
        now = self._clock()
        stale = [
            signature
            for signature, entry in self._entries.items()
            if self._is_stale(entry, now)
        ]
        for signature in stale:
            self.delete(signature)
        return len(stale)

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            sets=self._sets,
            deletes=self._deletes,
            evictions=self._evictions,
            size=len(self._entries),
            max_entries=self.max_entries,
            layout_version=self._version,
        )

    def _live_entry(self, signature: str) -> CacheEntry | None:
        entry = self._entries.get(signature)
        if entry is None:
            return None
        if self._is_stale(entry, self._clock()):
            self.delete(signature)
            return None
        return entry

    def _is_stale(self, entry: CacheEntry, now: float) -> bool:
        return entry.layout_version != self._version or now - entry.timestamp > entry.ttl

    def _evict_overflow(self) -> None:
        while len(self._entries) > self.max_entries:
            oldest = min(self._entries, key=lambda key: self._entries[key].timestamp)
            del self._entries[oldest]
            self._evictions += 1
