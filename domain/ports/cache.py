from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from domain.models import LayoutResult


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    sets: int
    deletes: int
    evictions: int
    size: int
    max_entries: int
    layout_version: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return round(self.hits / lookups, 2) if lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "size": self.size,
            "max_entries": self.max_entries,
            "layout_version": self.layout_version,
            "hit_rate": self.hit_rate,
        }


class LayoutCache(Protocol):
    @property
    def layout_version(self) -> int: ...

    def get(self, signature: str) -> LayoutResult | None: ...

    def set(self, signature: str, result: LayoutResult, ttl: float | None = None) -> None: ...

    def has(self, signature: str) -> bool: ...

    def delete(self, signature: str) -> bool: ...

    def clear(self) -> None: ...

    def bump_version(self) -> int: ...

    def invalidate(self) -> int: ...

    def stats(self) -> CacheStats: ...
