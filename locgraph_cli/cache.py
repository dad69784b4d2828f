"""Capacity-bounded LRU result cache with hit/miss statistics.

The cache is generic over its value type and keyed by strings.  Recency is
tracked by the insertion order of an :class:`collections.OrderedDict`: the
first key is the least recently used one and is evicted first.

Per-document analysis results are stored under keys of the form::

    <documentURI>::v<version>::<scopeKind>[::<activeFilePath>]

so a version bump is a natural cache miss.  Stale versions are not purged
proactively; they age out through LRU eviction.
"""

from __future__ import annotations

import logging
import re
import time
from collections import OrderedDict
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .config import DEFAULT_CACHE_SIZE
from .errors import CacheKeyParseError
from .models import CacheEntry, CacheKeyParts, CacheStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_SEPARATOR = "::"
_VERSION_RE = re.compile(r"^v(\d+)$")


class ResultCache(Generic[T]):
    """LRU cache with statistics.

    Usage::

        cache: ResultCache[list] = ResultCache(50)
        cache.set("key1", results)
        cache.get("key1")       # -> results, counts a hit
        cache.get_stats()       # -> CacheStats(entries=1, hits=1, ...)
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE) -> None:
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._max_size = max_size

    # ------------------------------------------------------------------
    # Lookup / insert
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[T]:
        """Return the cached value and mark it most recently used, or None on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def set(self, key: str, value: T, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Store *value* under *key*, evicting least recently used entries at capacity."""
        while len(self._entries) >= self._max_size and self._entries:
            oldest, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry for %s (LRU)", oldest)

        self._entries[key] = CacheEntry(value=value, timestamp=time.time(), metadata=metadata)
        self._entries.move_to_end(key)

    def has(self, key: str) -> bool:
        """Membership test; does not touch recency or statistics."""
        return key in self._entries

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def clear(self, key: Optional[str] = None) -> None:
        """Remove one entry, or everything (including statistics) when *key* is None."""
        if key is not None:
            self._entries.pop(key, None)
            return
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def set_max_size(self, max_size: int) -> None:
        self._max_size = max_size
        while len(self._entries) > self._max_size and self._entries:
            oldest, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry for %s (resize)", oldest)

    def get_max_size(self) -> int:
        return self._max_size

    def size(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def keys(self) -> List[str]:
        """Keys in LRU order, oldest first."""
        return list(self._entries.keys())

    def get_metadata(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        return entry.metadata if entry is not None else None

    def get_timestamp(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        return entry.timestamp if entry is not None else None

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            entries=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / total if total > 0 else 0.0,
            max_size=self._max_size,
        )


# ===================================================================
# Cache keys
# ===================================================================

def create_graph_cache_key(
    document_uri: str,
    document_version: int,
    scope_type: str,
    active_file_path: Optional[str] = None,
) -> str:
    parts = [document_uri, f"v{document_version}", scope_type]
    if active_file_path:
        parts.append(active_file_path)
    return KEY_SEPARATOR.join(parts)


def parse_graph_cache_key(cache_key: str, strict: bool = False) -> Optional[CacheKeyParts]:
    """Inverse of :func:`create_graph_cache_key`.

    Returns None for an invalid key (fewer than three segments or a version
    segment that is not ``v<digits>``); with ``strict=True`` a
    :class:`~locgraph_cli.errors.CacheKeyParseError` is raised instead.
    """
    parts = cache_key.split(KEY_SEPARATOR)
    reason = None
    version_match = None
    if len(parts) < 3:
        reason = f"expected at least 3 '{KEY_SEPARATOR}' segments, got {len(parts)}"
    else:
        version_match = _VERSION_RE.match(parts[1])
        if not version_match:
            reason = f"version segment {parts[1]!r} is not v<digits>"

    if reason is not None or version_match is None:
        if strict:
            raise CacheKeyParseError(cache_key, reason or "invalid")
        return None

    active = KEY_SEPARATOR.join(parts[3:]) if len(parts) > 3 else None
    return CacheKeyParts(
        document_uri=parts[0],
        document_version=int(version_match.group(1)),
        scope_type=parts[2],
        active_file_path=active,
    )


def document_key_prefix(document_uri: str) -> str:
    return f"{document_uri}{KEY_SEPARATOR}v"
