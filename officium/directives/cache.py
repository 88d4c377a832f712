"""
Resolution cache - resolved sections per (rubric version, language, filename).

Entries are populated lazily and kept for the lifetime of the cache
object. An entry is never changed in place: a deeper resolution of the
same file stores a new entry over the old one.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional, Tuple

from officium.directives.sections import FileSections


class ResolveDepth(IntEnum):
    """How far inclusion directives of a file have been expanded."""
    NONE = 0        # parsed sections only
    WHOLE_FILE = 1  # preamble expanded (whole-file inheritance)
    ALL = 2         # every section expanded


@dataclass(frozen=True)
class CacheEntry:
    sections: FileSections
    depth: ResolveDepth


class _Bucket:
    """Entries of one (version, language) pair, behind one lock."""

    def __init__(self):
        self.lock = threading.RLock()
        self.entries: Dict[str, CacheEntry] = {}


class ResolutionCache:
    """
    Process-wide store of resolved data files.

    Buckets are keyed by (version, language); each bucket has its own lock,
    held only while reading or writing an entry. The hit and miss counters
    are shared by all buckets and sit behind their own lock.

    Example:
        cache = ResolutionCache()
        entry = cache.get("Rubrics 1960 - 1960", "Latin", "Sancti/12-25.txt")
        if entry is None or entry.depth < ResolveDepth.ALL:
            ...
    """

    def __init__(self):
        self._buckets: Dict[Tuple[str, str], _Bucket] = {}
        self._buckets_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _bucket(self, version: str, language: str) -> _Bucket:
        key = (version, language)
        with self._buckets_lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = _Bucket()
            return bucket

    def get(self, version: str, language: str, filename: str) -> Optional[CacheEntry]:
        bucket = self._bucket(version, language)
        with bucket.lock:
            entry = bucket.entries.get(filename)
        with self._stats_lock:
            if entry is None:
                self.misses += 1
            else:
                self.hits += 1
        return entry

    def put(
        self,
        version: str,
        language: str,
        filename: str,
        sections: FileSections,
        depth: ResolveDepth
    ) -> CacheEntry:
        """
        Store `sections` unless a deeper entry is already present.

        Returns:
            The entry now in the cache
        """
        bucket = self._bucket(version, language)
        with bucket.lock:
            current = bucket.entries.get(filename)
            if current is not None and current.depth > depth:
                return current
            entry = CacheEntry(dict(sections), depth)
            bucket.entries[filename] = entry
            return entry

    def clear(self) -> None:
        with self._buckets_lock:
            self._buckets.clear()
        with self._stats_lock:
            self.hits = 0
            self.misses = 0

    @property
    def entries(self) -> int:
        with self._buckets_lock:
            buckets = list(self._buckets.values())
        return sum(len(bucket.entries) for bucket in buckets)

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            hits, misses = self.hits, self.misses
        return {
            "hits": hits,
            "misses": misses,
            "entries": self.entries,
            "buckets": len(self._buckets),
        }

    def __repr__(self) -> str:
        return f"ResolutionCache(entries={self.entries}, hits={self.hits}, misses={self.misses})"
