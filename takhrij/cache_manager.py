"""
Simple in-memory cache to avoid repeated model calls.

Entries live for the process lifetime: no TTL, no invalidation. Once a key is
stored its value is returned verbatim on every later lookup, including a
wrong answer from an earlier call, until the process restarts.
"""

import copy
import logging
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def commentary_key(reference: str, collection: str) -> str:
    """Cache key for one commentary: `reference|collection` (collection lowercased)."""
    return f"{reference}|{collection.lower()}"


def bio_key(name: str) -> str:
    return f"bio|{name.strip().lower()}"


class ResponseCache:
    """Process-lifetime memoization of structured model responses."""

    def __init__(self, name: str = "cache", enabled: bool = True):
        self.name = name
        self.enabled = enabled
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        logger.info(f"Cache '{name}' initialized in memory, enabled={enabled}")

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Get a copy of the stored value, or None."""
        if not self.enabled:
            return None

        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self.hits += 1

        logger.debug(f"Cache HIT [{self.name}]: {key[:50]}")
        return copy.deepcopy(value)

    def set(self, key: str, value: Dict[str, Any]):
        """Save a value; later writes to the same key replace it."""
        if not self.enabled:
            return

        with self._lock:
            self._entries[key] = copy.deepcopy(value)
        logger.debug(f"Cache SET [{self.name}]: {key[:50]}")

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self):
        """Drop every entry."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} entries from cache '{self.name}'")

    def stats(self) -> dict:
        """Get cache statistics"""
        with self._lock:
            return {
                'total_entries': len(self._entries),
                'hits': self.hits,
                'misses': self.misses,
            }
