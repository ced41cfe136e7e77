"""In-memory cache driver."""

import logging
from typing import Any, Dict, List, Optional

from .base import CacheDriver, DriverKind

logger = logging.getLogger(__name__)


class MemoryDriver(CacheDriver):
    """
    Process-local driver backed by a dict.

    Always available and never fails; it is the registry's terminal
    fallback. When more than ``max_items`` keys are stored the oldest
    written keys are evicted first.
    """

    kind = DriverKind.MEMORY

    def __init__(self, max_items: Optional[int] = None):
        self.max_items = max_items
        self._store: Dict[str, bytes] = {}
        self._evictions = 0

    @property
    def is_available(self) -> bool:
        return True

    def set(self, key: str, data: bytes) -> None:
        # Re-insert so the dict order tracks write recency
        self._store.pop(key, None)
        self._store[key] = data
        logger.debug(f"Memory SET: {key}")

        if self.max_items is not None and len(self._store) > self.max_items:
            self._evict_oldest()

    def get(self, key: str) -> Optional[bytes]:
        value = self._store.get(key)
        logger.debug(f"Memory {'HIT' if value is not None else 'MISS'}: {key}")
        return value

    def has(self, key: str) -> bool:
        return key in self._store

    def remove(self, key: str) -> None:
        self._store.pop(key, None)
        logger.debug(f"Memory REMOVE: {key}")

    def clear(self) -> None:
        self._store.clear()
        logger.debug("Memory CLEAR")

    def keys(self) -> List[str]:
        return list(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats.update(
            {
                "total_entries": len(self._store),
                "max_items": self.max_items,
                "evictions": self._evictions,
            }
        )
        return stats

    def _evict_oldest(self) -> None:
        remove_count = len(self._store) - self.max_items
        for key in list(self._store)[:remove_count]:
            del self._store[key]
        self._evictions += remove_count
        logger.debug(f"Memory cache evicted {remove_count} items")
