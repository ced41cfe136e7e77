"""Time-to-live bookkeeping with stale-eviction protection."""

import itertools
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TTLEntry:
    """Expiry deadline for one key, tagged with the version that wrote it."""

    key: str
    expires_at: float
    version: int

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (time.time() if now is None else now) > self.expires_at


class TTLTracker:
    """
    Tracks when cache entries expire.

    Every call to set() stamps the entry with a fresh version from a single
    counter. A reader that finds an expired entry evicts it with
    remove_if_version_matches(), so a write that landed in between (and
    therefore carries a newer version) is never thrown away.

    The tracker takes no lock. Callers run operations on one logical thread
    and the version check is the only guard against interleaving at driver
    I/O boundaries.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._entries: Dict[str, TTLEntry] = {}
        self._versions = itertools.count()

    def set(self, key: str, ttl: timedelta) -> Optional[TTLEntry]:
        """
        Register an expiry for key, replacing any earlier one.

        Returns:
            The new entry, or None when TTL tracking is disabled
        """
        if not self.enabled:
            return None

        entry = TTLEntry(
            key=key,
            expires_at=time.time() + ttl.total_seconds(),
            version=next(self._versions),
        )
        self._entries[key] = entry
        logger.debug(f"TTL SET: {key} (version {entry.version}, {ttl.total_seconds()}s)")
        return entry

    def get_if_expired(self, key: str) -> Optional[TTLEntry]:
        """Return the entry for key if it has expired, otherwise None."""
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired():
            return entry
        return None

    def is_expired(self, key: str) -> bool:
        return self.get_if_expired(key) is not None

    def remove_if_version_matches(self, key: str, version: int) -> bool:
        """
        Remove the entry for key only if it still carries version.

        Returns:
            True if the entry was removed, False if it was replaced or absent
        """
        entry = self._entries.get(key)
        if entry is not None and entry.version == version:
            del self._entries[key]
            logger.debug(f"TTL EXPIRED: {key} (version {version})")
            return True
        return False

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def remove_multiple(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def get_entry(self, key: str) -> Optional[TTLEntry]:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)
