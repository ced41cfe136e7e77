"""Cache change events and subscriber fan-out."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class CacheEventType(Enum):
    """Kinds of state change reported to subscribers."""

    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"
    EXPIRED = "expired"
    CLEARED = "cleared"


@dataclass(frozen=True)
class CacheEvent:
    """
    A single cache state change.

    ``value`` is the value that was written (CREATED/UPDATED only).
    ``old_value`` is the raw payload previously stored under the key; it is
    opaque bytes because the engine does not know the caller's type.
    """

    key: str
    type: CacheEventType
    value: Any = None
    old_value: Optional[bytes] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_created(self) -> bool:
        return self.type == CacheEventType.CREATED

    @property
    def is_updated(self) -> bool:
        return self.type == CacheEventType.UPDATED

    @property
    def is_removed(self) -> bool:
        return self.type == CacheEventType.REMOVED

    @property
    def is_expired(self) -> bool:
        return self.type == CacheEventType.EXPIRED

    @property
    def is_cleared(self) -> bool:
        return self.type == CacheEventType.CLEARED

    def __str__(self) -> str:
        return f"CacheEvent(key: {self.key}, type: {self.type.value}, timestamp: {self.timestamp})"


CacheSubscriber = Callable[[CacheEvent], None]


class SubscriptionHub:
    """
    Observer registry for cache events.

    Subscribers either watch one key or every key. Callbacks run synchronously
    inside notify(); a callback that raises is logged and skipped so the
    remaining subscribers still see the event.
    """

    def __init__(self):
        self._key_subscribers: Dict[str, List[CacheSubscriber]] = {}
        self._global_subscribers: List[CacheSubscriber] = []

    def subscribe(self, key: str, callback: CacheSubscriber) -> None:
        self._key_subscribers.setdefault(key, []).append(callback)

    def unsubscribe(self, key: str, callback: CacheSubscriber) -> None:
        subscribers = self._key_subscribers.get(key)
        if subscribers is None:
            return
        if callback in subscribers:
            subscribers.remove(callback)
        if not subscribers:
            del self._key_subscribers[key]

    def subscribe_all(self, callback: CacheSubscriber) -> None:
        self._global_subscribers.append(callback)

    def unsubscribe_all(self, callback: CacheSubscriber) -> None:
        if callback in self._global_subscribers:
            self._global_subscribers.remove(callback)

    def has_subscribers(self, key: str) -> bool:
        """True if anyone would receive an event for key."""
        return key in self._key_subscribers or bool(self._global_subscribers)

    def has_any_subscribers(self) -> bool:
        return bool(self._key_subscribers) or bool(self._global_subscribers)

    def notify(self, event: CacheEvent) -> None:
        if not self.has_subscribers(event.key):
            return

        # Copy so callbacks may (un)subscribe while we iterate
        for callback in list(self._key_subscribers.get(event.key, ())):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Cache subscriber error for key {event.key}: {e}", exc_info=True)

        for callback in list(self._global_subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Cache global subscriber error: {e}", exc_info=True)

    def clear(self) -> None:
        """Drop every subscription."""
        self._key_subscribers.clear()
        self._global_subscribers.clear()

    @property
    def key_subscriber_count(self) -> int:
        """Number of keys with at least one subscriber."""
        return len(self._key_subscribers)

    @property
    def global_subscriber_count(self) -> int:
        return len(self._global_subscribers)
