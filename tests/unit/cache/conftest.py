"""Driver doubles and fixtures for cache engine tests."""

from typing import Callable, List, Optional

import pytest

from multicache.cache.backends.base import DriverKind
from multicache.cache.backends.memory import MemoryDriver
from multicache.cache.errors import CacheBackendError
from multicache.cache.events import CacheEvent


class ToggleDriver(MemoryDriver):
    """Persistent-kind driver whose availability can be switched off."""

    kind = DriverKind.PERSISTENT

    def __init__(self, available: bool = True):
        super().__init__()
        self.available = available

    @property
    def is_available(self) -> bool:
        return self.available

    def set(self, key: str, data: bytes) -> None:
        self._require_available("set")
        super().set(key, data)


class FailingDriver(MemoryDriver):
    """Persistent-kind driver that reports healthy but fails every write."""

    kind = DriverKind.PERSISTENT

    def __init__(self):
        super().__init__()
        self.set_attempts = 0

    def set(self, key: str, data: bytes) -> None:
        self.set_attempts += 1
        raise CacheBackendError("disk full", backend=self.name)


class StubbornDriver(MemoryDriver):
    """Persistent-kind driver that refuses to delete some keys."""

    kind = DriverKind.PERSISTENT

    def __init__(self, stuck_keys=()):
        super().__init__()
        self.stuck_keys = set(stuck_keys)

    def remove(self, key: str) -> None:
        if key in self.stuck_keys:
            raise CacheBackendError(f"permission denied removing {key}", backend=self.name)
        super().remove(key)


class BrokenMemoryDriver(MemoryDriver):
    """Memory driver whose writes fail."""

    def set(self, key: str, data: bytes) -> None:
        raise RuntimeError("out of memory")


class RacingDriver(MemoryDriver):
    """
    Persistent-kind driver that runs a one-shot callback inside get().

    Lets a test interleave a write at the exact point where the engine
    reads from the driver.
    """

    kind = DriverKind.PERSISTENT

    def __init__(self):
        super().__init__()
        self.on_get: Optional[Callable[[], None]] = None

    def get(self, key: str) -> Optional[bytes]:
        callback, self.on_get = self.on_get, None
        if callback is not None:
            callback()
        return super().get(key)


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self):
        self.events: List[CacheEvent] = []

    def __call__(self, event: CacheEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> List[CacheEvent]:
        return [event for event in self.events if event.type == event_type]


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def toggle_driver():
    return ToggleDriver()


@pytest.fixture
def failing_driver():
    return FailingDriver()


@pytest.fixture
def broken_memory_driver():
    return BrokenMemoryDriver()


@pytest.fixture
def racing_driver():
    return RacingDriver()


@pytest.fixture
def stubborn_driver():
    return StubbornDriver()
