"""Cache driver interface shared by every storage backend."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import CacheBackendError

logger = logging.getLogger(__name__)


class DriverKind(Enum):
    """Kinds of storage backend the registry knows about."""

    MEMORY = "memory"
    PERSISTENT = "persistent"
    SECURE = "secure"

    @classmethod
    def parse(cls, value: Any) -> Optional["DriverKind"]:
        """
        Resolve a DriverKind from a kind or its string value.

        Returns:
            The matching kind, or None when value is None or unknown
        """
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class DriverDescriptor:
    """Point-in-time description of a registered driver."""

    kind: DriverKind
    is_available: bool

    @property
    def name(self) -> str:
        return self.kind.value


class CacheDriver(ABC):
    """
    Abstract base class for cache drivers.

    Drivers store opaque bytes under string keys. The engine never branches
    on driver identity outside the registry; everything it needs goes
    through this interface.

    A driver reporting ``is_available == False`` must refuse write operations
    with CacheBackendError instead of silently doing nothing.
    """

    kind: DriverKind

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backend can currently serve requests."""

    @abstractmethod
    def set(self, key: str, data: bytes) -> None:
        """
        Store raw data under key.

        Raises:
            CacheBackendError: If the backend is unavailable or the write fails
        """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """
        Retrieve raw data for key.

        Returns:
            Raw bytes if present, None otherwise

        Raises:
            CacheBackendError: If the read fails
        """

    @abstractmethod
    def has(self, key: str) -> bool:
        """Return True if key is stored."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Remove key. Removing an absent key is not an error.

        Raises:
            CacheBackendError: If the backend is unavailable or the delete fails
        """

    @abstractmethod
    def clear(self) -> None:
        """
        Remove every key held by this driver.

        Raises:
            CacheBackendError: If the backend is unavailable or the delete fails
        """

    @abstractmethod
    def keys(self) -> List[str]:
        """List stored keys."""

    def describe(self) -> DriverDescriptor:
        return DriverDescriptor(kind=self.kind, is_available=self.is_available)

    def get_stats(self) -> Dict[str, Any]:
        """Get driver-specific statistics."""
        return {"driver": self.name, "is_available": self.is_available}

    def _require_available(self, operation: str) -> None:
        if not self.is_available:
            raise CacheBackendError(
                f"Driver {self.name} is unavailable, refusing {operation}",
                backend=self.name,
            )
