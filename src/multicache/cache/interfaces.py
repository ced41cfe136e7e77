"""Cache engine interface."""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, List, Optional, Type

from .registry import DriverRequest
from .serializer import Codec


class ICacheEngine(ABC):
    """
    Interface for cache engine implementations.

    Defines the core key-value operations every engine supports regardless of
    which storage driver ends up serving the call.
    """

    @abstractmethod
    def set(
        self,
        key: str,
        value: Any,
        backend: DriverRequest = None,
        ttl: Optional[timedelta] = None,
        codec: Optional[Codec] = None,
    ) -> str:
        """
        Store a value.

        Args:
            key: Cache key to store data under
            value: Value to cache
            backend: Driver kind or name. If None, uses the default driver.
            ttl: Optional TTL override. If None, uses the configured default TTL.
            codec: Codec for a type the serializer does not handle natively

        Returns:
            Name of the driver that stored the value
        """

    @abstractmethod
    def get(
        self,
        key: str,
        value_type: Type,
        backend: DriverRequest = None,
        codec: Optional[Codec] = None,
    ) -> Any:
        """
        Retrieve a value decoded as value_type.

        Raises:
            CacheMissError: If the key is absent
            CacheTTLExpiredError: If the key expired
        """

    @abstractmethod
    def has(self, key: str, backend: DriverRequest = None) -> bool:
        """Return True if key is stored and not expired."""

    @abstractmethod
    def remove(self, key: str, backend: DriverRequest = None) -> None:
        """Remove a key. Removing an absent key is not an error."""

    @abstractmethod
    def clear(self, backend: DriverRequest = None) -> None:
        """Remove every key held by one driver."""

    @abstractmethod
    def keys(self, backend: DriverRequest = None) -> List[str]:
        """List keys stored in one driver."""

    @abstractmethod
    def get_stats(self) -> Any:
        """Get cache statistics for monitoring."""
