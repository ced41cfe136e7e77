"""Multi-backend cache engine.

This package provides:
- The CacheEngine facade and its batch, scoped and subscription APIs
- Memory, persistent file and encrypted file drivers
- Driver health tracking with automatic fallback to memory
- TTL bookkeeping, key validation and value serialization
"""

from .backends import (
    CacheDriver,
    DriverDescriptor,
    DriverKind,
    FileDriver,
    MemoryDriver,
    SecureDriver,
)
from .config import CacheConfig, load_cache_config
from .errors import (
    CacheBackendError,
    CacheConfigurationError,
    CacheError,
    CacheErrorKind,
    CacheKeyError,
    CacheMissError,
    CacheOperationError,
    CacheSerializationError,
    CacheTTLExpiredError,
    CircuitBreaker,
    CircuitBreakerState,
    GracefulDegradationMixin,
)
from .events import CacheEvent, CacheEventType, SubscriptionHub
from .interfaces import ICacheEngine
from .manager import BatchResult, CacheEngine, CacheStats, ScopedCache, create_cache_engine
from .registry import DriverRegistry
from .serializer import Codec, Serializable, Serializer
from .ttl import TTLEntry, TTLTracker
from .validator import KeyValidator

__all__ = [
    # Engine
    "CacheEngine",
    "ICacheEngine",
    "ScopedCache",
    "BatchResult",
    "CacheStats",
    "create_cache_engine",
    # Drivers
    "CacheDriver",
    "DriverDescriptor",
    "DriverKind",
    "DriverRegistry",
    "MemoryDriver",
    "FileDriver",
    "SecureDriver",
    # Configuration
    "CacheConfig",
    "load_cache_config",
    # Components
    "KeyValidator",
    "Serializer",
    "Codec",
    "Serializable",
    "TTLTracker",
    "TTLEntry",
    "SubscriptionHub",
    "CacheEvent",
    "CacheEventType",
    # Errors
    "CacheError",
    "CacheErrorKind",
    "CacheKeyError",
    "CacheSerializationError",
    "CacheBackendError",
    "CacheMissError",
    "CacheTTLExpiredError",
    "CacheOperationError",
    "CacheConfigurationError",
    "CircuitBreaker",
    "CircuitBreakerState",
    "GracefulDegradationMixin",
]
