"""Cache engine: composes drivers, validation, serialization, TTL and events."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from .backends.base import CacheDriver, DriverKind
from .config import CacheConfig, load_cache_config
from .errors import (
    CacheBackendError,
    CacheError,
    CacheMissError,
    CacheOperationError,
    CacheSerializationError,
    CacheTTLExpiredError,
    GracefulDegradationMixin,
)
from .events import CacheEvent, CacheEventType, CacheSubscriber, SubscriptionHub
from .interfaces import ICacheEngine
from .registry import DriverRegistry, DriverRequest
from .serializer import Codec, Serializer
from .ttl import TTLTracker
from .validator import KeyValidator

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one key within a batch operation."""

    key: str
    value: Any = None
    error: Optional[CacheError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, or raise the error this key failed with."""
        if self.error is not None:
            raise self.error
        return self.value


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of engine state for dashboards and logs."""

    default_driver: str
    driver_health: Dict[str, bool]
    item_counts: Dict[str, int]
    total_items: int
    config: Dict[str, Any]
    fallback_count: int
    circuit_breakers: Dict[str, Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CacheEngine(ICacheEngine, GracefulDegradationMixin):
    """
    Multi-backend key-value cache.

    Every operation validates the key, resolves a healthy driver through the
    registry, and then talks to that driver in raw bytes. Writes that fail on
    a persistent driver are retried once on the memory driver. Reads consult
    the TTL tracker first and evict expired entries, unless a fresher write
    replaced the entry in the meantime. State changes are published to
    subscribers when there are any.

    Engines are plain instances; create as many as needed.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        drivers: Optional[Iterable[CacheDriver]] = None,
        default_driver: DriverRequest = None,
        serializer: Optional[Serializer] = None,
    ):
        """
        Initialize the cache engine.

        Args:
            config: Engine configuration. Defaults to CacheConfig().
            drivers: Driver instances to use. When None, memory, persistent
                and secure drivers are built from the configuration.
            default_driver: Preferred default driver kind or name
            serializer: Serializer to use; pass one with registered codecs
                to share it between engines
        """
        super().__init__()
        self.config = config or CacheConfig()
        self.serializer = serializer or Serializer()

        self._validator = KeyValidator(self.config)
        self._ttl = TTLTracker(enabled=self.config.enable_ttl)
        self._subscriptions = SubscriptionHub()
        self._registry = DriverRegistry(self.config, drivers)
        self._registry.initialize(default_driver)

    @property
    def default_driver(self) -> str:
        return self._registry.default_kind.value

    @property
    def driver_health(self) -> Dict[str, bool]:
        return self._registry.health()

    @property
    def is_initialized(self) -> bool:
        return self._registry.is_initialized

    @property
    def registry(self) -> DriverRegistry:
        return self._registry

    @property
    def ttl_tracker(self) -> TTLTracker:
        return self._ttl

    def register_codec(self, value_type: type, codec: Codec) -> None:
        self.serializer.register(value_type, codec)

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
            key: Cache key
            value: Value to store
            backend: Driver kind or name. If None, uses the default driver.
            ttl: Expiry for this entry. If None, uses the configured default_ttl,
                and without one the entry never expires.
            codec: Codec for a type the serializer does not handle natively

        Returns:
            Name of the driver that stored the value. This is the memory
            driver when the requested driver failed and the write degraded.

        Raises:
            CacheKeyError: If the key is invalid
            CacheSerializationError: If the value cannot be encoded
            CacheBackendError: If neither the driver nor the memory fallback
                could store the value
        """
        self._validator.validate(key)
        payload = self.serializer.encode(value, codec=codec)
        driver = self._registry.get_driver(backend)

        notify = self._subscriptions.has_subscribers(key)
        old_value = self._read_previous(driver, key) if notify else None

        stored_in = self._write(driver, key, payload)
        self._register_ttl(key, ttl)

        if notify:
            event_type = CacheEventType.UPDATED if old_value is not None else CacheEventType.CREATED
            self._notify(key, event_type, value=value, old_value=old_value)
        return stored_in.name

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
            CacheKeyError: If the key is invalid
            CacheTTLExpiredError: If the entry expired; it is evicted
            CacheMissError: If the key is absent
            CacheSerializationError: If the stored payload is not a value_type
            CacheOperationError: If the driver failed unexpectedly
        """
        self._validator.validate(key)
        driver = self._registry.get_driver(backend)

        entry = self._ttl.get_if_expired(key)
        if entry is not None:
            old_value = (
                self._read_for_event(driver, key)
                if self._subscriptions.has_subscribers(key)
                else None
            )
            # A write may have landed while we were reading; only evict the
            # entry we actually saw expire.
            if self._ttl.remove_if_version_matches(key, entry.version):
                self._evict(driver, key)
                self._notify(key, CacheEventType.EXPIRED, old_value=old_value)
                raise CacheTTLExpiredError(key, expired_at=datetime.fromtimestamp(entry.expires_at))
            logger.debug(f"TTL for {key} was refreshed during expiry check, reading current value")

        raw = self._call_driver("get", key, driver.get, key)
        if raw is None:
            raise CacheMissError(key)

        try:
            return self.serializer.decode(raw, value_type, codec=codec)
        except CacheSerializationError:
            raise
        except Exception as e:
            raise CacheSerializationError(
                f"Failed to deserialize key {key}", value_type=value_type, cause=e
            )

    def has(self, key: str, backend: DriverRequest = None) -> bool:
        self._validator.validate(key)
        driver = self._registry.get_driver(backend)
        if self._ttl.is_expired(key):
            return False
        return bool(self._call_driver("has", key, driver.has, key))

    def remove(self, key: str, backend: DriverRequest = None) -> None:
        """
        Remove a key and its TTL. Emits REMOVED if the key was present.

        Raises:
            CacheKeyError: If the key is invalid
            CacheBackendError: If the driver refused or failed the delete
        """
        self._validator.validate(key)
        driver = self._registry.get_driver(backend)

        notify = self._subscriptions.has_subscribers(key)
        old_value = self._read_for_event(driver, key) if notify else None

        self._call_driver("remove", key, self._registry.call, driver, driver.remove, key)
        self._ttl.remove(key)

        if notify and old_value is not None:
            self._notify(key, CacheEventType.REMOVED, old_value=old_value)

    def clear(self, backend: DriverRequest = None) -> None:
        """
        Remove every key from one driver, emitting CLEARED for each.

        Raises:
            CacheBackendError: If the driver refused or failed the clear
        """
        driver = self._registry.get_driver(backend)
        self._clear_driver(driver)

    def clear_all(self) -> None:
        """
        Clear every healthy driver and all TTL entries.

        Raises:
            CacheOperationError: If any driver failed to clear
        """
        failed: List[str] = []
        for driver in self._registry.healthy_drivers():
            try:
                self._clear_driver(driver)
            except CacheError as e:
                logger.error(f"Failed to clear {driver.name} driver: {e}")
                failed.append(driver.name)

        self._ttl.clear()
        if failed:
            raise CacheOperationError(
                f"Failed to clear drivers: {', '.join(failed)}", operation="clear_all"
            )

    def keys(self, backend: DriverRequest = None) -> List[str]:
        driver = self._registry.get_driver(backend)
        return list(self._call_driver("keys", None, driver.keys))

    def size(self, backend: DriverRequest = None) -> int:
        return len(self.keys(backend=backend))

    def set_multiple(
        self,
        items: Dict[str, Any],
        backend: DriverRequest = None,
        ttl: Optional[timedelta] = None,
        codec: Optional[Codec] = None,
    ) -> Dict[str, BatchResult]:
        """
        Store several values, each independently.

        Returns:
            Per-key results in input order. A failed key carries its error;
            the other keys are unaffected.
        """
        self._require_batching("set_multiple")

        def set_one(key: str) -> Any:
            self.set(key, items[key], backend=backend, ttl=ttl, codec=codec)
            return items[key]

        return self._run_batch(items.keys(), set_one)

    def get_multiple(
        self,
        keys: Iterable[str],
        value_type: Type,
        backend: DriverRequest = None,
        codec: Optional[Codec] = None,
    ) -> Dict[str, BatchResult]:
        """Retrieve several values; misses and expiries are per-key errors."""
        self._require_batching("get_multiple")
        return self._run_batch(
            keys, lambda key: self.get(key, value_type, backend=backend, codec=codec)
        )

    def remove_multiple(
        self, keys: Iterable[str], backend: DriverRequest = None
    ) -> Dict[str, BatchResult]:
        self._require_batching("remove_multiple")
        return self._run_batch(keys, lambda key: self.remove(key, backend=backend))

    def subscribe(self, key: str, callback: CacheSubscriber) -> None:
        self._subscriptions.subscribe(key, callback)

    def unsubscribe(self, key: str, callback: CacheSubscriber) -> None:
        self._subscriptions.unsubscribe(key, callback)

    def subscribe_all(self, callback: CacheSubscriber) -> None:
        self._subscriptions.subscribe_all(callback)

    def unsubscribe_all(self, callback: CacheSubscriber) -> None:
        self._subscriptions.unsubscribe_all(callback)

    def get_stats(self) -> CacheStats:
        stats = self._registry.get_stats()
        return CacheStats(
            default_driver=stats["default_driver"],
            driver_health=stats["driver_health"],
            item_counts=stats["item_counts"],
            total_items=sum(stats["item_counts"].values()),
            config=stats["config"],
            fallback_count=stats["fallback_count"]
            + self.get_degradation_stats()["degradation_count"],
            circuit_breakers=stats["circuit_breakers"],
        )

    def scoped(self, backend: DriverRequest) -> "ScopedCache":
        """Return a view of this engine pinned to one driver."""
        return ScopedCache(self, backend)

    def _write(self, driver: CacheDriver, key: str, payload: bytes) -> CacheDriver:
        if driver.kind == DriverKind.MEMORY:
            try:
                driver.set(key, payload)
            except Exception as e:
                raise CacheBackendError(
                    f"Memory driver failed to store key {key}", backend=driver.name, cause=e
                )
            return driver

        memory = self._registry.memory

        def store_primary() -> CacheDriver:
            self._registry.call(driver, driver.set, key, payload)
            return driver

        def store_fallback() -> CacheDriver:
            memory.set(key, payload)
            return memory

        return self.with_graceful_degradation(
            store_primary,
            store_fallback,
            operation_name=f"set on {driver.name} driver for key {key}",
            fallback_name=memory.name,
            log_degradation=self.config.log_fallbacks,
        )

    def _register_ttl(self, key: str, ttl: Optional[timedelta]) -> None:
        if ttl is None and self.config.default_ttl is not None:
            ttl = timedelta(seconds=self.config.default_ttl)

        if ttl is not None and self.config.enable_ttl:
            self._ttl.set(key, ttl)
            return

        if ttl is not None:
            logger.warning(f"TTL requested for {key} but TTL tracking is disabled")
        # Overwritten entries do not inherit the previous expiry
        self._ttl.remove(key)

    def _evict(self, driver: CacheDriver, key: str) -> None:
        try:
            self._registry.call(driver, driver.remove, key)
        except CacheError as e:
            logger.warning(f"Failed to evict expired key {key} from {driver.name}: {e}")

    def _clear_driver(self, driver: CacheDriver) -> None:
        cleared_keys = list(self._call_driver("keys", None, driver.keys))
        self._call_driver("clear", None, self._registry.call, driver, driver.clear)
        self._ttl.remove_multiple(cleared_keys)

        if self._subscriptions.has_any_subscribers():
            for key in cleared_keys:
                self._notify(key, CacheEventType.CLEARED)
        logger.debug(f"Cleared {len(cleared_keys)} keys from {driver.name} driver")

    def _call_driver(self, operation: str, key: Optional[str], func: Callable, *args) -> Any:
        try:
            return func(*args)
        except CacheError:
            raise
        except Exception as e:
            target = f" for key {key}" if key is not None else ""
            raise CacheOperationError(
                f"Cache {operation} failed{target}", operation=operation, cause=e
            )

    def _read_for_event(self, driver: CacheDriver, key: str) -> Optional[bytes]:
        try:
            return driver.get(key)
        except Exception as e:
            logger.debug(f"Could not read previous value of {key} for event: {e}")
            return None

    def _read_previous(self, driver: CacheDriver, key: str) -> Optional[bytes]:
        old_value = self._read_for_event(driver, key)
        memory = self._registry.memory
        if old_value is None and driver is not memory:
            # Earlier writes may have degraded to memory
            old_value = self._read_for_event(memory, key)
        return old_value

    def _notify(
        self,
        key: str,
        event_type: CacheEventType,
        value: Any = None,
        old_value: Optional[bytes] = None,
    ) -> None:
        if not self._subscriptions.has_subscribers(key):
            return
        self._subscriptions.notify(
            CacheEvent(key=key, type=event_type, value=value, old_value=old_value)
        )

    def _run_batch(
        self, keys: Iterable[str], operation: Callable[[str], Any]
    ) -> Dict[str, BatchResult]:
        results: Dict[str, BatchResult] = {}
        for key in keys:
            try:
                results[key] = BatchResult(key=key, value=operation(key))
            except CacheError as e:
                results[key] = BatchResult(key=key, error=e)
        return results

    def _require_batching(self, operation: str) -> None:
        if not self.config.enable_batching:
            raise CacheOperationError(
                f"Batch operations are disabled; {operation} is unavailable",
                operation=operation,
            )


class ScopedCache:
    """
    A view of a CacheEngine pinned to a single driver.

    Errors are the same as the engine's: a missing or expired key raises.
    """

    def __init__(self, engine: CacheEngine, backend: DriverRequest):
        self._engine = engine
        self.backend = backend

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[timedelta] = None,
        codec: Optional[Codec] = None,
    ) -> str:
        return self._engine.set(key, value, backend=self.backend, ttl=ttl, codec=codec)

    def get(self, key: str, value_type: Type, codec: Optional[Codec] = None) -> Any:
        return self._engine.get(key, value_type, backend=self.backend, codec=codec)

    def has(self, key: str) -> bool:
        return self._engine.has(key, backend=self.backend)

    def remove(self, key: str) -> None:
        self._engine.remove(key, backend=self.backend)

    def clear(self) -> None:
        self._engine.clear(backend=self.backend)

    def keys(self) -> List[str]:
        return self._engine.keys(backend=self.backend)

    def size(self) -> int:
        return self._engine.size(backend=self.backend)


def create_cache_engine(
    config: Optional[CacheConfig] = None,
    default_driver: DriverRequest = None,
    config_path: Optional[str] = None,
) -> CacheEngine:
    """
    Create a cache engine from loaded configuration.

    Args:
        config: Configuration to use. If None, loads it from the config file
            and environment.
        default_driver: Preferred default driver kind or name
        config_path: Config file to load when config is None

    Returns:
        Initialized CacheEngine
    """
    if config is None:
        config = load_cache_config(config_path)
    engine = CacheEngine(config=config, default_driver=default_driver)
    logger.info(f"Created cache engine with default driver {engine.default_driver}")
    return engine
