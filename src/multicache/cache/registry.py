"""Driver registry: backend discovery, health tracking and selection."""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .backends.base import CacheDriver, DriverDescriptor, DriverKind
from .backends.file import FileDriver
from .backends.memory import MemoryDriver
from .backends.secure import SecureDriver
from .config import CacheConfig
from .errors import CacheBackendError, CacheError, CacheOperationError, CircuitBreaker

logger = logging.getLogger(__name__)

DriverRequest = Union[DriverKind, str, None]


class DriverRegistry:
    """
    Holds one driver per kind and decides which one serves a request.

    The memory driver is always registered and always healthy, so resolution
    can never come back empty-handed. Every other driver's health is
    re-evaluated on each resolution: a driver that reports itself unavailable,
    or whose circuit breaker is open, is skipped in favour of the default
    driver and finally memory.
    """

    def __init__(self, config: CacheConfig, drivers: Optional[Iterable[CacheDriver]] = None):
        """
        Initialize the registry.

        Args:
            config: Engine configuration
            drivers: Driver instances to register. When None, the persistent
                and secure drivers are built from the configuration.
        """
        self.config = config
        self._supplied_drivers = list(drivers) if drivers is not None else None

        self._drivers: Dict[DriverKind, CacheDriver] = {}
        self._health: Dict[DriverKind, bool] = {}
        self._breakers: Dict[DriverKind, CircuitBreaker] = {}
        self._default_kind: Optional[DriverKind] = None
        self._fallback_count = 0

    @property
    def is_initialized(self) -> bool:
        return self._default_kind is not None

    @property
    def default_kind(self) -> DriverKind:
        self._require_initialized()
        return self._default_kind

    @property
    def memory(self) -> CacheDriver:
        self._require_initialized()
        return self._drivers[DriverKind.MEMORY]

    @property
    def fallback_count(self) -> int:
        """Number of resolutions that were redirected to another driver."""
        return self._fallback_count

    def initialize(self, requested_default: DriverRequest = None) -> DriverKind:
        """
        Register and probe drivers, then choose the default.

        Default resolution: the requested kind if healthy, else the
        persistent driver if healthy, else memory.

        Args:
            requested_default: Preferred default driver kind or name

        Returns:
            The chosen default kind
        """
        self._drivers.clear()
        self._health.clear()
        self._breakers.clear()

        if self._supplied_drivers is not None:
            for driver in self._supplied_drivers:
                self._register(driver)
        else:
            self._create_default_drivers()

        if DriverKind.MEMORY not in self._drivers:
            self._register(MemoryDriver(max_items=self.config.max_items_per_backend))

        for kind in list(self._drivers):
            self._check_health(kind)
        self._health[DriverKind.MEMORY] = True

        requested_kind = DriverKind.parse(requested_default)
        if requested_default is not None and requested_kind is None:
            logger.warning(f"Unknown default driver '{requested_default}', auto-detecting")

        if requested_kind is not None and self._health.get(requested_kind, False):
            self._default_kind = requested_kind
        elif self._health.get(DriverKind.PERSISTENT, False):
            self._default_kind = DriverKind.PERSISTENT
        else:
            self._default_kind = DriverKind.MEMORY

        if requested_kind is not None and requested_kind != self._default_kind:
            logger.warning(
                f"Requested default driver {requested_kind.value} is unavailable, "
                f"using {self._default_kind.value}"
            )

        logger.info(
            f"Cache drivers initialized: default={self._default_kind.value}, "
            f"health={self._health_snapshot()}"
        )
        return self._default_kind

    def get_driver(self, requested: DriverRequest = None) -> CacheDriver:
        """
        Resolve the driver that should serve a request.

        Args:
            requested: Driver kind, its name, or None for the default

        Returns:
            A healthy driver. Never an unhealthy one.
        """
        self._require_initialized()
        kind = DriverKind.parse(requested)

        if requested is not None and kind is None:
            self._log_fallback(f"Unknown driver '{requested}'", self._default_kind)
        elif kind is not None and kind != self._default_kind:
            if self._check_health(kind):
                return self._drivers[kind]
            self._log_fallback(f"Driver {kind.value} is unavailable", self._default_kind)

        if self._check_health(self._default_kind):
            return self._drivers[self._default_kind]

        self._log_fallback(f"Default driver {self._default_kind.value} is unavailable", None)
        return self._drivers[DriverKind.MEMORY]

    def call(self, driver: CacheDriver, func: Callable, *args, **kwargs) -> Any:
        """
        Invoke a driver operation, guarded by that driver's circuit breaker.

        Raises:
            CacheBackendError: If the breaker is open or the operation fails
        """
        breaker = self._breakers.get(driver.kind)
        if breaker is None or self._drivers.get(driver.kind) is not driver:
            return func(*args, **kwargs)
        return breaker.call(func, *args, **kwargs)

    def is_healthy(self, requested: DriverRequest) -> bool:
        kind = DriverKind.parse(requested)
        if kind is None:
            return False
        return self._check_health(kind)

    def health(self) -> Dict[str, bool]:
        """Re-evaluate and return health for every known kind."""
        self._require_initialized()
        for kind in list(self._health):
            self._check_health(kind)
        return self._health_snapshot()

    def healthy_drivers(self) -> List[CacheDriver]:
        return [self._drivers[kind] for kind in list(self._drivers) if self._check_health(kind)]

    def describe(self) -> List[DriverDescriptor]:
        return [
            DriverDescriptor(kind=kind, is_available=self._check_health(kind))
            for kind in DriverKind
            if kind in self._health
        ]

    def item_counts(self) -> Dict[str, int]:
        """Count stored keys for each healthy driver."""
        counts: Dict[str, int] = {}
        for driver in self.healthy_drivers():
            try:
                counts[driver.name] = len(driver.keys())
            except CacheError as e:
                logger.warning(f"Could not count keys in {driver.name} driver: {e}")
                counts[driver.name] = 0
        return counts

    def get_stats(self) -> Dict[str, Any]:
        """Registry statistics for observability. Nothing reads them back."""
        self._require_initialized()
        return {
            "default_driver": self._default_kind.value,
            "driver_health": self.health(),
            "item_counts": self.item_counts(),
            "config": self.config.to_dict(),
            "fallback_count": self._fallback_count,
            "circuit_breakers": {
                kind.value: breaker.get_stats() for kind, breaker in self._breakers.items()
            },
        }

    def _register(self, driver: CacheDriver) -> None:
        if driver.kind in self._drivers:
            logger.warning(f"Replacing already registered {driver.name} driver")
        self._drivers[driver.kind] = driver
        if driver.kind != DriverKind.MEMORY:
            self._breakers[driver.kind] = CircuitBreaker(
                failure_threshold=self.config.failure_threshold,
                recovery_timeout=self.config.recovery_timeout,
                expected_exception=CacheBackendError,
                name=driver.name,
            )

    def _create_default_drivers(self) -> None:
        cache_dir = str(self.config.resolved_cache_dir)
        max_items = self.config.max_items_per_backend

        factories: Dict[DriverKind, Callable[[], CacheDriver]] = {
            DriverKind.MEMORY: lambda: MemoryDriver(max_items=max_items),
            DriverKind.PERSISTENT: lambda: FileDriver(cache_dir=cache_dir, max_items=max_items),
            DriverKind.SECURE: lambda: SecureDriver(cache_dir=cache_dir, max_items=max_items),
        }

        for kind, factory in factories.items():
            try:
                self._register(factory())
            except (CacheError, OSError) as e:
                logger.warning(f"Failed to create {kind.value} driver: {e}")
                self._health[kind] = False

    def _check_health(self, kind: DriverKind) -> bool:
        if kind == DriverKind.MEMORY:
            return True

        driver = self._drivers.get(kind)
        if driver is None:
            self._health[kind] = False
            return False

        breaker = self._breakers.get(kind)
        if breaker is not None and not breaker.allows_requests():
            healthy = False
        else:
            try:
                healthy = bool(driver.is_available)
            except Exception as e:
                logger.warning(f"Health probe for {kind.value} driver raised: {e}")
                healthy = False

        previous = self._health.get(kind)
        if previous is not None and previous != healthy:
            log = logger.info if healthy else logger.warning
            log(f"Driver {kind.value} is now {'healthy' if healthy else 'unhealthy'}")
        self._health[kind] = healthy
        return healthy

    def _log_fallback(self, reason: str, target: Optional[DriverKind]) -> None:
        self._fallback_count += 1
        if self.config.log_fallbacks:
            target_name = target.value if target is not None else DriverKind.MEMORY.value
            logger.warning(f"{reason}, falling back to {target_name}")

    def _health_snapshot(self) -> Dict[str, bool]:
        return {kind.value: self._health[kind] for kind in DriverKind if kind in self._health}

    def _require_initialized(self) -> None:
        if self._default_kind is None:
            raise CacheOperationError(
                "Driver registry is not initialized", operation="resolve_driver"
            )
