"""Cache error taxonomy, circuit breaker and graceful degradation."""

import logging
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Type

logger = logging.getLogger(__name__)


class CacheErrorKind(Enum):
    """Classification of every error the cache engine can surface."""

    KEY_INVALID = "key_invalid"
    SERIALIZATION_FAILED = "serialization_failed"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    MISS = "miss"
    TTL_EXPIRED = "ttl_expired"
    OPERATION_FAILED = "operation_failed"


class CacheError(Exception):
    """Base exception for cache-related errors."""

    kind: CacheErrorKind = CacheErrorKind.OPERATION_FAILED

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause is not None:
            return f"{base_msg} (caused by: {self.cause})"
        return base_msg


class CacheKeyError(CacheError):
    """Cache key failed structural validation."""

    kind = CacheErrorKind.KEY_INVALID

    def __init__(self, message: str, invalid_key: Any = None, cause: Optional[Exception] = None):
        super().__init__(message, cause=cause)
        self.invalid_key = invalid_key


class CacheSerializationError(CacheError):
    """Error serializing/deserializing cache data."""

    kind = CacheErrorKind.SERIALIZATION_FAILED

    def __init__(
        self,
        message: str,
        value_type: Optional[type] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause)
        self.value_type = value_type


class CacheBackendError(CacheError):
    """Backend is unavailable or failed an I/O operation."""

    kind = CacheErrorKind.BACKEND_UNAVAILABLE

    def __init__(
        self,
        message: str,
        backend: str = "unknown",
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause)
        self.backend = backend


class CacheMissError(CacheError):
    """Key is absent from the resolved backend."""

    kind = CacheErrorKind.MISS

    def __init__(self, key: str, message: Optional[str] = None):
        super().__init__(message or f"Cache miss for key: {key}")
        self.key = key


class CacheTTLExpiredError(CacheError):
    """Value existed but its TTL had elapsed when it was read."""

    kind = CacheErrorKind.TTL_EXPIRED

    def __init__(self, key: str, expired_at: datetime, message: Optional[str] = None):
        super().__init__(message or f"Cache entry expired for key: {key}")
        self.key = key
        self.expired_at = expired_at


class CacheOperationError(CacheError):
    """Unexpected failure while performing a cache operation."""

    kind = CacheErrorKind.OPERATION_FAILED

    def __init__(self, message: str, operation: str = "unknown", cause: Optional[Exception] = None):
        super().__init__(message, cause=cause)
        self.operation = operation


class CacheConfigurationError(CacheError):
    """Error in cache configuration."""

    pass


class CircuitBreakerState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, blocking requests
    HALF_OPEN = "half_open"  # Testing if backend recovered


class CircuitBreaker:
    """
    Circuit breaker guarding a single cache driver.

    Repeated backend failures open the circuit; while it is open the driver
    is reported unhealthy and calls are refused with CacheBackendError until
    the recovery timeout lets a probe call through.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        expected_exception: Type[Exception] = CacheBackendError,
        success_threshold: int = 1,
        name: str = "unknown",
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before trying half-open
            expected_exception: Exception type that counts as a failure
            success_threshold: Successful calls needed to close circuit from half-open
            name: Name of the guarded driver, used in errors and logs
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.success_threshold = success_threshold
        self.name = name

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitBreakerState:
        """Get current circuit breaker state."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Get current failure count."""
        return self._failure_count

    def allows_requests(self) -> bool:
        """Return True unless the circuit is open and still cooling down."""
        if self._state != CircuitBreakerState.OPEN:
            return True
        return self._should_attempt_reset()

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Call function with circuit breaker protection.

        Raises:
            CacheBackendError: When circuit is open
            Original exception: When function fails
        """
        with self._lock:
            if self._state == CircuitBreakerState.OPEN:
                if self._should_attempt_reset():
                    self._state = CircuitBreakerState.HALF_OPEN
                    logger.info(f"Circuit breaker for {self.name} transitioning to HALF_OPEN")
                else:
                    raise CacheBackendError(
                        f"Circuit breaker is OPEN. Last failure: {self._last_failure_time}",
                        backend=self.name,
                    )

        try:
            result = func(*args, **kwargs)
            self._on_success()
            return result
        except self.expected_exception:
            self._on_failure()
            raise

    def _should_attempt_reset(self) -> bool:
        """Check if enough time has passed to attempt reset."""
        if self._last_failure_time is None:
            return True
        return time.time() - self._last_failure_time >= self.recovery_timeout

    def _on_success(self) -> None:
        with self._lock:
            if self._state == CircuitBreakerState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._reset()
                    logger.info(f"Circuit breaker for {self.name} reset to CLOSED")
            elif self._state == CircuitBreakerState.CLOSED:
                self._failure_count = 0

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.time()

            if self._state == CircuitBreakerState.HALF_OPEN:
                self._state = CircuitBreakerState.OPEN
                self._success_count = 0
                logger.warning(f"Circuit breaker for {self.name} re-opened after failed probe")
            elif self._state == CircuitBreakerState.CLOSED:
                if self._failure_count >= self.failure_threshold:
                    self._state = CircuitBreakerState.OPEN
                    logger.warning(
                        f"Circuit breaker for {self.name} opened after {self._failure_count} failures"
                    )

    def _reset(self) -> None:
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None

    def reset(self) -> None:
        """Manually reset circuit breaker (for testing/admin purposes)."""
        with self._lock:
            self._reset()
            logger.info(f"Circuit breaker for {self.name} manually reset")

    def get_stats(self) -> dict:
        """Get circuit breaker statistics."""
        with self._lock:
            return {
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "last_failure_time": self._last_failure_time,
                "failure_threshold": self.failure_threshold,
                "recovery_timeout": self.recovery_timeout,
            }


class GracefulDegradationMixin:
    """
    Mixin providing a single-step fallback for failed cache writes.

    The primary operation is tried once; if it raises, the fallback runs and
    its outcome becomes the result. A failing fallback is fatal.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._degradation_count = 0
        self._degradation_lock = threading.Lock()

    def with_graceful_degradation(
        self,
        primary_operation: Callable[[], Any],
        fallback_operation: Callable[[], Any],
        operation_name: str = "cache operation",
        fallback_name: str = "memory",
        log_degradation: bool = True,
    ) -> Any:
        """
        Execute primary_operation, degrading to fallback_operation on failure.

        Raises:
            CacheBackendError: If the fallback operation fails as well
        """
        try:
            return primary_operation()
        except Exception as e:
            with self._degradation_lock:
                self._degradation_count += 1

            if log_degradation:
                logger.warning(
                    f"Cache {operation_name} failed, falling back to {fallback_name}: {e}"
                )

            try:
                return fallback_operation()
            except Exception as fallback_error:
                logger.error(
                    f"Both primary and {fallback_name} {operation_name} failed. "
                    f"Primary error: {e}, fallback error: {fallback_error}"
                )
                raise CacheBackendError(
                    f"Fallback to {fallback_name} driver also failed during {operation_name}",
                    backend=fallback_name,
                    cause=fallback_error,
                ) from fallback_error

    def get_degradation_stats(self) -> dict:
        """Get graceful degradation statistics."""
        with self._degradation_lock:
            return {"degradation_count": self._degradation_count}

    def reset_degradation_stats(self) -> None:
        """Reset degradation statistics (for testing)."""
        with self._degradation_lock:
            self._degradation_count = 0
