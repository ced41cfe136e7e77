"""Tests for the CacheEngine."""

import inspect
import logging
import time
from datetime import timedelta
from enum import IntEnum
from typing import Optional

import pytest

from multicache.cache.backends.memory import MemoryDriver
from multicache.cache.config import CacheConfig
from multicache.cache.errors import (
    CacheBackendError,
    CacheKeyError,
    CacheMissError,
    CacheOperationError,
    CacheSerializationError,
    CacheTTLExpiredError,
)
from multicache.cache.events import CacheEventType
from multicache.cache.interfaces import ICacheEngine
from multicache.cache.manager import CacheEngine, CacheStats, create_cache_engine


class ExplodingReadDriver(MemoryDriver):
    """Memory driver whose reads raise a configurable exception."""

    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    def get(self, key: str) -> Optional[bytes]:
        raise self.error


@pytest.fixture
def engine(cache_config, toggle_driver):
    return CacheEngine(config=cache_config, drivers=[toggle_driver])


class TestBasicOperations:
    """Test set/get/has/remove through the default driver."""

    def test_round_trip(self, engine, toggle_driver):
        engine.set("user:42", {"name": "alice", "roles": ["admin"]})

        assert engine.get("user:42", dict) == {"name": "alice", "roles": ["admin"]}
        assert engine.has("user:42")
        assert toggle_driver.get("user:42") == b'{"name":"alice","roles":["admin"]}'

    def test_default_driver(self, engine):
        assert engine.is_initialized
        assert engine.default_driver == "persistent"
        assert engine.driver_health == {"memory": True, "persistent": True}

    def test_miss(self, engine):
        with pytest.raises(CacheMissError) as exc_info:
            engine.get("absent", str)

        assert exc_info.value.key == "absent"
        assert not engine.has("absent")

    @pytest.mark.parametrize("key", ["", "_private", "token_ttl", "a\nb", "x" * 251])
    def test_invalid_keys_are_rejected(self, engine, key):
        with pytest.raises(CacheKeyError):
            engine.set(key, "v")
        with pytest.raises(CacheKeyError):
            engine.get(key, str)
        with pytest.raises(CacheKeyError):
            engine.has(key)
        with pytest.raises(CacheKeyError):
            engine.remove(key)

    def test_unserializable_value_never_reaches_driver(self, engine, toggle_driver):
        with pytest.raises(CacheSerializationError):
            engine.set("k", object())

        assert toggle_driver.keys() == []

    def test_int_enum_needs_codec(self, engine, toggle_driver):
        class Priority(IntEnum):
            HIGH = 1

        with pytest.raises(CacheSerializationError):
            engine.set("k", Priority.HIGH)

        assert not toggle_driver.has("k")

    def test_type_mismatch_on_read(self, engine):
        engine.set("k", "not a number")

        with pytest.raises(CacheSerializationError):
            engine.get("k", int)

    def test_remove(self, engine):
        engine.set("k", "v")
        engine.remove("k")
        engine.remove("k")

        with pytest.raises(CacheMissError):
            engine.get("k", str)

    def test_keys_and_size(self, engine):
        engine.set("a", 1)
        engine.set("b", 2)

        assert sorted(engine.keys()) == ["a", "b"]
        assert engine.size() == 2
        assert engine.size(backend="memory") == 0

    def test_explicit_backend(self, engine, toggle_driver):
        engine.set("k", "v", backend="memory")

        assert engine.get("k", str, backend="memory") == "v"
        assert not engine.has("k")
        assert toggle_driver.keys() == []

    def test_driver_read_errors(self, cache_config):
        failing_reads = ExplodingReadDriver(RuntimeError("boom"))
        engine = CacheEngine(config=cache_config, drivers=[failing_reads])
        with pytest.raises(CacheOperationError) as exc_info:
            engine.get("k", str)
        assert exc_info.value.operation == "get"

        backend_error = CacheBackendError("offline", backend="memory")
        engine = CacheEngine(config=cache_config, drivers=[ExplodingReadDriver(backend_error)])
        with pytest.raises(CacheBackendError) as exc_info:
            engine.get("k", str)
        assert exc_info.value is backend_error


class TestTTL:
    """Test expiry and stale-eviction protection."""

    def test_expired_entry_raises_and_is_evicted(self, engine, toggle_driver, recorder):
        engine.subscribe_all(recorder)
        engine.set("session", "token", ttl=timedelta(0))
        time.sleep(0.01)

        with pytest.raises(CacheTTLExpiredError) as exc_info:
            engine.get("session", str)

        assert exc_info.value.key == "session"
        assert not toggle_driver.has("session")
        assert len(recorder.of_type(CacheEventType.EXPIRED)) == 1
        assert recorder.of_type(CacheEventType.EXPIRED)[0].old_value == b"token"

        with pytest.raises(CacheMissError):
            engine.get("session", str)
        assert len(recorder.of_type(CacheEventType.EXPIRED)) == 1

    def test_unexpired_entry_is_readable(self, engine):
        engine.set("session", "token", ttl=timedelta(minutes=5))

        assert engine.get("session", str) == "token"
        assert engine.ttl_tracker.get_entry("session") is not None

    def test_expired_entry_is_not_reported_by_has(self, engine):
        engine.set("session", "token", ttl=timedelta(0))
        time.sleep(0.01)

        assert not engine.has("session")

    def test_fresh_write_during_expiry_check_survives(self, cache_config, racing_driver, recorder):
        engine = CacheEngine(config=cache_config, drivers=[racing_driver])
        engine.set("k", "stale", ttl=timedelta(0))
        engine.subscribe("k", recorder)
        time.sleep(0.01)

        racing_driver.on_get = lambda: engine.set("k", "fresh", ttl=timedelta(minutes=5))

        assert engine.get("k", str) == "fresh"
        assert recorder.of_type(CacheEventType.EXPIRED) == []
        assert engine.get("k", str) == "fresh"

    def test_default_ttl(self, cache_dir, toggle_driver):
        config = CacheConfig(cache_dir=str(cache_dir), default_ttl=0)
        engine = CacheEngine(config=config, drivers=[toggle_driver])
        engine.set("k", "v")
        time.sleep(0.01)

        with pytest.raises(CacheTTLExpiredError):
            engine.get("k", str)

    def test_overwrite_without_ttl_clears_expiry(self, engine):
        engine.set("k", "v", ttl=timedelta(0))
        engine.set("k", "v2")
        time.sleep(0.01)

        assert engine.ttl_tracker.get_entry("k") is None
        assert engine.get("k", str) == "v2"

    def test_disabled_ttl(self, cache_dir, toggle_driver, caplog):
        config = CacheConfig(cache_dir=str(cache_dir), enable_ttl=False)
        engine = CacheEngine(config=config, drivers=[toggle_driver])

        with caplog.at_level(logging.WARNING):
            engine.set("k", "v", ttl=timedelta(0))
        time.sleep(0.01)

        assert "TTL tracking is disabled" in caplog.text
        assert engine.get("k", str) == "v"

    def test_remove_drops_ttl(self, engine):
        engine.set("k", "v", ttl=timedelta(minutes=5))
        engine.remove("k")

        assert engine.ttl_tracker.get_entry("k") is None


class TestFallback:
    """Test driver fallback on unavailability and write failure."""

    def test_unavailable_default_routes_to_memory(self, cache_config, toggle_driver):
        engine = CacheEngine(config=cache_config, drivers=[toggle_driver])
        toggle_driver.available = False

        engine.set("k", "v")

        assert engine.get("k", str) == "v"
        assert engine.registry.memory.has("k")
        assert engine.get_stats().fallback_count == 2

    def test_failed_write_falls_back_to_memory(self, cache_config, failing_driver, caplog):
        engine = CacheEngine(config=cache_config, drivers=[failing_driver])

        with caplog.at_level(logging.WARNING):
            engine.set("k", "v")

        assert failing_driver.set_attempts == 1
        assert engine.get("k", str, backend="memory") == "v"
        assert "falling back to memory" in caplog.text
        assert engine.get_stats().fallback_count == 1

    def test_set_reports_storing_driver(self, cache_config, toggle_driver, failing_driver):
        healthy = CacheEngine(config=cache_config, drivers=[toggle_driver])
        degraded = CacheEngine(config=cache_config, drivers=[failing_driver])

        assert healthy.set("k", "v") == "persistent"
        assert healthy.scoped("memory").set("k", "v") == "memory"
        assert degraded.set("k", "v") == "memory"

    def test_fallback_logging_can_be_disabled(self, cache_dir, failing_driver, caplog):
        config = CacheConfig(cache_dir=str(cache_dir), log_fallbacks=False)
        engine = CacheEngine(config=config, drivers=[failing_driver])

        with caplog.at_level(logging.WARNING):
            engine.set("k", "v")

        assert "falling back" not in caplog.text
        assert engine.get("k", str, backend="memory") == "v"

    def test_memory_failure_raises(self, cache_config, broken_memory_driver):
        engine = CacheEngine(config=cache_config, drivers=[broken_memory_driver])

        with pytest.raises(CacheBackendError) as exc_info:
            engine.set("k", "v")

        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_double_failure_raises(self, cache_config, failing_driver, broken_memory_driver):
        engine = CacheEngine(config=cache_config, drivers=[failing_driver, broken_memory_driver])

        with pytest.raises(CacheBackendError, match="Fallback to memory driver also failed"):
            engine.set("k", "v")


class TestEvents:
    """Test change notifications."""

    def test_created_then_updated(self, engine, recorder):
        engine.subscribe("k", recorder)

        engine.set("k", "a")
        engine.set("k", "b")

        created, updated = recorder.events
        assert created.is_created
        assert created.value == "a"
        assert created.old_value is None
        assert updated.is_updated
        assert updated.value == "b"
        assert updated.old_value == b"a"

    def test_updated_after_degraded_write(self, cache_config, failing_driver, recorder):
        engine = CacheEngine(config=cache_config, drivers=[failing_driver])
        engine.subscribe("k", recorder)

        engine.set("k", 1)
        engine.set("k", 2)

        created, updated = recorder.events
        assert created.is_created
        assert updated.is_updated
        assert updated.old_value == b"1"

    def test_removed_only_when_present(self, engine, recorder):
        engine.set("k", "a")
        engine.subscribe("k", recorder)

        engine.remove("k")
        engine.remove("k")

        assert len(recorder.events) == 1
        assert recorder.events[0].is_removed
        assert recorder.events[0].old_value == b"a"

    def test_cleared_for_each_key(self, engine, recorder):
        engine.set("a", 1)
        engine.set("b", 2)
        engine.subscribe_all(recorder)

        engine.clear()

        assert sorted(e.key for e in recorder.of_type(CacheEventType.CLEARED)) == ["a", "b"]
        assert engine.keys() == []

    def test_other_keys_are_not_reported(self, engine, recorder):
        engine.subscribe("watched", recorder)

        engine.set("other", "v")

        assert recorder.events == []

    def test_failing_subscriber_does_not_break_operation(self, engine, recorder, caplog):
        def explode(event):
            raise RuntimeError("subscriber bug")

        engine.subscribe("k", explode)
        engine.subscribe("k", recorder)

        with caplog.at_level(logging.ERROR):
            engine.set("k", "v")

        assert engine.get("k", str) == "v"
        assert len(recorder.events) == 1
        assert "subscriber bug" in caplog.text

    def test_unsubscribe(self, engine, recorder):
        engine.subscribe("k", recorder)
        engine.subscribe_all(recorder)
        engine.unsubscribe("k", recorder)
        engine.unsubscribe_all(recorder)

        engine.set("k", "v")

        assert recorder.events == []


class TestBatchOperations:
    """Test per-key independence of batch operations."""

    def test_set_multiple(self, engine):
        results = engine.set_multiple({"a": 1, "_bad": 2, "c": {1, 2}, "d": 4})

        assert list(results) == ["a", "_bad", "c", "d"]
        assert results["a"].ok
        assert isinstance(results["_bad"].error, CacheKeyError)
        assert isinstance(results["c"].error, CacheSerializationError)
        assert engine.get("d", int) == 4

    def test_set_multiple_with_circular_value(self, engine):
        circular = []
        circular.append(circular)

        results = engine.set_multiple({"a": circular, "b": 2})

        assert isinstance(results["a"].error, CacheSerializationError)
        assert "Circular reference" in str(results["a"].error)
        assert results["b"].ok
        assert engine.get("b", int) == 2

    def test_get_multiple(self, engine):
        engine.set("a", 1)

        results = engine.get_multiple(["a", "missing"], int)

        assert results["a"].unwrap() == 1
        assert not results["missing"].ok
        with pytest.raises(CacheMissError):
            results["missing"].unwrap()

    def test_remove_multiple(self, engine):
        engine.set("a", 1)

        results = engine.remove_multiple(["a", "_bad"])

        assert results["a"].ok
        assert isinstance(results["_bad"].error, CacheKeyError)
        assert not engine.has("a")

    def test_remove_multiple_driver_failure(self, cache_config, stubborn_driver):
        stubborn_driver.stuck_keys.add("b")
        engine = CacheEngine(config=cache_config, drivers=[stubborn_driver])
        engine.set_multiple({"a": 1, "b": 2, "c": 3})

        results = engine.remove_multiple(["a", "b", "c"])

        assert results["a"].ok
        assert results["c"].ok
        assert isinstance(results["b"].error, CacheBackendError)
        assert stubborn_driver.keys() == ["b"]

    def test_batching_disabled(self, cache_dir, toggle_driver):
        config = CacheConfig(cache_dir=str(cache_dir), enable_batching=False)
        engine = CacheEngine(config=config, drivers=[toggle_driver])

        with pytest.raises(CacheOperationError, match="Batch operations are disabled"):
            engine.set_multiple({"a": 1})
        with pytest.raises(CacheOperationError):
            engine.get_multiple(["a"], int)
        with pytest.raises(CacheOperationError):
            engine.remove_multiple(["a"])


class TestEngineManagement:
    def test_scoped_cache(self, engine):
        memory = engine.scoped("memory")

        memory.set("k", "v")

        assert memory.get("k", str) == "v"
        assert memory.has("k")
        assert memory.keys() == ["k"]
        assert memory.size() == 1
        assert not engine.has("k")

        memory.remove("k")
        with pytest.raises(CacheMissError):
            memory.get("k", str)

    def test_clear_all(self, engine, toggle_driver):
        engine.set("a", 1, ttl=timedelta(minutes=5))
        engine.set("b", 2, backend="memory")

        engine.clear_all()

        assert toggle_driver.keys() == []
        assert engine.registry.memory.keys() == []
        assert len(engine.ttl_tracker) == 0

    def test_get_stats(self, engine):
        engine.set("a", 1)
        engine.set("b", 2, backend="memory")

        stats = engine.get_stats()

        assert isinstance(stats, CacheStats)
        assert stats.default_driver == "persistent"
        assert stats.item_counts == {"persistent": 1, "memory": 1}
        assert stats.total_items == 2
        assert stats.fallback_count == 0
        assert stats.to_dict()["config"]["enable_ttl"] is True

    def test_engines_are_independent(self, cache_config):
        first = CacheEngine(config=cache_config, drivers=[])
        second = CacheEngine(config=cache_config, drivers=[])

        first.set("k", "v")

        assert not second.has("k")

    @pytest.mark.parametrize("operation", ["set", "get", "has", "remove", "clear", "keys"])
    def test_engine_matches_interface(self, operation):
        declared = inspect.signature(getattr(ICacheEngine, operation))
        implemented = inspect.signature(getattr(CacheEngine, operation))

        for name, parameter in declared.parameters.items():
            assert implemented.parameters[name].annotation == parameter.annotation
            assert implemented.parameters[name].default == parameter.default
        assert implemented.return_annotation == declared.return_annotation

    def test_create_cache_engine(self, cache_config):
        engine = create_cache_engine(config=cache_config, default_driver="memory")

        assert engine.default_driver == "memory"
        assert engine.driver_health["persistent"] is True


class TestDegradedStartup:
    def test_unavailable_persistent_driver_scenario(self, cache_config, toggle_driver, recorder):
        toggle_driver.available = False
        engine = CacheEngine(
            config=cache_config,
            drivers=[toggle_driver],
            default_driver="persistent",
        )
        engine.subscribe_all(recorder)

        assert engine.default_driver == "memory"

        engine.set("user:42", {"name": "alice"})
        assert engine.get("user:42", dict) == {"name": "alice"}

        engine.set("session", "token", ttl=timedelta(milliseconds=1))
        time.sleep(0.005)

        with pytest.raises(CacheTTLExpiredError):
            engine.get("session", str)
        assert len(recorder.of_type(CacheEventType.EXPIRED)) == 1
