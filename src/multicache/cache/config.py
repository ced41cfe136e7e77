"""Cache engine configuration."""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import CacheConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".multicache"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULT_CACHE_DIR = CONFIG_DIR / "cache"

ENV_PREFIX = "MULTICACHE_"

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass(frozen=True)
class CacheConfig:
    """
    Immutable cache engine configuration.

    Supplied once when an engine is constructed. Every component reads from
    it and none of them mutate it.
    """

    # Enable Time-To-Live bookkeeping
    enable_ttl: bool = True

    # Maximum key length accepted by the validator
    max_key_length: int = 250

    # Maximum items kept per driver before the oldest are evicted
    max_items_per_backend: int = 2000

    # Allow set_multiple/get_multiple/remove_multiple
    enable_batching: bool = True

    # Log driver fallbacks for operational monitoring
    log_fallbacks: bool = True

    # TTL in seconds applied to writes that do not pass one (None = never expire)
    default_ttl: Optional[int] = None

    # Root directory for the persistent and secure stores
    cache_dir: Optional[str] = None

    # Per-driver circuit breaker settings
    failure_threshold: int = 5
    recovery_timeout: int = 60

    def __post_init__(self):
        """Validate field values."""
        if self.max_key_length <= 0:
            raise CacheConfigurationError(
                f"max_key_length must be positive, got {self.max_key_length}"
            )
        if self.max_items_per_backend <= 0:
            raise CacheConfigurationError(
                f"max_items_per_backend must be positive, got {self.max_items_per_backend}"
            )
        if self.default_ttl is not None and self.default_ttl < 0:
            raise CacheConfigurationError(
                f"default_ttl cannot be negative, got {self.default_ttl}"
            )
        if self.failure_threshold <= 0:
            raise CacheConfigurationError(
                f"failure_threshold must be positive, got {self.failure_threshold}"
            )
        if self.recovery_timeout < 0:
            raise CacheConfigurationError(
                f"recovery_timeout cannot be negative, got {self.recovery_timeout}"
            )

    @property
    def resolved_cache_dir(self) -> Path:
        """Cache directory with the default applied and ``~`` expanded."""
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return DEFAULT_CACHE_DIR

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        """Create a CacheConfig from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown cache configuration keys: {sorted(unknown)}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise CacheConfigurationError(f"Invalid cache configuration: {e}", cause=e)

    @classmethod
    def from_config_file(cls, config_path: Optional[str] = None) -> "CacheConfig":
        """
        Load configuration from the ``cache`` section of a YAML config file.

        Args:
            config_path: Optional path to config file. If None, uses default location.

        Returns:
            CacheConfig loaded from file, or defaults when the file does not exist

        Raises:
            CacheConfigurationError: If the file exists but cannot be parsed
        """
        return cls.from_dict(_read_config_file(config_path))

    @classmethod
    def from_environment(cls, base: Optional["CacheConfig"] = None) -> "CacheConfig":
        """
        Load configuration from environment variables.

        Args:
            base: Configuration whose values are kept when a variable is unset

        Returns:
            CacheConfig with environment overrides applied
        """
        data = (base or cls()).to_dict()
        data.update(get_cache_config_from_environment())
        return cls.from_dict(data)

    def __str__(self) -> str:
        return (
            f"CacheConfig(ttl: {self.enable_ttl}, maxItems: {self.max_items_per_backend}, "
            f"maxKeyLength: {self.max_key_length})"
        )


def _read_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    path = Path(config_path).expanduser() if config_path else CONFIG_FILE
    if not path.exists():
        logger.debug(f"No cache config file at {path}, using defaults")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise CacheConfigurationError(f"Failed to read cache config file {path}: {e}", cause=e)

    if not isinstance(raw, dict):
        raise CacheConfigurationError(f"Cache config file {path} must contain a mapping")

    section = raw.get("cache", {})
    if not isinstance(section, dict):
        raise CacheConfigurationError(f"'cache' section in {path} must be a mapping")

    logger.debug(f"Loaded cache configuration from {path}")
    return section


def _get_env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value}")
        return None


def get_cache_config_from_environment() -> Dict[str, Any]:
    """
    Extract cache configuration overrides from environment variables.

    Returns:
        Dictionary with only the settings that are present in the environment
    """
    config: Dict[str, Any] = {}

    for setting in ("enable_ttl", "enable_batching", "log_fallbacks"):
        value = os.getenv(f"{ENV_PREFIX}{setting.upper()}")
        if value is not None:
            config[setting] = value.lower() in _TRUE_VALUES

    for setting in (
        "max_key_length",
        "max_items_per_backend",
        "default_ttl",
        "failure_threshold",
        "recovery_timeout",
    ):
        value = _get_env_int(f"{ENV_PREFIX}{setting.upper()}")
        if value is not None:
            config[setting] = value

    if os.getenv(f"{ENV_PREFIX}CACHE_DIR"):
        config["cache_dir"] = os.getenv(f"{ENV_PREFIX}CACHE_DIR")

    return config


def load_cache_config(config_path: Optional[str] = None) -> CacheConfig:
    """
    Load cache configuration with layered fallback handling.

    1. Start from the YAML config file (defaults when it is missing)
    2. Override with environment variables
    3. Fall back to environment-only configuration when the file is unusable

    Args:
        config_path: Optional path to config file

    Returns:
        Effective CacheConfig
    """
    try:
        file_config = CacheConfig.from_config_file(config_path)
    except CacheConfigurationError as e:
        logger.warning(f"Failed to load cache configuration from file: {e}")
        file_config = CacheConfig()

    config = CacheConfig.from_environment(base=file_config)
    logger.debug(f"Effective cache configuration: {config}")
    return config
