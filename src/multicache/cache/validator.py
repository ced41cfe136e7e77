"""Structural validation of cache keys."""

from typing import Any

from .config import CacheConfig
from .errors import CacheKeyError

RESERVED_PREFIX = "_"
RESERVED_SUFFIX = "_ttl"


class KeyValidator:
    """Rejects keys that are empty, too long, multi-line or reserved."""

    def __init__(self, config: CacheConfig):
        self.config = config

    def validate(self, key: Any) -> None:
        """
        Validate a cache key.

        Raises:
            CacheKeyError: If the key is not acceptable
        """
        if not isinstance(key, str):
            raise CacheKeyError(
                f"Cache key must be a string, got {type(key).__name__}", invalid_key=key
            )
        if not key:
            raise CacheKeyError("Cache key cannot be empty", invalid_key=key)
        if len(key) > self.config.max_key_length:
            raise CacheKeyError(
                f"Cache key too long: {len(key)} > {self.config.max_key_length}",
                invalid_key=key,
            )
        if "\n" in key or "\r" in key:
            raise CacheKeyError("Cache key cannot contain newlines", invalid_key=key)
        if key.startswith(RESERVED_PREFIX) or key.endswith(RESERVED_SUFFIX):
            raise CacheKeyError(
                f"Cache key uses reserved pattern ('{RESERVED_PREFIX}' prefix "
                f"or '{RESERVED_SUFFIX}' suffix)",
                invalid_key=key,
            )

    def is_valid(self, key: Any) -> bool:
        try:
            self.validate(key)
        except CacheKeyError:
            return False
        return True
