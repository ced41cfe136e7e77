"""Cache utilities for managing cache directory structure and file operations."""

import hashlib
import logging
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_CACHE_DIR

logger = logging.getLogger(__name__)

CACHE_FILE_SUFFIX = ".cache"


class CachePathManager:
    """Manages cache directory structure and file path utilities."""

    def __init__(self, base_cache_dir: Optional[str] = None, namespace: Optional[str] = None):
        """Initialize cache path manager.

        Args:
            base_cache_dir: Optional custom cache directory path.
                          Defaults to ~/.multicache/cache/
            namespace: Store name used to isolate drivers sharing a base directory
        """
        if base_cache_dir:
            self.cache_dir = Path(base_cache_dir).expanduser()
        else:
            self.cache_dir = DEFAULT_CACHE_DIR

        self.cache_dir = self.cache_dir / "stores" / (namespace or "default")

    def ensure_cache_directory(self) -> None:
        """Create cache directory if it doesn't exist.

        Raises:
            OSError: If directory cannot be created due to permissions or disk space
        """
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionError(
                f"Permission denied creating cache directory {self.cache_dir}: {e}"
            ) from e
        except OSError as e:
            raise OSError(f"Cannot create cache directory {self.cache_dir}: {e}") from e

    def get_cache_file_path(self, cache_key: str) -> Path:
        """Generate file path for a cache key.

        The filename is a hash of the key so arbitrary keys are filesystem safe.
        """
        filename = hashlib.sha256(cache_key.encode("utf-8")).hexdigest() + CACHE_FILE_SUFFIX
        return self.cache_dir / filename

    def get_cache_directory(self) -> Path:
        return self.cache_dir

    def cache_file_exists(self, cache_key: str) -> bool:
        return self.get_cache_file_path(cache_key).exists()

    def list_cache_files(self) -> List[Path]:
        """List all cache files in the cache directory.

        Returns an empty list if the directory cannot be accessed.
        """
        if not self.cache_dir.exists():
            return []

        try:
            return sorted(self.cache_dir.glob(f"*{CACHE_FILE_SUFFIX}"))
        except OSError as e:
            logger.error(f"Cannot list cache directory {self.cache_dir}: {e}")
            return []

    def get_cache_size(self) -> int:
        """Get total size of cache files in bytes."""
        total_size = 0
        for cache_file in self.list_cache_files():
            try:
                total_size += cache_file.stat().st_size
            except OSError as e:
                logger.warning(f"Cannot get size of cache file {cache_file}: {e}")
        return total_size
