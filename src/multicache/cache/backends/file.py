"""File-based persistent cache driver."""

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import CacheBackendError
from ..utils import CachePathManager
from .base import CacheDriver, DriverKind

logger = logging.getLogger(__name__)

# [4 bytes metadata length][metadata JSON][payload]
_HEADER_LENGTH_BYTES = 4


class CorruptedCacheFileError(ValueError):
    """Raised internally when a cache file cannot be parsed."""


class FileDriver(CacheDriver):
    """
    Persistent driver storing one file per key.

    Each file holds a small JSON metadata header (original key, creation
    time, payload size) followed by the payload, so keys can be enumerated
    even though filenames are key hashes. Writes go to a temporary file and
    are atomically renamed into place.
    """

    kind = DriverKind.PERSISTENT
    encrypted = False

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        namespace: str = "persistent",
        max_items: Optional[int] = None,
    ):
        """
        Initialize file driver.

        Args:
            cache_dir: Optional base cache directory. Defaults to ~/.multicache/cache/
            namespace: Sub-directory isolating this store from other drivers
            max_items: Evict the least recently written files beyond this count
        """
        self.path_manager = CachePathManager(cache_dir, namespace)
        self.max_items = max_items

    @property
    def cache_dir(self) -> Path:
        return self.path_manager.get_cache_directory()

    @property
    def is_available(self) -> bool:
        try:
            self.path_manager.ensure_cache_directory()
        except OSError as e:
            logger.debug(f"File driver {self.name} unavailable: {e}")
            return False
        return os.access(self.cache_dir, os.W_OK | os.R_OK)

    def set(self, key: str, data: bytes) -> None:
        self._require_available("set")
        cache_file = self.path_manager.get_cache_file_path(key)
        temp_file = cache_file.with_suffix(".tmp")

        try:
            payload = self._encode_payload(data)
            metadata = {
                "key": key,
                "created_at": time.time(),
                "data_size": len(payload),
                "encrypted": self.encrypted,
            }
            metadata_json = json.dumps(metadata).encode("utf-8")

            with open(temp_file, "wb") as f:
                f.write(len(metadata_json).to_bytes(_HEADER_LENGTH_BYTES, byteorder="big"))
                f.write(metadata_json)
                f.write(payload)

            os.replace(temp_file, cache_file)
            logger.debug(f"{self.name} SET: {key}")
        except CacheBackendError:
            self._cleanup_temp_file(temp_file)
            raise
        except OSError as e:
            self._cleanup_temp_file(temp_file)
            logger.error(f"OS error writing cache file {cache_file}: {e}")
            raise CacheBackendError(
                f"OS error writing cache file: {e}", backend=self.name, cause=e
            )

        if self.max_items is not None:
            self._enforce_max_items()

    def get(self, key: str) -> Optional[bytes]:
        cache_file = self.path_manager.get_cache_file_path(key)
        if not cache_file.exists():
            logger.debug(f"{self.name} MISS: {key}")
            return None

        try:
            metadata, payload = self._read_cache_file(cache_file)
        except CorruptedCacheFileError as e:
            self._handle_corrupted_cache_file(cache_file, str(e))
            return None
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"OS error reading cache file {cache_file}: {e}")
            raise CacheBackendError(
                f"OS error reading cache file: {e}", backend=self.name, cause=e
            )

        if metadata.get("key") != key:
            logger.warning(f"Cache file {cache_file.name} belongs to a different key, ignoring")
            return None

        data = self._decode_payload(payload, cache_file)
        logger.debug(f"{self.name} {'HIT' if data is not None else 'MISS'}: {key}")
        return data

    def has(self, key: str) -> bool:
        cache_file = self.path_manager.get_cache_file_path(key)
        if not cache_file.exists():
            return False
        try:
            return self._read_metadata(cache_file).get("key") == key
        except (CorruptedCacheFileError, OSError) as e:
            logger.debug(f"Cache file {cache_file.name} is unreadable: {e}")
            return False

    def remove(self, key: str) -> None:
        self._require_available("remove")
        cache_file = self.path_manager.get_cache_file_path(key)
        try:
            cache_file.unlink(missing_ok=True)
            logger.debug(f"{self.name} REMOVE: {key}")
        except OSError as e:
            logger.error(f"Failed to remove cache file {cache_file}: {e}")
            raise CacheBackendError(
                f"Failed to remove cache file: {e}", backend=self.name, cause=e
            )

    def clear(self) -> None:
        self._require_available("clear")
        failed: List[Path] = []
        for cache_file in self.path_manager.list_cache_files():
            try:
                cache_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete cache file {cache_file}: {e}")
                failed.append(cache_file)

        if failed:
            raise CacheBackendError(
                f"Failed to delete {len(failed)} cache files", backend=self.name
            )
        logger.debug(f"{self.name} CLEAR")

    def keys(self) -> List[str]:
        keys = []
        for cache_file in self.path_manager.list_cache_files():
            try:
                keys.append(self._read_metadata(cache_file)["key"])
            except (CorruptedCacheFileError, KeyError, OSError) as e:
                logger.debug(f"Skipping unreadable cache file {cache_file}: {e}")
        return keys

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        total_size = self.path_manager.get_cache_size()
        stats.update(
            {
                "cache_directory": str(self.cache_dir),
                "total_entries": len(self.path_manager.list_cache_files()),
                "total_size_bytes": total_size,
                "total_size_mb": round(total_size / (1024 * 1024), 2),
                "encrypted": self.encrypted,
            }
        )
        return stats

    def _encode_payload(self, data: bytes) -> bytes:
        return data

    def _decode_payload(self, payload: bytes, cache_file: Path) -> Optional[bytes]:
        return payload

    def _read_cache_file(self, cache_file: Path) -> Tuple[Dict[str, Any], bytes]:
        with open(cache_file, "rb") as f:
            file_content = f.read()
        metadata, offset = self._parse_header(file_content)
        return metadata, file_content[offset:]

    def _read_metadata(self, cache_file: Path) -> Dict[str, Any]:
        with open(cache_file, "rb") as f:
            length_bytes = f.read(_HEADER_LENGTH_BYTES)
            if len(length_bytes) < _HEADER_LENGTH_BYTES:
                raise CorruptedCacheFileError("file too short for header")
            metadata_length = int.from_bytes(length_bytes, byteorder="big")
            metadata, _ = self._parse_header(length_bytes + f.read(metadata_length))
        return metadata

    def _parse_header(self, content: bytes) -> Tuple[Dict[str, Any], int]:
        if len(content) < _HEADER_LENGTH_BYTES:
            raise CorruptedCacheFileError("file too short for header")

        metadata_length = int.from_bytes(content[:_HEADER_LENGTH_BYTES], byteorder="big")
        end = _HEADER_LENGTH_BYTES + metadata_length
        if metadata_length <= 0 or end > len(content):
            raise CorruptedCacheFileError(f"invalid metadata length {metadata_length}")

        try:
            metadata = json.loads(content[_HEADER_LENGTH_BYTES:end].decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptedCacheFileError(f"invalid metadata: {e}") from e

        if not isinstance(metadata, dict) or "key" not in metadata:
            raise CorruptedCacheFileError("metadata missing key")
        if bool(metadata.get("encrypted", False)) != self.encrypted:
            raise CorruptedCacheFileError("encryption flag does not match driver")
        return metadata, end

    def _enforce_max_items(self) -> None:
        cache_files = self.path_manager.list_cache_files()
        excess = len(cache_files) - self.max_items
        if excess <= 0:
            return

        def mtime(path: Path) -> float:
            try:
                return path.stat().st_mtime
            except OSError:
                return 0.0

        for cache_file in sorted(cache_files, key=mtime)[:excess]:
            self._remove_cache_file(cache_file)
        logger.debug(f"{self.name} evicted {excess} items")

    def _remove_cache_file(self, cache_file: Path) -> None:
        try:
            cache_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove cache file {cache_file}: {e}")

    def _handle_corrupted_cache_file(self, cache_file: Path, reason: str) -> None:
        logger.warning(f"Removing corrupted cache file {cache_file}: {reason}")
        self._remove_cache_file(cache_file)

    def _cleanup_temp_file(self, temp_file: Path) -> None:
        try:
            temp_file.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Failed to clean up temporary file {temp_file}: {e}")
