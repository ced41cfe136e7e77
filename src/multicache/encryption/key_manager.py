"""Encryption key management backed by the OS keyring."""

import base64
import logging
import secrets
import time
from typing import Any, Dict, Optional, Tuple

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .provider import EncryptionError

logger = logging.getLogger(__name__)

KEYRING_SERVICE_NAME = "multicache-cache"
KEYRING_USERNAME = "encryption-key"


class KeyManager:
    """
    Stores the secure driver's AES-256 key in the operating system keyring.

    The key is generated on first use and cached in memory for a few minutes
    to avoid a keyring round trip on every cache operation.
    """

    def __init__(
        self,
        service_name: str = KEYRING_SERVICE_NAME,
        username: str = KEYRING_USERNAME,
        cache_ttl: int = 300,
    ):
        self.service_name = service_name
        self.username = username
        self._cached_key: Optional[bytes] = None
        self._key_cache_time: Optional[float] = None
        self._cache_ttl = cache_ttl

    def get_key(self) -> bytes:
        """
        Get or generate the encryption key.

        Returns:
            32-byte AES-256 encryption key

        Raises:
            EncryptionError: If key retrieval or generation fails
        """
        if self._is_key_cache_valid():
            return self._cached_key

        key_str = self._get_key_from_keyring()
        if key_str:
            key = self._decode_key(key_str)
            logger.debug("Loaded encryption key from keyring")
        else:
            key = self._generate_key()
            self._store_key(key)
            logger.info("Generated new encryption key and stored in keyring")

        self._cache_key(key)
        return key

    def rotate_key(self) -> Tuple[Optional[bytes], bytes]:
        """
        Generate and store a new key.

        Data encrypted under the old key can no longer be read by the secure
        driver; callers are expected to clear it.

        Returns:
            Tuple of (old_key, new_key) where old_key is None if no key existed
        """
        old_key = None
        try:
            old_key_str = self._get_key_from_keyring()
            if old_key_str:
                old_key = self._decode_key(old_key_str)
        except EncryptionError as e:
            logger.warning(f"Could not retrieve old key during rotation: {e}")

        new_key = self._generate_key()
        self._store_key(new_key)
        self._cache_key(new_key)

        logger.info("Rotated encryption key")
        return old_key, new_key

    def delete_key(self) -> bool:
        """
        Delete the key from the keyring.

        Returns:
            True if the key was deleted or did not exist, False if deletion failed
        """
        try:
            keyring.delete_password(self.service_name, self.username)
        except PasswordDeleteError:
            # Nothing stored under this service
            pass
        except KeyringError as e:
            logger.error(f"Failed to delete encryption key: {e}")
            return False

        self._clear_key_cache()
        logger.info("Deleted encryption key from keyring")
        return True

    def key_exists(self) -> bool:
        try:
            return self._get_key_from_keyring() is not None
        except EncryptionError as e:
            logger.debug(f"Error checking if key exists: {e}")
            return False

    def get_key_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "key_exists": self.key_exists(),
            "service_name": self.service_name,
            "username": self.username,
            "cached": self._is_key_cache_valid(),
        }
        if info["key_exists"]:
            try:
                info["key_valid"] = len(self.get_key()) == 32
            except EncryptionError as e:
                info["key_error"] = str(e)
                info["key_valid"] = False
        return info

    def _generate_key(self) -> bytes:
        return secrets.token_bytes(32)

    def _encode_key(self, key: bytes) -> str:
        return base64.b64encode(key).decode("ascii")

    def _decode_key(self, key_str: str) -> bytes:
        try:
            key = base64.b64decode(key_str.encode("ascii"), validate=True)
        except ValueError as e:
            raise EncryptionError(
                f"Failed to decode encryption key: {e}",
                encryption_type="key_management",
                original_error=e,
            )
        if len(key) != 32:
            raise EncryptionError(
                f"Invalid key length: expected 32 bytes, got {len(key)}",
                encryption_type="key_management",
            )
        return key

    def _get_key_from_keyring(self) -> Optional[str]:
        try:
            return keyring.get_password(self.service_name, self.username)
        except KeyringError as e:
            raise EncryptionError(
                f"Failed to access keyring: {e}",
                encryption_type="key_management",
                original_error=e,
            )

    def _store_key(self, key: bytes) -> None:
        try:
            keyring.set_password(self.service_name, self.username, self._encode_key(key))
        except KeyringError as e:
            raise EncryptionError(
                f"Failed to store key in keyring: {e}",
                encryption_type="key_management",
                original_error=e,
            )

    def _cache_key(self, key: bytes) -> None:
        self._cached_key = key
        self._key_cache_time = time.time()

    def _clear_key_cache(self) -> None:
        self._cached_key = None
        self._key_cache_time = None

    def _is_key_cache_valid(self) -> bool:
        if not self._cached_key or not self._key_cache_time:
            return False
        return (time.time() - self._key_cache_time) < self._cache_ttl
