"""Encrypted persistent cache driver."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ...encryption.provider import EncryptionError, EncryptionProvider, EncryptionProviderFactory
from ..errors import CacheBackendError
from .base import DriverKind
from .file import FileDriver

logger = logging.getLogger(__name__)


class SecureDriver(FileDriver):
    """
    File driver that encrypts every payload at rest.

    Uses AES-256 with a key held in the OS keyring unless another
    provider is supplied. The driver reports itself unavailable when no key
    can be obtained, which lets the registry route around it.
    """

    kind = DriverKind.SECURE
    encrypted = True

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        namespace: str = "secure",
        max_items: Optional[int] = None,
        encryption_provider: Optional[EncryptionProvider] = None,
    ):
        super().__init__(cache_dir=cache_dir, namespace=namespace, max_items=max_items)
        self._encryption_provider = encryption_provider

    @property
    def encryption_provider(self) -> EncryptionProvider:
        """
        The provider used for payloads, created on first access.

        Raises:
            EncryptionError: If the default AES provider cannot be created
        """
        if self._encryption_provider is None:
            self._encryption_provider = EncryptionProviderFactory.create_provider("aes256")
        return self._encryption_provider

    @property
    def is_available(self) -> bool:
        if not super().is_available:
            return False
        try:
            return self.encryption_provider.is_available()
        except EncryptionError as e:
            logger.debug(f"Secure driver unavailable: {e}")
            return False

    def has(self, key: str) -> bool:
        # The header alone cannot tell whether the current key decrypts it
        return self.get(key) is not None

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        try:
            stats["encryption_type"] = self.encryption_provider.get_encryption_type()
        except EncryptionError as e:
            stats["encryption_error"] = str(e)
        return stats

    def _encode_payload(self, data: bytes) -> bytes:
        try:
            return self.encryption_provider.encrypt(data)
        except EncryptionError as e:
            raise CacheBackendError(
                f"Failed to encrypt cache entry: {e}", backend=self.name, cause=e
            )

    def _decode_payload(self, payload: bytes, cache_file: Path) -> Optional[bytes]:
        try:
            return self.encryption_provider.decrypt(payload)
        except EncryptionError as e:
            # Entries written under a rotated key are unreadable; drop them
            self._handle_corrupted_cache_file(cache_file, f"decryption failed: {e}")
            return None
