"""Encryption provider interface for the secure cache driver."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

logger = logging.getLogger(__name__)


class EncryptionProvider(ABC):
    """
    Abstract base class for encryption providers.

    Providers work on raw bytes: the cache engine has already serialized the
    value by the time it reaches a driver.
    """

    @abstractmethod
    def encrypt(self, data: bytes) -> bytes:
        """
        Encrypt bytes.

        Raises:
            EncryptionError: If encryption fails
        """

    @abstractmethod
    def decrypt(self, encrypted_data: bytes) -> bytes:
        """
        Decrypt bytes produced by encrypt().

        Raises:
            EncryptionError: If decryption fails
        """

    @abstractmethod
    def get_encryption_type(self) -> str:
        """String identifier for the encryption type."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is available and functional."""


class EncryptionError(Exception):
    """Raised when encryption, decryption or key management fails."""

    def __init__(
        self,
        message: str,
        encryption_type: str = "unknown",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.encryption_type = encryption_type
        self.original_error = original_error

        if original_error:
            logger.debug(
                f"Encryption error in {encryption_type}: {message} (caused by: {original_error})"
            )
        else:
            logger.debug(f"Encryption error in {encryption_type}: {message}")

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.original_error:
            return f"{base_msg} (caused by: {self.original_error})"
        return base_msg


class NoEncryption(EncryptionProvider):
    """Pass-through provider used when encryption is disabled."""

    def encrypt(self, data: bytes) -> bytes:
        return bytes(data)

    def decrypt(self, encrypted_data: bytes) -> bytes:
        return bytes(encrypted_data)

    def get_encryption_type(self) -> str:
        return "none"

    def is_available(self) -> bool:
        return True


class EncryptionProviderFactory:
    """Creates encryption providers by type name."""

    @staticmethod
    def create_provider(encryption_type: str = "none", **kwargs) -> EncryptionProvider:
        """
        Create an encryption provider instance.

        Args:
            encryption_type: "none" or "aes256"
            **kwargs: Passed to the provider constructor

        Raises:
            EncryptionError: If the provider type is unknown or creation fails
        """
        if encryption_type == "none":
            return NoEncryption()

        if encryption_type == "aes256":
            from .aes import AESEncryption
            from .key_manager import KeyManager

            if "key_manager" not in kwargs:
                kwargs["key_manager"] = KeyManager()
            return AESEncryption(**kwargs)

        raise EncryptionError(
            f"Unknown encryption type: {encryption_type}", encryption_type=encryption_type
        )

    @staticmethod
    def get_available_providers() -> List[str]:
        return ["none", "aes256"]
