"""AES encryption provider for secure cache entries."""

import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .key_manager import KeyManager
from .provider import EncryptionError, EncryptionProvider

logger = logging.getLogger(__name__)

_IV_SIZE = 16
_KEY_SIZE = 32


class AESEncryption(EncryptionProvider):
    """
    AES-256-CBC encryption provider.

    Each call to encrypt() uses a fresh random IV which is prepended to the
    ciphertext. Plaintext is PKCS7 padded.
    """

    def __init__(self, key_manager: KeyManager):
        """
        Initialize AES encryption provider.

        Args:
            key_manager: Key manager supplying the 32-byte key

        Raises:
            EncryptionError: If the key cannot be obtained or is malformed
        """
        self.key_manager = key_manager
        try:
            self._test_key_access()
        except Exception as e:
            raise EncryptionError(
                f"Failed to initialize AES encryption: {e}",
                encryption_type="aes256",
                original_error=e,
            )

    def encrypt(self, data: bytes) -> bytes:
        try:
            key = self.key_manager.get_key()
            iv = os.urandom(_IV_SIZE)

            padder = padding.PKCS7(algorithms.AES.block_size).padder()
            padded_data = padder.update(bytes(data)) + padder.finalize()

            encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
            encrypted_data = encryptor.update(padded_data) + encryptor.finalize()

            logger.debug(f"Encrypted {len(data)} bytes with aes256")
            return iv + encrypted_data
        except EncryptionError:
            raise
        except (TypeError, ValueError) as e:
            raise EncryptionError(
                f"AES encryption failed: {e}", encryption_type="aes256", original_error=e
            )

    def decrypt(self, encrypted_data: bytes) -> bytes:
        if len(encrypted_data) < _IV_SIZE * 2:
            raise EncryptionError(
                "Decryption failed: invalid data format", encryption_type="aes256"
            )

        iv = encrypted_data[:_IV_SIZE]
        encrypted_content = encrypted_data[_IV_SIZE:]

        try:
            key = self.key_manager.get_key()
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded_data = decryptor.update(encrypted_content) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            data = unpadder.update(padded_data) + unpadder.finalize()
        except EncryptionError:
            raise
        except ValueError as e:
            # Wrong key or tampered ciphertext shows up as bad padding
            raise EncryptionError(
                "Decryption failed: invalid data format",
                encryption_type="aes256",
                original_error=e,
            )

        logger.debug(f"Decrypted {len(data)} bytes with aes256")
        return data

    def get_encryption_type(self) -> str:
        return "aes256"

    def is_available(self) -> bool:
        try:
            self.key_manager.get_key()
            return True
        except EncryptionError as e:
            logger.debug(f"AES encryption not available: {e}")
            return False

    def verify_integrity(self, encrypted_data: bytes) -> bool:
        """Return True if encrypted_data decrypts with the current key."""
        try:
            self.decrypt(encrypted_data)
            return True
        except EncryptionError:
            return False

    def _test_key_access(self) -> None:
        key = self.key_manager.get_key()
        if not key or len(key) != _KEY_SIZE:
            raise EncryptionError(
                "Invalid encryption key: must be 32 bytes for AES-256", encryption_type="aes256"
            )
