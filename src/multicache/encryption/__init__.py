"""Encryption package for the secure cache driver."""

from .aes import AESEncryption
from .key_manager import KeyManager
from .provider import EncryptionError, EncryptionProvider, EncryptionProviderFactory, NoEncryption

__all__ = [
    "EncryptionProvider",
    "EncryptionProviderFactory",
    "EncryptionError",
    "NoEncryption",
    "AESEncryption",
    "KeyManager",
]
