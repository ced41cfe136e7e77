"""Tests for the AES-256 encryption provider."""

import os
from unittest.mock import Mock

import pytest

from multicache.encryption.aes import AESEncryption
from multicache.encryption.provider import (
    EncryptionError,
    EncryptionProviderFactory,
    NoEncryption,
)


class MockKeyManager:
    """Mock key manager for testing."""

    def __init__(self, key: bytes = None):
        self.key = key or os.urandom(32)

    def get_key(self) -> bytes:
        return self.key


class TestAESEncryption:
    """Test the AESEncryption provider implementation."""

    def setup_method(self):
        self.key_manager = MockKeyManager()
        self.provider = AESEncryption(self.key_manager)

    def test_initialization_success(self):
        assert self.provider.key_manager is self.key_manager
        assert self.provider.get_encryption_type() == "aes256"
        assert self.provider.is_available()

    def test_initialization_with_failing_key_manager(self):
        key_manager = Mock()
        key_manager.get_key.side_effect = Exception("Key access failed")

        with pytest.raises(EncryptionError) as exc_info:
            AESEncryption(key_manager)

        assert "Failed to initialize AES encryption" in str(exc_info.value)
        assert exc_info.value.encryption_type == "aes256"

    def test_initialization_with_short_key(self):
        with pytest.raises(EncryptionError, match="must be 32 bytes"):
            AESEncryption(MockKeyManager(key=b"too-short"))

    @pytest.mark.parametrize("data", [b"", b"x", b"sixteen byte blk", os.urandom(1000)])
    def test_round_trip(self, data):
        encrypted = self.provider.encrypt(data)

        assert encrypted != data
        assert len(encrypted) >= 32
        assert self.provider.decrypt(encrypted) == data

    def test_random_iv_per_encryption(self):
        first = self.provider.encrypt(b"same input")
        second = self.provider.encrypt(b"same input")

        assert first[:16] != second[:16]
        assert first != second

    def test_decrypt_too_short(self):
        with pytest.raises(EncryptionError, match="invalid data format"):
            self.provider.decrypt(b"short")

    def test_decrypt_with_wrong_key(self):
        encrypted = self.provider.encrypt(b"secret")
        other = AESEncryption(MockKeyManager())

        try:
            assert other.decrypt(encrypted) != b"secret"
        except EncryptionError:
            pass

    def test_verify_integrity(self):
        encrypted = self.provider.encrypt(b"secret")

        assert self.provider.verify_integrity(encrypted)
        assert not self.provider.verify_integrity(b"garbage")

    def test_unavailable_when_key_lookup_fails(self):
        self.key_manager.get_key = Mock(side_effect=EncryptionError("keyring locked"))

        assert not self.provider.is_available()


class TestEncryptionProviderFactory:
    def test_create_none(self):
        provider = EncryptionProviderFactory.create_provider("none")

        assert isinstance(provider, NoEncryption)
        assert provider.encrypt(b"data") == b"data"
        assert provider.decrypt(b"data") == b"data"

    def test_create_aes_with_key_manager(self):
        key_manager = MockKeyManager()
        provider = EncryptionProviderFactory.create_provider("aes256", key_manager=key_manager)

        assert isinstance(provider, AESEncryption)
        assert provider.key_manager is key_manager

    def test_create_aes_with_default_key_manager(self, fake_keyring):
        provider = EncryptionProviderFactory.create_provider("aes256")

        assert provider.decrypt(provider.encrypt(b"data")) == b"data"
        assert len(fake_keyring) == 1

    def test_unknown_type(self):
        with pytest.raises(EncryptionError, match="Unknown encryption type"):
            EncryptionProviderFactory.create_provider("rot13")

    def test_available_providers(self):
        assert EncryptionProviderFactory.get_available_providers() == ["none", "aes256"]


class TestEncryptionError:
    def test_message_includes_cause(self):
        error = EncryptionError("failed", encryption_type="aes256", original_error=ValueError("x"))

        assert str(error) == "failed (caused by: x)"
        assert error.encryption_type == "aes256"
