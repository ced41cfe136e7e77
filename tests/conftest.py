"""Shared fixtures for multicache tests."""

import logging
from typing import Dict, Tuple
from unittest.mock import patch

import pytest

from multicache.cache.config import CacheConfig


@pytest.fixture(autouse=True)
def fake_keyring():
    """Replace the OS keyring with an in-memory store for every test."""
    store: Dict[Tuple[str, str], str] = {}

    def get_password(service, username):
        return store.get((service, username))

    def set_password(service, username, password):
        store[(service, username)] = password

    def delete_password(service, username):
        from keyring.errors import PasswordDeleteError

        if (service, username) not in store:
            raise PasswordDeleteError("Password not found")
        del store[(service, username)]

    with patch("keyring.get_password", side_effect=get_password), patch(
        "keyring.set_password", side_effect=set_password
    ), patch("keyring.delete_password", side_effect=delete_password):
        yield store


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handler and level changes made by the CLI logging setup."""
    yield
    package_logger = logging.getLogger("multicache")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def cache_config(cache_dir):
    """Default configuration rooted in a temporary directory."""
    return CacheConfig(cache_dir=str(cache_dir))
