"""Cache storage drivers."""

from .base import CacheDriver, DriverDescriptor, DriverKind
from .file import FileDriver
from .memory import MemoryDriver
from .secure import SecureDriver

__all__ = [
    "CacheDriver",
    "DriverDescriptor",
    "DriverKind",
    "FileDriver",
    "MemoryDriver",
    "SecureDriver",
]
