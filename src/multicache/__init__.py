"""multicache - a multi-backend caching engine with automatic fallback."""

from .cache import (
    CacheConfig,
    CacheEngine,
    CacheError,
    CacheEvent,
    CacheEventType,
    DriverKind,
    create_cache_engine,
)


def _get_version():
    """Get the version from package metadata or pyproject.toml."""
    try:
        from importlib.metadata import PackageNotFoundError, version

        return version("multicache")
    except PackageNotFoundError:
        # Fallback for source checkouts that were never installed
        import re
        from pathlib import Path

        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if not pyproject_path.exists():
            return "0.0.0"

        with open(pyproject_path, "r", encoding="utf-8") as f:
            version_match = re.search(r'version\s*=\s*["\']([^"\']+)["\']', f.read())
        return version_match.group(1) if version_match else "0.0.0"


__version__ = _get_version()

__all__ = [
    "__version__",
    "CacheConfig",
    "CacheEngine",
    "CacheError",
    "CacheEvent",
    "CacheEventType",
    "DriverKind",
    "create_cache_engine",
]
