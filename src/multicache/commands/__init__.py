"""Command modules for multicache."""

from . import cache

__all__ = ["cache"]
