"""Shared utilities for cache commands."""

import json
import logging
from typing import Any, Optional, Type

import typer
from rich.console import Console
from rich.table import Table

from ...cache import CacheEngine, DriverKind, create_cache_engine

# Shared console instance
console = Console()
logger = logging.getLogger(__name__)

VALUE_TYPES = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "dict": dict,
    "list": list,
}


def backend_option() -> Any:
    """Create a --backend option for cache commands."""
    return typer.Option(
        None,
        "--backend",
        "-b",
        help=f"Driver to use ({', '.join(kind.value for kind in DriverKind)}). "
        "Defaults to the configured default driver.",
    )


def type_option() -> Any:
    """Create a --type option for cache commands."""
    return typer.Option("str", "--type", "-t", help=f"Value type ({', '.join(VALUE_TYPES)})")


def get_cache_engine(config_path: Optional[str] = None) -> CacheEngine:
    """Create a cache engine from the config file and environment."""
    logger.debug("Creating cache engine for CLI command")
    return create_cache_engine(config_path=config_path)


def resolve_value_type(type_name: str) -> Type:
    """Map a --type name to a Python type, exiting on unknown names."""
    value_type = VALUE_TYPES.get(type_name.lower())
    if value_type is None:
        console.print(
            f"[red]Error: Unknown type '{type_name}'. Choose from: {', '.join(VALUE_TYPES)}[/red]"
        )
        raise typer.Exit(1)
    return value_type


def parse_value(raw: str, value_type: Type) -> Any:
    """
    Parse a command-line string into value_type.

    Raises:
        typer.BadParameter: If raw is not a valid value_type
    """
    try:
        if value_type is str:
            return raw
        if value_type is bool:
            lowered = raw.lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
            raise ValueError(f"not a boolean: {raw}")
        if value_type in (int, float):
            return value_type(raw)

        parsed = json.loads(raw)
        if not isinstance(parsed, value_type):
            raise ValueError(f"expected a JSON {value_type.__name__}")
        return parsed
    except (ValueError, json.JSONDecodeError) as e:
        raise typer.BadParameter(f"Invalid {value_type.__name__} value: {e}")


def format_value(value: Any) -> str:
    """Render a cached value for display."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def create_driver_table() -> Table:
    """Create a rich table for displaying driver information."""
    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Driver", style="green")
    table.add_column("Healthy", style="cyan")
    table.add_column("Items", justify="right", style="magenta")
    table.add_column("Circuit", style="yellow")
    return table
