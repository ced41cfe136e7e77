"""Commands for reading and writing individual cache entries."""

from typing import Optional

import typer

from ...cache import CacheError, CacheMissError, CacheTTLExpiredError, DriverKind
from .helpers import (
    backend_option,
    console,
    format_value,
    get_cache_engine,
    parse_value,
    resolve_value_type,
    type_option,
)


def get_entry(
    key: str = typer.Argument(..., help="Cache key to read"),
    backend: Optional[str] = backend_option(),
    type_name: str = type_option(),
):
    """Print the value stored under a key."""
    value_type = resolve_value_type(type_name)
    try:
        value = get_cache_engine().get(key, value_type, backend=backend)
    except (CacheMissError, CacheTTLExpiredError) as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(1)
    except CacheError as e:
        console.print(f"[red]Error reading key {key}: {e}[/red]")
        raise typer.Exit(1)

    console.print(format_value(value), highlight=False)


def set_entry(
    key: str = typer.Argument(..., help="Cache key to write"),
    value: str = typer.Argument(..., help="Value to store; JSON for dict and list types"),
    backend: Optional[str] = backend_option(),
    type_name: str = type_option(),
):
    """Store a value under a key."""
    value_type = resolve_value_type(type_name)
    parsed = parse_value(value, value_type)
    try:
        stored_in = get_cache_engine().set(key, parsed, backend=backend)
    except CacheError as e:
        console.print(f"[red]Error writing key {key}: {e}[/red]")
        raise typer.Exit(1)

    # Memory does not outlive this process
    if stored_in == DriverKind.MEMORY.value and DriverKind.parse(backend) != DriverKind.MEMORY:
        console.print(
            f"[red]Key {key} was only stored in memory and will be lost when this "
            "command exits; the requested driver is unavailable or failed[/red]"
        )
        raise typer.Exit(1)

    console.print(f"[green]Stored {key} in {stored_in}[/green]")


def delete_entry(
    key: str = typer.Argument(..., help="Cache key to remove"),
    backend: Optional[str] = backend_option(),
):
    """Remove a key."""
    try:
        engine = get_cache_engine()
        existed = engine.has(key, backend=backend)
        engine.remove(key, backend=backend)
    except CacheError as e:
        console.print(f"[red]Error removing key {key}: {e}[/red]")
        raise typer.Exit(1)

    if existed:
        console.print(f"[green]Removed {key}[/green]")
    else:
        console.print(f"[yellow]Key {key} was not present[/yellow]")


def list_keys(
    backend: Optional[str] = backend_option(),
):
    """List the keys held by a driver."""
    try:
        keys = get_cache_engine().keys(backend=backend)
    except CacheError as e:
        console.print(f"[red]Error listing keys: {e}[/red]")
        raise typer.Exit(1)

    if not keys:
        console.print("[yellow]No cache entries found.[/yellow]")
        return

    for key in sorted(keys):
        console.print(key, highlight=False)
    console.print(f"\n[blue]{len(keys)} entries[/blue]")
