"""Clear cache command for multicache."""

from typing import Optional

import typer

from ...cache import CacheError
from .helpers import backend_option, console, get_cache_engine


def clear_cache(
    backend: Optional[str] = backend_option(),
    all_drivers: bool = typer.Option(False, "--all", help="Clear every healthy driver"),
    force: bool = typer.Option(False, "--force", "-f", help="Force clear without confirmation"),
):
    """Remove every entry from a driver.

    Clears the default driver unless --backend or --all is given.
    """
    if backend and all_drivers:
        console.print("[red]Error: --backend cannot be combined with --all[/red]")
        raise typer.Exit(1)

    try:
        engine = get_cache_engine()
        if all_drivers:
            total_entries = engine.get_stats().total_items
            target = "all drivers"
        else:
            total_entries = engine.size(backend=backend)
            target = f"the {engine.registry.get_driver(backend).name} driver"
    except CacheError as e:
        console.print(f"[red]Error clearing cache: {e}[/red]")
        raise typer.Exit(1)

    if total_entries == 0:
        console.print("[green]Cache is already empty.[/green]")
        return

    console.print(f"[yellow]About to clear {total_entries} cache entries from {target}[/yellow]")
    if not force:
        confirm = typer.confirm("Are you sure you want to clear these cache entries?")
        if not confirm:
            console.print("[blue]Cache clear cancelled.[/blue]")
            return

    try:
        if all_drivers:
            engine.clear_all()
        else:
            engine.clear(backend=backend)
    except CacheError as e:
        console.print(f"[red]Error clearing cache: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Successfully cleared {total_entries} cache entries![/green]")
