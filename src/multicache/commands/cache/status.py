"""Cache status command for multicache."""

from typing import Optional

import typer

from ...cache import CacheError
from .helpers import console, create_driver_table, get_cache_engine


def cache_status(
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to a YAML config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show configuration details"),
):
    """Show driver health, item counts and the default driver."""
    try:
        engine = get_cache_engine(config_path)
        stats = engine.get_stats()
    except CacheError as e:
        console.print(f"[red]Error getting cache status: {e}[/red]")
        raise typer.Exit(1)

    console.print("[bold blue]Cache Status[/bold blue]\n")
    console.print(f"[green]Default Driver:[/green] {stats.default_driver}")
    console.print(f"[green]Total Items:[/green] {stats.total_items}")
    console.print(f"[green]Fallbacks:[/green] {stats.fallback_count}\n")

    table = create_driver_table()
    for name, healthy in stats.driver_health.items():
        breaker = stats.circuit_breakers.get(name)
        table.add_row(
            name,
            "[green]yes[/green]" if healthy else "[red]no[/red]",
            str(stats.item_counts.get(name, "-")),
            breaker["state"] if breaker else "-",
        )
    console.print(table)

    if verbose:
        console.print("\n[bold blue]Configuration[/bold blue]")
        for setting, value in stats.config.items():
            console.print(f"[green]{setting}:[/green] {value}")
