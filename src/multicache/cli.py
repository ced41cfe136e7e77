"""
multicache - command line access to the multi-backend cache.
"""
import typer
from rich.console import Console

from . import __version__
from .commands import cache
from .utils.logging_config import LoggingConfig, LogLevel, setup_logging

app = typer.Typer(
    help="multicache - inspect and manage the multi-backend cache.",
    add_completion=True,
    no_args_is_help=True,
)
console = Console()

app.add_typer(cache.app, name="cache")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show informational logs"),
    debug: bool = typer.Option(False, "--debug", help="Show debug logs"),
):
    """Configure logging before any command runs."""
    level = LogLevel.DEBUG if debug else LogLevel.INFO if verbose else LogLevel.WARNING
    setup_logging(LoggingConfig(level=level))


@app.command()
def version():
    """Show the application version and exit."""
    console.print(f"multicache version: {__version__}")
    raise typer.Exit()


if __name__ == "__main__":
    app()
