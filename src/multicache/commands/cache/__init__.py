"""Cache management commands for multicache."""

import typer

from . import clear, entries, helpers, status
from .clear import clear_cache
from .entries import delete_entry, get_entry, list_keys, set_entry
from .status import cache_status

app = typer.Typer(help="Inspect and edit cached entries.", no_args_is_help=True)

app.command("status")(cache_status)
app.command("get")(get_entry)
app.command("set")(set_entry)
app.command("delete")(delete_entry)
app.command("keys")(list_keys)
app.command("clear")(clear_cache)

__all__ = ["app", "clear", "entries", "helpers", "status"]
