"""``diffintel config`` commands: inspect and edit analysis settings."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import config, config_manager

console = Console()

config_app = typer.Typer(help="⚙️  Show or change analysis settings.", no_args_is_help=True)


@config_app.command("show")
def show_config():
    """Show effective settings (file values plus environment overrides)."""
    settings = config_manager.load_settings()

    table = Table(title=f"Settings ({config_manager.CONFIG_FILE})", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in settings.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@config_app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Setting name, e.g. max_reverse_deps."),
    value: str = typer.Argument(..., help="New integer value."),
):
    """Persist one setting to the [analysis] section of the config file."""
    config.ensure_base_dirs()
    try:
        config_manager.update_setting(key, value)
    except ValueError as exc:
        console.print(f"[red]✗[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] {key} = {value}")
