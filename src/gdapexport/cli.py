#!/usr/bin/env python3
"""
gdapexport - GDAP access export

A CLI tool for exporting GDAP relationships, role definitions and access assignments
from Microsoft Graph.
"""
import typer
from rich.console import Console

from . import __version__
from .commands import config, directory, export
from .commands.common import create_directory_client, get_config
from .graph_clients.exceptions import ConfigurationError, GraphAPIError

app = typer.Typer(
    help="GDAP export - audit delegated admin relationships, role grants and access assignments.",
    add_completion=True,
    no_args_is_help=True,
)
console = Console()

app.add_typer(config.app, name="config")
app.command("export")(export.export_gdap)
app.command("relationships")(directory.list_relationships)
app.command("roles")(directory.list_roles)


@app.command()
def version():
    """Show the application version and exit."""
    console.print(f"gdapexport version: {__version__}")
    raise typer.Exit()


@app.command("status")
def status_command():
    """Check that Microsoft Graph settings are complete and a token can be acquired."""
    cfg = get_config()
    settings = cfg.get_graph_settings()

    console.print("[bold blue]gdapexport Connection Status[/bold blue]\n")
    console.print(f"Configuration file: {cfg.config_file}")
    console.print(f"Auth mode: {settings.get('auth_mode')}")
    for key in ("tenant_id", "client_id", "client_secret"):
        value = settings.get(key)
        if not value:
            console.print(f"[red]✗[/red] {key}: not set")
        else:
            console.print(f"[green]✓[/green] {key}: {'set' if key == 'client_secret' else value}")

    try:
        directory_client = create_directory_client(cfg)
    except ConfigurationError as e:
        console.print(f"\n[red]✗ Not connected: {str(e)}[/red]")
        raise typer.Exit(1)
    except GraphAPIError as e:
        console.print(f"\n[red]✗ Authentication failed: {str(e)}[/red]")
        raise typer.Exit(1)

    if directory_client.client_manager.is_connected():
        console.print("\n[green]✓ Connected to Microsoft Graph[/green]")
    else:
        console.print("\n[red]✗ Not connected to Microsoft Graph[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
