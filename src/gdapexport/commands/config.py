"""Configuration management commands for gdapexport."""

from typing import Any, Dict

import typer
import yaml
from rich.syntax import Syntax
from rich.table import Table

from ..utils.config import parse_config_value
from .common import console, get_config

app = typer.Typer(help="Manage gdapexport configuration (Graph credentials, export defaults).")


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, yaml"),
) -> None:
    """Show the effective configuration (defaults, config file and GDAP_* variables)."""
    config = get_config()
    data = config.redacted()

    if format == "yaml":
        console.print(Syntax(yaml.safe_dump(data, default_flow_style=False), "yaml"))
        return
    if format != "table":
        console.print(f"[red]Error: Invalid format '{format}'. Use table or yaml.[/red]")
        raise typer.Exit(1)

    table = Table(title="gdapexport Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in _flatten(data).items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


@app.command("path")
def show_config_path() -> None:
    """Show the location of the configuration file."""
    config = get_config()
    console.print(f"Configuration file: {config.config_file}")
    if not config.config_file.exists():
        console.print("[yellow]File does not exist yet; defaults are in use.[/yellow]")


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Dotted key, e.g. graph.tenant_id or export.max_workers"),
    value: str = typer.Argument(..., help="Value; YAML syntax is accepted (e.g. [csv, json])"),
) -> None:
    """Set a configuration value and save it to the configuration file."""
    section = key.split(".", 1)[0]
    if "." not in key or section not in ("graph", "export", "logging"):
        console.print(
            f"[red]Error: Invalid key '{key}'. Keys look like graph.<name>, "
            "export.<name> or logging.<name>.[/red]"
        )
        raise typer.Exit(1)

    config = get_config()
    config.set(key, parse_config_value(value))
    config.save()

    shown = "********" if key == "graph.client_secret" else value
    console.print(f"[green]Set {key} = {shown}[/green]")


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{full_key}."))
        else:
            flat[full_key] = value
    return flat
