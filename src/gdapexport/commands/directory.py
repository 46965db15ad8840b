"""Commands for browsing GDAP relationships and role definitions without a full export."""

from typing import Optional

import typer
from rich.table import Table

from ..gdap.exceptions import RetrievalError
from ..gdap.models import RELATIONSHIP_FIELDS
from ..gdap.projections import RELATIONSHIPS_VIEW, relationships_view, to_rows
from ..gdap.relationship_fetcher import RelationshipFetcher
from ..gdap.role_resolver import RoleDefinitionResolver
from ..graph_clients.exceptions import ConfigurationError, GraphAPIError
from ..utils.output_formatters import TableRenderer, ViewTable
from .common import (
    console,
    create_directory_client,
    get_config,
    parse_status,
    setup_logging,
    status_option,
    verbose_option,
)


def list_relationships(
    status: Optional[str] = status_option(),
    verbose: bool = verbose_option(),
):
    """List delegated admin relationships matching the status filter."""
    config = get_config()
    status_filter = parse_status(status, config)

    logging_manager = setup_logging(config, verbose)
    try:
        directory = create_directory_client(config)
        fetcher = RelationshipFetcher(
            directory, logger=logging_manager.create_context_logger("relationships")
        )
        relationships = fetcher.fetch(status_filter)
    except (ConfigurationError, RetrievalError, GraphAPIError) as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise typer.Exit(1)
    finally:
        logging_manager.close()

    if not relationships:
        console.print(
            f"[yellow]No relationships match status filter '{status_filter.value}'[/yellow]"
        )
        return

    rows = to_rows(relationships_view(relationships))
    view = ViewTable(RELATIONSHIPS_VIEW, list(RELATIONSHIP_FIELDS), rows)
    TableRenderer(console).render_view(view)
    console.print(f"\nTotal relationships: {len(relationships)}")


def list_roles(
    name_filter: Optional[str] = typer.Option(
        None, "--filter", help="Only show roles whose display name contains this text"
    ),
    verbose: bool = verbose_option(),
):
    """List directory role definitions used to resolve role names."""
    config = get_config()

    logging_manager = setup_logging(config, verbose)
    try:
        directory = create_directory_client(config)
        resolver = RoleDefinitionResolver(
            directory, logger=logging_manager.create_context_logger("roles")
        )
        role_map = resolver.fetch_all()
    except (ConfigurationError, RetrievalError, GraphAPIError) as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise typer.Exit(1)
    finally:
        logging_manager.close()

    definitions = sorted(role_map.by_id.values(), key=lambda d: d.display_name.lower())
    if name_filter:
        needle = name_filter.lower()
        definitions = [d for d in definitions if needle in d.display_name.lower()]

    if not definitions:
        console.print("[yellow]No role definitions found[/yellow]")
        return

    table = Table(title="Role Definitions", show_header=True, header_style="bold magenta")
    table.add_column("Display Name", style="green")
    table.add_column("Role Definition ID", style="cyan")
    table.add_column("Built-in")
    for definition in definitions:
        if definition.is_built_in is None:
            built_in = ""
        else:
            built_in = "Yes" if definition.is_built_in else "No"
        table.add_row(definition.display_name, definition.id, built_in)

    console.print(table)
    console.print(f"\nTotal role definitions: {len(definitions)}")
