"""
Export Command

Runs the GDAP export pipeline and renders the relationship, role summary and role
matrix views to the screen and/or report files.
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from ..gdap.exceptions import RetrievalError
from ..gdap.pipeline import ExportResult, GdapExportPipeline
from ..graph_clients.exceptions import ConfigurationError, GraphAPIError
from ..utils.output_formatters import (
    ExportFormat,
    OutputFormatError,
    TableRenderer,
    build_view_tables,
    write_reports,
)
from .common import (
    console,
    create_directory_client,
    get_config,
    parse_formats,
    parse_status,
    parse_views,
    setup_logging,
    status_option,
    verbose_option,
)


def export_gdap(
    status: Optional[str] = status_option(),
    formats: Optional[List[str]] = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format: table, csv, json, html, xlsx (repeat or comma separate)",
    ),
    views: Optional[List[str]] = typer.Option(
        None, "--view", help="Views to export: relationships, summary, matrix, all (default: all)"
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for report files (default from config)"
    ),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Report file name prefix"),
    max_workers: Optional[int] = typer.Option(
        None,
        "--max-workers",
        "-w",
        min=1,
        help="Relationships processed concurrently (1 = sequential)",
    ),
    verbose: bool = verbose_option(),
):
    """Export GDAP relationships, role grants and the role matrix.

    Examples:
        gdapexport export
        gdapexport export --status both -f csv -f xlsx --output-dir ./reports
        gdapexport export --status expired --view summary --format json
    """
    config = get_config()
    status_filter = parse_status(status, config)
    export_formats = parse_formats(formats, config)
    view_names = parse_views(views)
    export_settings = config.get_export_settings()
    workers = max_workers or int(export_settings.get("max_workers") or 1)

    logging_manager = setup_logging(config, verbose)
    try:
        directory = create_directory_client(config)
        pipeline = GdapExportPipeline(
            directory,
            logger=logging_manager.create_context_logger("pipeline"),
            max_workers=workers,
        )
        with console.status(
            f"[bold blue]Exporting GDAP data (status: {status_filter.value})...[/bold blue]"
        ):
            result = pipeline.run(status_filter)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {str(e)}[/red]")
        raise typer.Exit(1)
    except RetrievalError as e:
        console.print(f"[red]Export failed: {e.message}[/red]")
        raise typer.Exit(1)
    except GraphAPIError as e:
        console.print(f"[red]Microsoft Graph error: {str(e)}[/red]")
        raise typer.Exit(1)
    finally:
        logging_manager.close()

    if result.is_empty:
        console.print(
            f"[yellow]No relationships match status filter '{status_filter.value}'. "
            "Nothing to export.[/yellow]"
        )
        return

    tables = build_view_tables(result, view_names)
    if ExportFormat.TABLE in export_formats:
        TableRenderer(console).render(tables)

    try:
        written = write_reports(
            result,
            export_formats,
            output_dir or Path(export_settings.get("output_dir") or "."),
            prefix=prefix or export_settings.get("prefix") or "gdap",
            view_names=view_names,
        )
    except (OSError, OutputFormatError) as e:
        console.print(f"[red]Failed to write reports: {str(e)}[/red]")
        raise typer.Exit(1)
    for path in written:
        console.print(f"[green]Report written to: {path}[/green]")

    _print_summary(result)


def _print_summary(result: ExportResult) -> None:
    """Print run counts and any skipped units."""
    summary = result.summary()

    table = Table(title="Export Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Status filter", summary["status_filter"])
    table.add_row("Relationships", str(summary["relationships"]))
    table.add_row("Role definitions", str(summary["role_definitions"]))
    table.add_row("Assignments", str(summary["assignments"]))
    table.add_row("Role records", str(summary["role_records"]))
    table.add_row("Unknown roles", str(summary["unknown_roles"]))
    console.print(table)

    if result.failures:
        console.print(
            f"[yellow]⚠ {summary['skipped_relationships']} relationship(s) and "
            f"{summary['skipped_assignments']} assignment(s) were skipped because their "
            "data could not be retrieved:[/yellow]"
        )
        for failure in result.failures:
            console.print(f"  [yellow]- {failure.message}[/yellow]")
