"""Output formatters for GDAP export reports."""

import csv
import html
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from io import StringIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import xlsxwriter
from rich.console import Console
from xlsxwriter.exceptions import XlsxWriterException
from rich.table import Table

from ..gdap.models import RECORD_FIELDS, RELATIONSHIP_FIELDS, UNKNOWN_ROLE
from ..gdap.pipeline import ExportResult
from ..gdap.projections import (
    RELATIONSHIPS_VIEW,
    ROLE_MATRIX_VIEW,
    ROLE_SUMMARY_VIEW,
    VIEW_NAMES,
    to_rows,
)

MATRIX_KEY_FIELDS = ("relationshipId", "relationshipName", "customerTenantId", "status")
MATRIX_GRANTED = "X"

VIEW_TITLES = {
    RELATIONSHIPS_VIEW: "GDAP Relationships",
    ROLE_SUMMARY_VIEW: "GDAP Role Summary",
    ROLE_MATRIX_VIEW: "GDAP Role Matrix",
}


class OutputFormatError(Exception):
    """Exception raised for output formatting errors."""

    pass


class ExportFormat(str, Enum):
    """Supported report formats."""

    TABLE = "table"
    CSV = "csv"
    JSON = "json"
    HTML = "html"
    XLSX = "xlsx"

    @property
    def is_file_format(self) -> bool:
        return self is not ExportFormat.TABLE


@dataclass
class ViewTable:
    """Column order and rows of one rendered view."""

    name: str
    columns: List[str]
    rows: List[Dict[str, Any]]

    @property
    def title(self) -> str:
        return VIEW_TITLES.get(self.name, self.name)


def role_column_labels(rows: Sequence[Dict[str, Any]]) -> Dict[str, str]:
    """
    Map each role definition id to its role matrix column header.

    The header is the display name. The id is appended when the name is the
    unknown-role sentinel, is shared by several ids, or clashes with a key column.
    """
    names: Dict[str, str] = {}
    for row in rows:
        names.setdefault(row["roleDefinitionId"], row["roleDisplayName"])

    ids_per_name: Dict[str, int] = {}
    for name in names.values():
        ids_per_name[name] = ids_per_name.get(name, 0) + 1

    labels = {}
    for role_id, name in names.items():
        if name == UNKNOWN_ROLE or ids_per_name[name] > 1 or name in MATRIX_KEY_FIELDS:
            labels[role_id] = f"{name} ({role_id})"
        else:
            labels[role_id] = name
    return labels


def pivot_role_matrix(rows: Sequence[Dict[str, Any]]) -> ViewTable:
    """
    Pivot role grant rows into one row per relationship and one column per role.

    Columns are keyed by role definition id, so distinct roles never share a column.
    Relationships keep their first-seen order; role columns are sorted by header.
    A granted cell holds ``X``, other cells are empty.
    """
    labels = role_column_labels(rows)
    role_columns = sorted(labels.values())
    matrix: Dict[str, Dict[str, Any]] = {}

    for row in rows:
        key = row["relationshipId"]
        if key not in matrix:
            matrix[key] = {field: row.get(field) for field in MATRIX_KEY_FIELDS}
            matrix[key].update({column: "" for column in role_columns})
        matrix[key][labels[row["roleDefinitionId"]]] = MATRIX_GRANTED

    return ViewTable(
        name=ROLE_MATRIX_VIEW,
        columns=list(MATRIX_KEY_FIELDS) + role_columns,
        rows=list(matrix.values()),
    )


def build_view_tables(
    result: ExportResult, view_names: Optional[Iterable[str]] = None
) -> List[ViewTable]:
    """Turn the result's views into ViewTables, in VIEW_NAMES order."""
    selected = set(view_names) if view_names else set(VIEW_NAMES)
    views = result.views()
    tables = []

    for name in VIEW_NAMES:
        if name not in selected:
            continue
        rows = to_rows(views[name])
        if name == RELATIONSHIPS_VIEW:
            tables.append(ViewTable(name, list(RELATIONSHIP_FIELDS), rows))
        elif name == ROLE_SUMMARY_VIEW:
            tables.append(ViewTable(name, list(RECORD_FIELDS), rows))
        else:
            tables.append(pivot_role_matrix(rows))

    return tables


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class BaseRenderer:
    """Base class for renderers producing one text document per view."""

    format_type: Optional[ExportFormat] = None
    extension = ""

    def render_view(self, table: ViewTable) -> str:
        """Render one view. Must be implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement render_view method")


class CSVRenderer(BaseRenderer):
    """Renderer for CSV output suitable for spreadsheet analysis."""

    format_type = ExportFormat.CSV
    extension = "csv"

    def render_view(self, table: ViewTable) -> str:
        try:
            output = StringIO()
            writer = csv.DictWriter(
                output, fieldnames=table.columns, extrasaction="ignore", lineterminator="\n"
            )
            writer.writeheader()
            for row in table.rows:
                writer.writerow({column: _cell(row.get(column)) for column in table.columns})
            return output.getvalue()
        except Exception as e:
            raise OutputFormatError(f"Failed to format CSV output: {str(e)}")


class JSONRenderer(BaseRenderer):
    """Renderer for JSON output suitable for further processing."""

    format_type = ExportFormat.JSON
    extension = "json"

    def render_view(self, table: ViewTable) -> str:
        try:
            rows = [{column: row.get(column) for column in table.columns} for row in table.rows]
            return json.dumps(rows, indent=2, default=str)
        except (TypeError, ValueError) as e:
            raise OutputFormatError(f"Failed to format JSON output: {str(e)}")


class HTMLRenderer(BaseRenderer):
    """Renderer for standalone HTML reports."""

    format_type = ExportFormat.HTML
    extension = "html"

    STYLE = (
        "body{font-family:Segoe UI,Arial,sans-serif;margin:24px}"
        "table{border-collapse:collapse;font-size:13px}"
        "th{background:#4472C4;color:#fff;text-align:left}"
        "th,td{border:1px solid #ccc;padding:4px 8px}"
        "tr:nth-child(even){background:#f3f6fb}"
    )

    def render_view(self, table: ViewTable) -> str:
        title = html.escape(table.title)
        header = "".join(f"<th>{html.escape(column)}</th>" for column in table.columns)
        body = "\n".join(
            "<tr>"
            + "".join(f"<td>{html.escape(_cell(row.get(c)))}</td>" for c in table.columns)
            + "</tr>"
            for row in table.rows
        )
        generated = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return (
            "<!DOCTYPE html>\n"
            f'<html lang="en">\n<head>\n<meta charset="utf-8">\n<title>{title}</title>\n'
            f"<style>{self.STYLE}</style>\n</head>\n<body>\n"
            f"<h1>{title}</h1>\n<p>Generated {generated} - {len(table.rows)} row(s)</p>\n"
            f"<table>\n<thead><tr>{header}</tr></thead>\n<tbody>\n{body}\n</tbody>\n</table>\n"
            "</body>\n</html>\n"
        )


class SpreadsheetRenderer:
    """Renderer writing all views into one xlsx workbook, one worksheet per view."""

    format_type = ExportFormat.XLSX
    extension = "xlsx"

    def write(self, tables: Sequence[ViewTable], path: Path) -> Path:
        try:
            workbook = xlsxwriter.Workbook(str(path))
            try:
                self._write_tables(workbook, tables)
            finally:
                workbook.close()
        except XlsxWriterException as e:
            raise OutputFormatError(f"Failed to write xlsx workbook {path}: {str(e)}")
        return path

    def _write_tables(self, workbook, tables: Sequence[ViewTable]) -> None:
        header_format = workbook.add_format(
            {"bold": True, "font_color": "white", "bg_color": "#4472C4", "border": 1}
        )
        for table in tables:
            # Worksheet names are limited to 31 characters
            worksheet = workbook.add_worksheet(table.name[:31])
            for col, column in enumerate(table.columns):
                worksheet.write(0, col, column, header_format)
                worksheet.set_column(col, col, max(12, min(len(column) + 2, 50)))
            for row_idx, row in enumerate(table.rows, 1):
                for col, column in enumerate(table.columns):
                    worksheet.write_string(row_idx, col, _cell(row.get(column)))
            worksheet.freeze_panes(1, 0)
            if table.columns:
                worksheet.autofilter(0, 0, len(table.rows), len(table.columns) - 1)


TEXT_RENDERERS = {
    ExportFormat.CSV: CSVRenderer,
    ExportFormat.JSON: JSONRenderer,
    ExportFormat.HTML: HTMLRenderer,
}


def report_filename(prefix: str, view_name: str, timestamp: str, extension: str) -> str:
    return f"{prefix}_{view_name}_{timestamp}.{extension}"


def write_reports(
    result: ExportResult,
    formats: Iterable[ExportFormat],
    output_dir: Path,
    prefix: str = "gdap",
    view_names: Optional[Iterable[str]] = None,
    timestamp: Optional[str] = None,
) -> List[Path]:
    """
    Write the file formats among ``formats`` into ``output_dir``.

    Args:
        result: Pipeline result to export
        formats: Requested formats; TABLE is ignored here
        output_dir: Destination directory, created if missing
        prefix: File name prefix
        view_names: Views to export; defaults to all
        timestamp: File name timestamp; defaults to now

    Returns:
        Paths of the files written
    """
    file_formats = [fmt for fmt in formats if fmt.is_file_format]
    if not file_formats:
        return []

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = timestamp or datetime.now().strftime("%Y%m%d_%H%M%S")
    tables = build_view_tables(result, view_names)
    written: List[Path] = []

    for fmt in file_formats:
        if fmt is ExportFormat.XLSX:
            path = output_dir / f"{prefix}_{stamp}.xlsx"
            written.append(SpreadsheetRenderer().write(tables, path))
            continue

        renderer = TEXT_RENDERERS[fmt]()
        for table in tables:
            path = output_dir / report_filename(prefix, table.name, stamp, renderer.extension)
            path.write_text(renderer.render_view(table), encoding="utf-8")
            written.append(path)

    return written


class TableRenderer:
    """Renders views as rich tables on the console."""

    format_type = ExportFormat.TABLE

    # Columns shown on screen; files always carry every column
    SCREEN_COLUMNS = {
        RELATIONSHIPS_VIEW: [
            "relationshipName",
            "customerName",
            "customerTenantId",
            "status",
            "endDateTime",
        ],
        ROLE_SUMMARY_VIEW: [
            "relationshipName",
            "customerTenantId",
            "assignmentId",
            "roleDisplayName",
            "status",
        ],
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def render(self, tables: Sequence[ViewTable]) -> None:
        for table in tables:
            self.render_view(table)

    def render_view(self, view: ViewTable) -> None:
        if not view.rows:
            self.console.print(f"[yellow]{view.title}: no rows[/yellow]")
            return

        columns = self.SCREEN_COLUMNS.get(view.name, view.columns)
        table = Table(title=view.title, show_header=True, header_style="bold magenta")
        for column in columns:
            table.add_column(column, overflow="fold")
        for row in view.rows:
            table.add_row(*[_cell(row.get(column)) for column in columns])

        self.console.print(table)
