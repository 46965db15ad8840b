"""Common command infrastructure for gdapexport CLI commands.

This module provides shared functionality for all CLI commands including:
- Configuration loading and Graph client construction
- Logging setup for a command run
- Consistent option definitions and parsing
"""

import logging
from typing import Any, Iterable, List, Optional

import typer
from rich.console import Console

from ..gdap.models import StatusFilter
from ..gdap.projections import VIEW_NAMES
from ..graph_clients.directory import DirectoryClient
from ..graph_clients.manager import GraphClientManager
from ..utils.config import Config
from ..utils.logging_config import LoggingConfig, LoggingManager, LogLevel
from ..utils.output_formatters import ExportFormat

# Shared instances
console = Console()
logger = logging.getLogger(__name__)

VIEW_ALIASES = {
    "relationships": ["relationships"],
    "summary": ["role_summary"],
    "matrix": ["role_matrix"],
    "all": list(VIEW_NAMES),
}


def get_config() -> Config:
    """Load the configuration used by commands."""
    return Config()


def status_option() -> Any:
    return typer.Option(
        None,
        "--status",
        "-s",
        help="Relationship status filter: active, expired, both (default from config: active)",
    )


def verbose_option() -> Any:
    """Create a verbose option for CLI commands."""
    return typer.Option(False, "--verbose", "-v", help="Show debug log output")


def parse_status(value: Optional[str], config: Config) -> StatusFilter:
    """Parse --status, falling back to ``export.status_filter``."""
    try:
        return StatusFilter.from_string(value or config.get("export.status_filter", "active"))
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--status")


def parse_formats(values: Optional[Iterable[str]], config: Config) -> List[ExportFormat]:
    """Parse repeated or comma separated --format values."""
    raw = list(values) if values else config.get("export.formats", ["table"])
    if isinstance(raw, str):
        raw = [raw]

    formats: List[ExportFormat] = []
    for item in raw:
        for name in str(item).split(","):
            name = name.strip().lower()
            if not name:
                continue
            try:
                fmt = ExportFormat(name)
            except ValueError:
                valid = ", ".join(f.value for f in ExportFormat)
                raise typer.BadParameter(
                    f"Invalid format '{name}'. Valid formats: {valid}", param_hint="--format"
                )
            if fmt not in formats:
                formats.append(fmt)

    return formats or [ExportFormat.TABLE]


def parse_views(values: Optional[Iterable[str]]) -> List[str]:
    """Parse --view values (relationships, summary, matrix, all)."""
    if not values:
        return list(VIEW_NAMES)

    views: List[str] = []
    for value in values:
        key = value.strip().lower()
        if key not in VIEW_ALIASES:
            raise typer.BadParameter(
                f"Invalid view '{value}'. Valid views: {', '.join(VIEW_ALIASES)}",
                param_hint="--view",
            )
        for name in VIEW_ALIASES[key]:
            if name not in views:
                views.append(name)
    return views


def setup_logging(config: Config, verbose: bool = False) -> LoggingManager:
    """Create the LoggingManager for one command run."""
    logging_config = LoggingConfig.from_dict(config.get_logging_settings())
    if verbose:
        logging_config.level = LogLevel.DEBUG
    manager = LoggingManager(logging_config)
    manager.setup_logging()
    return manager


def create_directory_client(config: Config) -> DirectoryClient:
    """
    Build a connected DirectoryClient from the ``graph`` configuration section.

    Raises:
        ConfigurationError: If tenant, client id or secret are missing
        AuthenticationError: If no token can be acquired
    """
    settings = config.get_graph_settings()
    client_manager = GraphClientManager(
        tenant_id=settings.get("tenant_id"),
        client_id=settings.get("client_id"),
        client_secret=settings.get("client_secret"),
        auth_mode=settings.get("auth_mode") or "app",
        base_url=settings.get("base_url") or "https://graph.microsoft.com/v1.0",
        timeout=int(settings.get("timeout") or 30),
    )
    if not client_manager.is_connected():
        logger.debug(f"Connecting to {client_manager.base_url} as {client_manager.auth_mode}")
        client_manager.connect()
    return DirectoryClient(client_manager, page_size=int(settings.get("page_size") or 0))
