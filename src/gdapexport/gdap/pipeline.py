"""
End-to-end GDAP export pipeline.

Runs the relationship fetcher, the role definition resolver and the access assignment
aggregator in order and packages their output for the renderers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..graph_clients.directory import DirectoryClient
from ..utils.logging_config import ContextLogger, component_logger
from .assignment_aggregator import AccessAssignmentAggregator
from .exceptions import PartialFetchError
from .models import UNKNOWN_ROLE, FlattenedRoleRecord, Relationship, RoleMap, StatusFilter
from .projections import (
    RELATIONSHIPS_VIEW,
    ROLE_MATRIX_VIEW,
    ROLE_SUMMARY_VIEW,
    relationships_view,
    role_matrix_view,
    role_summary_view,
)
from .relationship_fetcher import RelationshipFetcher
from .role_resolver import RoleDefinitionResolver


@dataclass
class ExportResult:
    """Everything one export run produced."""

    status_filter: StatusFilter
    relationships: List[Relationship] = field(default_factory=list)
    role_map: RoleMap = field(default_factory=RoleMap)
    records: List[FlattenedRoleRecord] = field(default_factory=list)
    failures: List[PartialFetchError] = field(default_factory=list)
    assignments_seen: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.relationships

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def views(self) -> Dict[str, Sequence[Any]]:
        """The three named renderer views."""
        return {
            RELATIONSHIPS_VIEW: relationships_view(self.relationships),
            ROLE_SUMMARY_VIEW: role_summary_view(self.records),
            ROLE_MATRIX_VIEW: role_matrix_view(self.records),
        }

    def summary(self) -> Dict[str, Any]:
        """Counts describing the run, for the console and the JSON report."""
        return {
            "status_filter": self.status_filter.value,
            "relationships": len(self.relationships),
            "role_definitions": len(self.role_map),
            "assignments": self.assignments_seen,
            "role_records": len(self.records),
            "unknown_roles": sum(
                1 for record in self.records if record.role_display_name == UNKNOWN_ROLE
            ),
            "skipped_relationships": sum(1 for f in self.failures if f.scope == "relationship"),
            "skipped_assignments": sum(1 for f in self.failures if f.scope == "assignment"),
            "duration_seconds": self.duration_seconds,
        }


class GdapExportPipeline:
    """Fetcher -> Resolver -> Aggregator, producing an ExportResult."""

    def __init__(
        self,
        directory: DirectoryClient,
        logger: Optional[ContextLogger] = None,
        max_workers: int = 1,
    ):
        """
        Initialize the pipeline and its components.

        Args:
            directory: Directory client shared by all components
            logger: Base context logger; each component binds its own name onto it
            max_workers: Concurrency bound passed to the aggregator
        """
        self.logger = logger or component_logger("pipeline", __name__)
        self.fetcher = RelationshipFetcher(
            directory, logger=self.logger.bind(component="relationship_fetcher")
        )
        self.resolver = RoleDefinitionResolver(
            directory, logger=self.logger.bind(component="role_resolver")
        )
        self.aggregator = AccessAssignmentAggregator(
            directory,
            logger=self.logger.bind(component="assignment_aggregator"),
            max_workers=max_workers,
        )

    def run(self, status_filter: StatusFilter) -> ExportResult:
        """
        Run the export.

        Raises:
            RetrievalError: If relationships or role definitions cannot be listed
        """
        log = self.logger.bind(component="pipeline", operation="run")
        result = ExportResult(status_filter=status_filter, started_at=datetime.now(timezone.utc))

        result.relationships = self.fetcher.fetch(status_filter)
        if not result.relationships:
            log.info("Nothing to export")
            result.finished_at = datetime.now(timezone.utc)
            return result

        result.role_map = self.resolver.fetch_all()
        result.records = self.aggregator.aggregate(result.relationships, result.role_map)
        result.failures = list(self.aggregator.failures)
        result.assignments_seen = self.aggregator.assignments_seen
        result.finished_at = datetime.now(timezone.utc)

        if result.failures:
            log.warning(
                f"Export finished with {len(result.failures)} skipped unit(s); "
                "see the log for details"
            )
        return result
