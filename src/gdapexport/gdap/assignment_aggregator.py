"""
Access assignment aggregation for GDAP export.

For every relationship that survived the status filter this module lists its access
assignments, fetches the role details of each assignment, resolves role names and
flattens the result into one FlattenedRoleRecord per (assignment, role) pair.

Failures are isolated: a relationship whose assignments cannot be listed is skipped,
an assignment whose details cannot be fetched or flattened is skipped, and the run continues.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..graph_clients.directory import DirectoryClient
from ..utils.logging_config import ContextLogger, component_logger
from .exceptions import PartialFetchError
from .models import AccessAssignment, FlattenedRoleRecord, Relationship, RoleMap


@dataclass
class RelationshipOutcome:
    """Records and skipped units produced for one relationship."""

    relationship_id: str
    records: List[FlattenedRoleRecord] = field(default_factory=list)
    failures: List[PartialFetchError] = field(default_factory=list)
    assignments_seen: int = 0


class AccessAssignmentAggregator:
    """
    Flattens access assignments of many relationships into role grant records.

    Relationships are independent of each other, so with ``max_workers`` above 1 they
    are processed on a thread pool. Output order always follows input order.
    """

    def __init__(
        self,
        directory: DirectoryClient,
        logger: Optional[ContextLogger] = None,
        max_workers: int = 1,
    ):
        """
        Initialize the AccessAssignmentAggregator.

        Args:
            directory: Directory client providing the assignment calls
            logger: Context logger; defaults to one bound to this component
            max_workers: Upper bound of concurrent relationships; 1 runs sequentially
        """
        self.directory = directory
        self.logger = logger or component_logger("assignment_aggregator", __name__)
        self.max_workers = max(1, int(max_workers))

        # Populated by aggregate() for run reporting
        self.failures: List[PartialFetchError] = []
        self.assignments_seen = 0

    def aggregate(
        self, relationships: Sequence[Relationship], role_map: RoleMap
    ) -> List[FlattenedRoleRecord]:
        """
        Build the flattened record set for ``relationships``.

        Args:
            relationships: Relationships to enumerate, already status filtered
            role_map: Role lookup indices; only read

        Returns:
            One record per (assignment, role) pair, in input order
        """
        log = self.logger.bind(operation="aggregate")
        self.failures = []
        self.assignments_seen = 0

        if not relationships:
            log.info("No relationships to aggregate")
            return []

        if self.max_workers == 1 or len(relationships) == 1:
            outcomes = [self._process_relationship(r, role_map) for r in relationships]
        else:
            outcomes = self._process_parallel(relationships, role_map)

        records: List[FlattenedRoleRecord] = []
        for outcome in outcomes:
            records.extend(outcome.records)
            self.failures.extend(outcome.failures)
            self.assignments_seen += outcome.assignments_seen

        log.info(
            f"Aggregated {len(records)} role records from {self.assignments_seen} assignments "
            f"across {len(relationships)} relationships ({len(self.failures)} skipped)"
        )
        return records

    def _process_parallel(
        self, relationships: Sequence[Relationship], role_map: RoleMap
    ) -> List[RelationshipOutcome]:
        workers = min(self.max_workers, len(relationships))
        results: Dict[int, RelationshipOutcome] = {}

        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(self._process_relationship, relationship, role_map): index
                for index, relationship in enumerate(relationships)
            }
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()

        return [results[index] for index in range(len(relationships))]

    def _process_relationship(
        self, relationship: Relationship, role_map: RoleMap
    ) -> RelationshipOutcome:
        """Enumerate one relationship; never raises."""
        log = self.logger.bind(operation="aggregate", relationship_id=relationship.id)
        outcome = RelationshipOutcome(relationship_id=relationship.id)

        try:
            results = self.directory.get_access_assignments_with_details(relationship.id)
        except Exception as e:
            failure = PartialFetchError(relationship.id, cause=e)
            log.warning(f"Skipping relationship {relationship.display_name}: {failure.message}")
            outcome.failures.append(failure)
            return outcome

        outcome.assignments_seen = len(results)

        for result in results:
            error = result.error
            if result.succeeded:
                try:
                    outcome.records.extend(self._flatten(relationship, result.assignment, role_map))
                    continue
                except Exception as e:
                    error = e

            failure = PartialFetchError(
                relationship.id, cause=error, assignment_id=result.assignment_id or "(no id)"
            )
            log.warning(
                f"Skipping assignment: {failure.message}",
                extra={"assignment_id": result.assignment_id},
            )
            outcome.failures.append(failure)

        log.debug(
            f"Relationship {relationship.display_name}: {len(results)} assignments, "
            f"{len(outcome.records)} role records"
        )
        return outcome

    def _flatten(
        self,
        relationship: Relationship,
        assignment: AccessAssignment,
        role_map: RoleMap,
    ) -> List[FlattenedRoleRecord]:
        # Zero unified roles is a valid state for an assignment
        return [
            FlattenedRoleRecord(
                relationship_id=relationship.id,
                relationship_name=relationship.display_name,
                customer_tenant_id=relationship.customer_tenant_id,
                assignment_id=assignment.id,
                role_definition_id=role_id,
                role_display_name=role_map.resolve_name(role_id),
                status=relationship.status,
            )
            for role_id in assignment.role_definition_ids
        ]
