"""
Relationship retrieval for GDAP export.

This module retrieves every delegated admin relationship of the partner tenant and
applies the status filter chosen for the export.
"""

from typing import Iterable, List, Optional

from ..graph_clients.directory import DirectoryClient
from ..utils.logging_config import ContextLogger, component_logger
from .exceptions import RetrievalError
from .models import Relationship, StatusFilter


def apply_status_filter(
    relationships: Iterable[Relationship], status_filter: StatusFilter
) -> List[Relationship]:
    """
    Keep the relationships whose status passes the filter, preserving order.

    ACTIVE_ONLY keeps status ``active`` (exact, case-sensitive), EXPIRED_ONLY keeps
    ``expired`` and ``terminated``, BOTH keeps everything.
    """
    return [r for r in relationships if status_filter.matches(r.status)]


class RelationshipFetcher:
    """Fetches delegated admin relationships and filters them by status."""

    def __init__(self, directory: DirectoryClient, logger: Optional[ContextLogger] = None):
        """
        Initialize the RelationshipFetcher.

        Args:
            directory: Directory client used for the listing call
            logger: Context logger; defaults to one bound to this component
        """
        self.directory = directory
        self.logger = logger or component_logger("relationship_fetcher", __name__)

    def fetch(self, status_filter: StatusFilter) -> List[Relationship]:
        """
        Retrieve all relationships and apply ``status_filter``.

        Args:
            status_filter: Which relationship statuses to keep

        Returns:
            Filtered relationships; empty when there is nothing to export

        Raises:
            RetrievalError: If the listing call fails
        """
        log = self.logger.bind(operation="fetch")

        try:
            payloads = self.directory.list_delegated_admin_relationships()
        except Exception as e:
            log.error(f"Error retrieving delegated admin relationships: {str(e)}")
            raise RetrievalError("delegated admin relationships", e) from e

        relationships = [Relationship.from_api(payload) for payload in payloads]
        filtered = apply_status_filter(relationships, status_filter)

        if not relationships:
            log.info("No delegated admin relationships found")
        else:
            log.info(
                f"Retrieved {len(relationships)} relationships, "
                f"{len(filtered)} match status filter '{status_filter.value}'"
            )
        return filtered
