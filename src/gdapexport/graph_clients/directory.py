"""
Directory operations used by the GDAP export.

This module maps the delegated admin and role management endpoints of Microsoft Graph
onto the read operations the export pipeline needs. All list calls retrieve every page.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..gdap.models import AccessAssignment
from .manager import DEFAULT_PAGE_SIZE, GraphClientManager

logger = logging.getLogger(__name__)

RELATIONSHIPS_PATH = "/tenantRelationships/delegatedAdminRelationships"
ROLE_DEFINITIONS_PATH = "/roleManagement/directory/roleDefinitions"
ACCESS_ASSIGNMENTS_PATH = RELATIONSHIPS_PATH + "/{relationship_id}/accessAssignments"
ACCESS_ASSIGNMENT_PATH = ACCESS_ASSIGNMENTS_PATH + "/{assignment_id}"


@dataclass
class AssignmentDetailResult:
    """Outcome of fetching the details of one listed access assignment."""

    assignment_id: str
    assignment: Optional[AccessAssignment] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.assignment is not None


class DirectoryClient:
    """
    Read-only access to GDAP relationships, role definitions and access assignments.

    Errors from the underlying GraphClientManager (GraphAPIError) are propagated
    unchanged; deciding which failures are fatal is left to the caller.
    """

    def __init__(self, client_manager: GraphClientManager, page_size: int = DEFAULT_PAGE_SIZE):
        """
        Initialize the DirectoryClient.

        Args:
            client_manager: Graph client manager holding the authenticated session
            page_size: ``$top`` value requested for list calls
        """
        self.client_manager = client_manager
        self.page_size = page_size

    def _page_params(self) -> Dict[str, Any]:
        return {"$top": self.page_size} if self.page_size else {}

    def list_delegated_admin_relationships(self) -> List[Dict[str, Any]]:
        """List all delegated admin relationships of the partner tenant."""
        relationships = self.client_manager.get_all(RELATIONSHIPS_PATH, params=self._page_params())
        logger.debug(f"Listed {len(relationships)} delegated admin relationships")
        return relationships

    def list_role_definitions(self) -> List[Dict[str, Any]]:
        """List all directory role definitions visible to the caller."""
        # roleDefinitions does not support $top
        definitions = self.client_manager.get_all(ROLE_DEFINITIONS_PATH)
        logger.debug(f"Listed {len(definitions)} role definitions")
        return definitions

    def list_access_assignments(self, relationship_id: str) -> List[Dict[str, Any]]:
        """List the access assignment references of one relationship."""
        path = ACCESS_ASSIGNMENTS_PATH.format(relationship_id=quote(relationship_id, safe=""))
        return self.client_manager.get_all(path, params=self._page_params())

    def get_access_assignment_detail(
        self, relationship_id: str, assignment_id: str
    ) -> Dict[str, Any]:
        """Get one access assignment, including ``accessDetails.unifiedRoles``."""
        path = ACCESS_ASSIGNMENT_PATH.format(
            relationship_id=quote(relationship_id, safe=""),
            assignment_id=quote(assignment_id, safe=""),
        )
        return self.client_manager.get(path)

    def get_access_assignments_with_details(
        self, relationship_id: str
    ) -> List[AssignmentDetailResult]:
        """
        List the assignments of a relationship and fetch the details of each one.

        A failure of the listing call is raised. A failure of an individual detail
        call, or a listed item without an id, is captured on that assignment's result
        so the remaining assignments are still returned.

        Args:
            relationship_id: Relationship to enumerate

        Returns:
            One AssignmentDetailResult per listed assignment, in listing order
        """
        listed = self.list_access_assignments(relationship_id)
        results: List[AssignmentDetailResult] = []

        for item in listed:
            assignment_id = item.get("id") if isinstance(item, dict) else None
            if not assignment_id or not isinstance(assignment_id, str):
                # Without an id the detail path would address the collection itself
                error = ValueError(f"Listed access assignment has no usable id: {item!r}")
                results.append(AssignmentDetailResult("", error=error))
                continue
            try:
                detail = self.get_access_assignment_detail(relationship_id, assignment_id)
                assignment = AccessAssignment.from_api(
                    relationship_id, detail, assignment_id=assignment_id
                )
                results.append(AssignmentDetailResult(assignment_id, assignment=assignment))
            except Exception as e:
                results.append(AssignmentDetailResult(assignment_id, error=e))

        return results
