"""
GDAP Export Module

This module retrieves delegated admin relationships, role definitions and access
assignments from Microsoft Graph and flattens them into tabular records.
"""

from .assignment_aggregator import AccessAssignmentAggregator
from .exceptions import GdapExportError, PartialFetchError, RetrievalError
from .models import (
    UNKNOWN_ROLE,
    AccessAssignment,
    FlattenedRoleRecord,
    Relationship,
    RoleDefinition,
    RoleMap,
    StatusFilter,
)
from .pipeline import ExportResult, GdapExportPipeline
from .projections import relationships_view, role_matrix_view, role_summary_view
from .relationship_fetcher import RelationshipFetcher, apply_status_filter
from .role_resolver import RoleDefinitionResolver

__all__ = [
    "StatusFilter",
    "Relationship",
    "RoleDefinition",
    "RoleMap",
    "AccessAssignment",
    "FlattenedRoleRecord",
    "UNKNOWN_ROLE",
    "GdapExportError",
    "RetrievalError",
    "PartialFetchError",
    "RelationshipFetcher",
    "apply_status_filter",
    "RoleDefinitionResolver",
    "AccessAssignmentAggregator",
    "relationships_view",
    "role_summary_view",
    "role_matrix_view",
    "GdapExportPipeline",
    "ExportResult",
]
